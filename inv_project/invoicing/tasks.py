import logging
import smtplib

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def sweep_overdue_invoices(workspace_id=None):
    """Periodic overdue check (scheduled by CELERY_BEAT_SCHEDULE)."""
    # import lazily to avoid circular imports at module import time
    from .models import Workspace
    from .services.workflow import sweep_overdue

    workspace = Workspace.objects.get(pk=workspace_id) if workspace_id else None
    return sweep_overdue(workspace=workspace)


@shared_task(
    autoretry_for=(smtplib.SMTPException, ConnectionError),
    retry_backoff=True,
    max_retries=3,
)
def send_invoice_email_task(invoice_id, expected_version, recipient=None, user_id=None):
    from .models import User
    from .services.workflow import send_invoice

    user = User.objects.filter(pk=user_id).first() if user_id else None
    invoice = send_invoice(
        invoice_id, expected_version=expected_version, recipient=recipient, user=user
    )
    logger.info("Invoice %s sent by task (status %s)", invoice.pk, invoice.status)
    return invoice.version


@shared_task
def send_payment_reminders(workspace_id=None):
    """Remind every overdue client once per run."""
    from .exceptions import InvoicingError
    from .models import Invoice
    from .services.lifecycle import InvoiceStatus
    from .services.workflow import send_reminder

    overdue = Invoice.objects.with_status(InvoiceStatus.OVERDUE)
    if workspace_id:
        overdue = overdue.filter(workspace_id=workspace_id)
    sent = 0
    for invoice_id in overdue.values_list("pk", flat=True):
        try:
            send_reminder(invoice_id)
        except InvoicingError as exc:
            logger.warning("Reminder for invoice %s not sent: %s", invoice_id, exc)
            continue
        sent += 1
    return sent
