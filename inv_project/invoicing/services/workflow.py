import logging

from django.db import transaction
from django.utils import timezone

from ..exceptions import IllegalStatusTransition, StaleVersion
from ..models import Invoice
from .audit_helper import log_action
from .dashboard import as_date
from .lifecycle import InvoiceStatus, check_transition
from .notifications import check_sendable, send_invoice_email, send_payment_reminder

logger = logging.getLogger(__name__)


def load_invoice(invoice_id, workspace=None):
    """Fetch an invoice, scoped to ``workspace`` when one is given."""
    qs = Invoice.objects.select_related("client", "workspace", "issued_by")
    if workspace is not None:
        qs = qs.for_workspace(workspace)
    return qs.get(pk=invoice_id)


def _log_transition(invoice, previous, user=None):
    log_action(
        action="transition",
        instance=invoice,
        user=user,
        changes={"from": str(previous), "to": str(invoice.status), "version": invoice.version},
    )


# ----------------------------------------------
# Invoice status update workflows
# ----------------------------------------------
def change_status(invoice_id, new_status, *, expected_version, workspace=None,
                  user=None, now=None):
    """Apply one transition with the version the caller read."""
    with transaction.atomic():
        invoice = load_invoice(invoice_id, workspace)
        previous = invoice.transition(new_status, expected_version=expected_version, now=now)
        _log_transition(invoice, previous, user)
    return invoice


def mark_viewed(invoice_id, **kwargs):
    return change_status(invoice_id, InvoiceStatus.VIEWED, **kwargs)


def record_payment(invoice_id, **kwargs):
    return change_status(invoice_id, InvoiceStatus.PAID, **kwargs)


def cancel_invoice(invoice_id, **kwargs):
    return change_status(invoice_id, InvoiceStatus.CANCELLED, **kwargs)


def refund_invoice(invoice_id, **kwargs):
    return change_status(invoice_id, InvoiceStatus.REFUNDED, **kwargs)


def revise_invoice(invoice_id, **kwargs):
    """Back to DRAFT so totals can change again."""
    return change_status(invoice_id, InvoiceStatus.DRAFT, **kwargs)


# ----------------------------------------------
# Sending
# ----------------------------------------------
def send_invoice(invoice_id, *, expected_version, workspace=None, recipient=None,
                 user=None, attach_pdf=None, now=None):
    """Email the invoice; a DRAFT becomes SENT once the email went out.

    Re-sending a SENT, VIEWED or OVERDUE invoice does not change its status.
    """
    invoice = load_invoice(invoice_id, workspace)
    if invoice.version != expected_version:
        raise StaleVersion(expected_version, invoice.version)
    recipient = check_sendable(invoice, recipient)
    first_send = invoice.status == InvoiceStatus.DRAFT
    if first_send:
        check_transition(invoice.status, InvoiceStatus.SENT)

    send_invoice_email(invoice, recipient=recipient, attach_pdf=attach_pdf)

    with transaction.atomic():
        if first_send:
            previous = invoice.transition(
                InvoiceStatus.SENT, expected_version=expected_version, now=now
            )
            _log_transition(invoice, previous, user)
        log_action(action="send", instance=invoice, user=user, changes={"recipient": recipient})
    return invoice


def send_reminder(invoice_id, *, workspace=None, recipient=None, user=None, now=None):
    invoice = load_invoice(invoice_id, workspace)
    message = send_payment_reminder(invoice, recipient=recipient, now=now)
    log_action(action="remind", instance=invoice, user=user, changes={"recipient": message.to[0]})
    return invoice


def record_public_view(public_id, now=None):
    """A recipient opened the public page: SENT becomes VIEWED.

    Looked up by the opaque ``public_id``, never the sequential pk.
    """
    invoice = Invoice.objects.select_related("client", "workspace", "issued_by").get(
        public_id=public_id
    )
    if invoice.status != InvoiceStatus.SENT:
        return invoice
    try:
        with transaction.atomic():
            previous = invoice.transition(InvoiceStatus.VIEWED, now=now)
            _log_transition(invoice, previous)
    except StaleVersion:
        # someone else moved it first; show what is stored now
        invoice = load_invoice(invoice.pk)
    return invoice


# ----------------------------------------------
# Overdue sweep
# ----------------------------------------------
def sweep_overdue(workspace=None, now=None):
    """Mark every sent/viewed invoice past its due date as OVERDUE.

    Rows that changed under us are skipped; the next sweep sees them again.
    Returns the ids that were marked.
    """
    now = now or timezone.now()
    candidates = Invoice.objects.overdue_candidates(as_date(now))
    if workspace is not None:
        candidates = candidates.for_workspace(workspace)

    marked = []
    for invoice in candidates.select_related("workspace"):
        if invoice.check_overdue(now) is None:
            continue
        try:
            with transaction.atomic():
                previous = invoice.transition(
                    InvoiceStatus.OVERDUE, expected_version=invoice.version, now=now
                )
                _log_transition(invoice, previous)
        except (StaleVersion, IllegalStatusTransition) as exc:
            logger.info("Overdue sweep skipped invoice %s: %s", invoice.pk, exc)
            continue
        marked.append(invoice.pk)

    logger.info("Overdue sweep marked %d invoice(s)", len(marked))
    return marked
