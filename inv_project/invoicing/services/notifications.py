import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils import timezone

from ..exceptions import InvoiceNotSendable
from .dashboard import as_date
from .lifecycle import RESENDABLE_STATUSES, InvoiceStatus
from .rendering import invoice_document, render_invoice_pdf

logger = logging.getLogger(__name__)

SENDABLE_STATUSES = RESENDABLE_STATUSES | {InvoiceStatus.DRAFT}


def check_sendable(invoice, recipient=None, statuses=SENDABLE_STATUSES):
    """Raise InvoiceNotSendable unless the invoice may be emailed now."""
    if invoice.status not in statuses:
        raise InvoiceNotSendable(
            f"Invoice {invoice.invoice_number} is {invoice.status} and cannot be sent."
        )
    if not invoice.line_items.exists():
        raise InvoiceNotSendable(f"Invoice {invoice.invoice_number} has no line items.")
    recipient = recipient or invoice.client.email
    if not recipient:
        raise InvoiceNotSendable(f"Invoice {invoice.invoice_number} has no recipient.")
    return recipient


def _from_email(invoice):
    return (
        getattr(settings, "DEFAULT_FROM_EMAIL", None)
        or invoice.workspace.company_email
        or getattr(invoice.issued_by, "email", None)
    )


def send_invoice_email(invoice, recipient=None, attach_pdf=None):
    """Email the invoice; status changes are the caller's job."""
    recipient = check_sendable(invoice, recipient)
    if attach_pdf is None:
        attach_pdf = getattr(settings, "INVOICING_ATTACH_PDF", True)

    doc = invoice_document(invoice)
    context = {"doc": doc}
    message = EmailMultiAlternatives(
        subject=f"Invoice #{invoice.invoice_number} - {invoice.client.name}",
        body=render_to_string("invoicing/email/invoice.txt", context),
        from_email=_from_email(invoice),
        to=[recipient],
    )
    message.attach_alternative(
        render_to_string("invoicing/email/invoice.html", context), "text/html"
    )
    if attach_pdf:
        message.attach(
            f"invoice-{invoice.invoice_number}.pdf",
            render_invoice_pdf(invoice),
            "application/pdf",
        )
    message.send()
    logger.info("Invoice %s emailed to %s", invoice.invoice_number, recipient)
    return message


def days_overdue(invoice, now=None):
    today = as_date(now or timezone.now())
    return max((today - invoice.due_date).days, 0)


def send_payment_reminder(invoice, recipient=None, now=None):
    recipient = check_sendable(invoice, recipient, statuses=RESENDABLE_STATUSES)
    context = {"doc": invoice_document(invoice), "days_overdue": days_overdue(invoice, now)}
    message = EmailMultiAlternatives(
        subject=f"Payment Reminder - Invoice #{invoice.invoice_number}",
        body=render_to_string("invoicing/email/reminder.txt", context),
        from_email=_from_email(invoice),
        to=[recipient],
    )
    message.attach_alternative(
        render_to_string("invoicing/email/reminder.html", context), "text/html"
    )
    message.send()
    logger.info(
        "Payment reminder for invoice %s sent to %s (%s days overdue)",
        invoice.invoice_number, recipient, context["days_overdue"],
    )
    return message
