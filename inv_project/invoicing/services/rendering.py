from django.conf import settings
from django.template.loader import render_to_string
from django.urls import reverse

from ..money import Money


def public_url(invoice):
    base = getattr(settings, "INVOICING_PUBLIC_BASE_URL", "http://localhost:8000")
    return base.rstrip("/") + reverse("invoicing:invoice_public", args=[invoice.public_id])


def _format_quantity(quantity):
    # 2.0000 -> "2", 1.5000 -> "1.5"
    return format(quantity.normalize(), "f")


def invoice_document(invoice, locale=None):
    """The authoritative fields a document renderer may show.

    Amounts are formatted here so every template prints the same numbers.
    """
    currency = invoice.currency
    workspace = invoice.workspace
    client = invoice.client

    items = []
    for line in invoice.ordered_line_items():
        items.append({
            "description": line.description,
            "notes": line.notes,
            "quantity": _format_quantity(line.quantity),
            "unit_price": Money(line.unit_price, currency).rounded().format(locale),
            "amount": line.amount_money(currency).format(locale),
        })

    tax = invoice.money("tax_amount")
    discount = invoice.money("discount_amount")
    return {
        "invoice_number": invoice.invoice_number,
        "status": invoice.get_status_display(),
        "issue_date": invoice.issue_date,
        "due_date": invoice.due_date,
        "currency": currency,
        "issuer": {
            "name": workspace.display_name,
            "email": workspace.company_email
            or getattr(invoice.issued_by, "email", "")
            or "",
            "address": workspace.company_address,
        },
        "client": {
            "name": client.name,
            "email": client.email,
            "company": client.company,
            "phone": client.phone,
            "address": client.address,
        },
        "line_items": items,
        "subtotal": invoice.money("subtotal").format(locale),
        # tax and discount lines are only printed when non-zero
        "tax": None if tax.is_zero() else tax.format(locale),
        "discount": None if discount.is_zero() else discount.format(locale),
        "total": invoice.money("total").format(locale),
        "description": invoice.description,
        "notes": invoice.notes,
        "terms": invoice.terms,
        "public_url": public_url(invoice),
    }


def render_invoice_html(invoice, locale=None):
    return render_to_string(
        "invoicing/invoice_document.html",
        {"doc": invoice_document(invoice, locale)},
    )


def render_invoice_pdf(invoice, locale=None):
    """Invoice as PDF bytes."""
    # weasyprint loads its native libraries at import time
    from weasyprint import HTML

    html = HTML(string=render_invoice_html(invoice, locale))
    return html.write_pdf()
