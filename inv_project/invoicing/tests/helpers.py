import datetime
from decimal import Decimal

from invoicing.models import Client, Invoice, Workspace, WorkspaceMembership

TODAY = datetime.date(2025, 6, 15)


def make_workspace(name="Acme Studio", slug=None, currency="USD", **extra):
    return Workspace.objects.create(
        name=name,
        slug=slug or name.lower().replace(" ", "-"),
        default_currency=currency,
        **extra,
    )


def make_member(user, workspace, role="owner"):
    membership = WorkspaceMembership.objects.create(user=user, workspace=workspace, role=role)
    user.default_workspace = workspace
    user.save(update_fields=["default_workspace"])
    return membership


def make_client(workspace, name="Jane Buyer", email="jane@example.com", **extra):
    return Client.objects.create(workspace=workspace, name=name, email=email, **extra)


def make_invoice(workspace, client=None, lines=(), issue_date=TODAY, **extra):
    """Draft invoice with ``lines`` given as (quantity, unit_price) pairs."""
    client = client or make_client(workspace)
    invoice = Invoice.objects.create_invoice(
        workspace=workspace, client=client, issue_date=issue_date, **extra
    )
    for idx, (quantity, unit_price) in enumerate(lines, start=1):
        invoice.add_line_item(f"Item {idx}", Decimal(quantity), Decimal(unit_price))
    return invoice
