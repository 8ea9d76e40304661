import datetime

from django.conf import settings
from django.contrib.auth.models import UserManager
from django.db import IntegrityError, models, transaction

from .exceptions import (ClientNotFound, DuplicateInvoiceNumber,
                         InvoiceNotDeletable)
from .services.lifecycle import OVERDUE_CANDIDATES, InvoiceStatus


# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a workspace
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_workspace(self, workspace):
        return self.filter(workspace=workspace)


class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    pass


class ClientQuerySet(TenantQuerySet):
    def search(self, term):
        if not term:
            return self
        return self.filter(
            models.Q(name__icontains=term)
            | models.Q(email__icontains=term)
            | models.Q(company__icontains=term)
        )


class ClientManager(models.Manager.from_queryset(ClientQuerySet)):
    pass


class InvoiceQuerySet(TenantQuerySet):
    def with_status(self, *statuses):
        return self.filter(status__in=statuses)

    def filter_for_dashboard(self, workspace, status=None, issued_from=None, issued_to=None):
        """Invoices of one workspace, optionally narrowed by status and issue date."""
        qs = self.for_workspace(workspace)
        if status:
            qs = qs.filter(status=status)
        if issued_from:
            qs = qs.filter(issue_date__gte=issued_from)
        if issued_to:
            qs = qs.filter(issue_date__lte=issued_to)
        return qs

    def overdue_candidates(self, today):
        """Sent or viewed invoices whose due date is before ``today``."""
        return self.filter(status__in=OVERDUE_CANDIDATES, due_date__lt=today)

    def delete(self):
        # bulk deletes honour the same payment rule as Invoice.delete()
        paid = list(self.filter(paid_at__isnull=False).values_list("invoice_number", flat=True))
        if paid:
            raise InvoiceNotDeletable(
                f"Cannot delete invoice(s) {', '.join(paid)}: a payment was recorded."
            )
        return super().delete()


class InvoiceManager(models.Manager.from_queryset(InvoiceQuerySet)):
    def next_invoice_number(self, workspace):
        prefix = getattr(settings, "INVOICING_NUMBER_PREFIX", "INV-")
        padding = getattr(settings, "INVOICING_NUMBER_PADDING", 4)
        sequence = self.for_workspace(workspace).count() + 1
        number = f"{prefix}{sequence:0{padding}d}"
        # skip numbers taken by manually numbered invoices
        while self.for_workspace(workspace).filter(invoice_number=number).exists():
            sequence += 1
            number = f"{prefix}{sequence:0{padding}d}"
        return number

    def create_invoice(self, *, workspace, client, issue_date, due_date=None,
                       invoice_number=None, currency=None, issued_by=None, **extra):
        """Create a DRAFT invoice inside ``workspace``.

        ``client`` may be a Client or a primary key; it must belong to the
        same workspace. The invoice number is assigned when omitted.
        """
        from .models import Client

        client_id = getattr(client, "pk", client)
        try:
            client = Client.objects.for_workspace(workspace).get(pk=client_id)
        except (Client.DoesNotExist, ValueError, TypeError):
            raise ClientNotFound(f"Client {client_id} not found in workspace {workspace}")

        if due_date is None:
            terms = getattr(settings, "INVOICING_DEFAULT_TERMS_DAYS", 30)
            due_date = issue_date + datetime.timedelta(days=terms)

        number = (invoice_number or "").strip() or self.next_invoice_number(workspace)
        if self.for_workspace(workspace).filter(invoice_number=number).exists():
            raise DuplicateInvoiceNumber(f"Invoice number {number} already exists")

        invoice = self.model(
            workspace=workspace,
            client=client,
            issued_by=issued_by,
            invoice_number=number,
            issue_date=issue_date,
            due_date=due_date,
            currency=currency or workspace.default_currency,
            status=InvoiceStatus.DRAFT,
            **extra,
        )
        try:
            # savepoint so a lost race doesn't poison an outer transaction
            with transaction.atomic():
                invoice.save(force_insert=True)
        except IntegrityError:
            raise DuplicateInvoiceNumber(f"Invoice number {number} already exists")
        return invoice


class WorkspaceUserManager(UserManager):
    def for_workspace(self, workspace):
        return self.filter(memberships__workspace=workspace, memberships__is_active=True)
