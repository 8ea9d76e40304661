import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone
from django.utils.text import slugify

from invoicing.models import Client, Invoice, Workspace, WorkspaceMembership
from invoicing.services.lifecycle import InvoiceStatus
from invoicing.services.totals import FlatRateTax

User = get_user_model()


class Command(BaseCommand):
    help = "Create a demo workspace, user, clients and sample invoices."

    def add_arguments(self, parser):
        parser.add_argument(
            "--name",
            default="Demo Studio",
            help="Name of the demo workspace to create.",
        )
        parser.add_argument(
            "--username", default="demo", help="Username for the demo user."
        )
        parser.add_argument(
            "--password", default="demo123", help="Password for the demo user."
        )

    def _unique_slug(self, name, max_tries=100):
        base = slugify(name) or "workspace"
        slug = base
        i = 1
        # "demo-studio" -> "demo-studio-1" -> "demo-studio-2"
        while Workspace.objects.filter(slug=slug).exists():
            slug = f"{base}-{i}"
            i += 1
            if i > max_tries:
                raise RuntimeError("Couldn't generate unique slug")
        return slug

    @transaction.atomic
    def handle(self, *args, **options):
        name = options["name"]
        username = options["username"]
        password = options["password"]

        # 1. Workspace and user
        workspace, _ = Workspace.objects.get_or_create(
            name=name,
            defaults={
                "slug": self._unique_slug(name),
                "company_name": name,
                "company_email": "billing@example.com",
            },
        )
        self.stdout.write(self.style.SUCCESS(f"Workspace: {workspace}"))

        user, created = User.objects.get_or_create(
            username=username, defaults={"email": f"{username}@example.com"}
        )
        if created:
            user.set_password(password)
            user.save()
        WorkspaceMembership.objects.get_or_create(
            user=user, workspace=workspace, defaults={"role": "owner"}
        )
        user.default_workspace = workspace
        user.save(update_fields=["default_workspace"])
        self.stdout.write(self.style.SUCCESS(f"User: {user.username} (pw={password})"))

        # 2. Clients
        acme, _ = Client.objects.get_or_create(
            workspace=workspace,
            email="accounts@acme.example",
            defaults={"name": "Acme Corp", "company": "Acme Corp"},
        )
        globex, _ = Client.objects.get_or_create(
            workspace=workspace,
            email="ap@globex.example",
            defaults={"name": "Globex", "company": "Globex Corporation"},
        )
        self.stdout.write(self.style.SUCCESS("Clients: Acme Corp, Globex"))

        # 3. Invoices in a few lifecycle states
        today = timezone.localdate()
        now = timezone.now()

        draft = Invoice.objects.create_invoice(
            workspace=workspace, client=acme, issue_date=today, issued_by=user
        )
        draft.add_line_item("Design work", Decimal("10"), Decimal("2.50"))
        draft.add_line_item("Hosting", Decimal("1"), Decimal("5.00"))
        draft.set_tax_policy(FlatRateTax(Decimal("10")))

        paid = Invoice.objects.create_invoice(
            workspace=workspace,
            client=globex,
            issue_date=today - datetime.timedelta(days=20),
            issued_by=user,
        )
        paid.add_line_item("Consulting", Decimal("8"), Decimal("120.00"))
        paid.transition(InvoiceStatus.SENT, now=now)
        paid.transition(InvoiceStatus.PAID, now=now)

        late = Invoice.objects.create_invoice(
            workspace=workspace,
            client=acme,
            issue_date=today - datetime.timedelta(days=45),
            due_date=today - datetime.timedelta(days=15),
            issued_by=user,
        )
        late.add_line_item("Maintenance retainer", Decimal("1"), Decimal("300.00"))
        late.transition(InvoiceStatus.SENT, now=now)
        late.transition(InvoiceStatus.OVERDUE, now=now)

        for invoice in (draft, paid, late):
            self.stdout.write(
                self.style.SUCCESS(
                    f"Invoice {invoice.invoice_number}: {invoice.status} {invoice.money('total')}"
                )
            )
        self.stdout.write(self.style.SUCCESS("Demo workspace setup complete!"))
