from django.core.management.base import BaseCommand, CommandError

from invoicing.models import Workspace
from invoicing.services.workflow import sweep_overdue


class Command(BaseCommand):
    help = "Mark sent or viewed invoices past their due date as OVERDUE."

    def add_arguments(self, parser):
        parser.add_argument(
            "--workspace",
            default=None,
            help="Slug of a single workspace to sweep (default: all).",
        )

    def handle(self, *args, **options):
        workspace = None
        slug = options["workspace"]
        if slug:
            try:
                workspace = Workspace.objects.get(slug=slug)
            except Workspace.DoesNotExist:
                raise CommandError(f"Workspace {slug!r} does not exist")

        marked = sweep_overdue(workspace=workspace)
        self.stdout.write(
            self.style.SUCCESS(f"Marked {len(marked)} invoice(s) overdue.")
        )
