from django.db import models

from ..exceptions import ClientHasInvoices
from ..managers import ClientManager
from .workspace import Workspace


class ClientStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    INACTIVE = "INACTIVE", "Inactive"
    ARCHIVED = "ARCHIVED", "Archived"


# ---------- Client ----------
# Billing counterparty, owned by one workspace
class Client(models.Model):
    workspace = models.ForeignKey(
        Workspace, on_delete=models.CASCADE, related_name="clients"
    )
    name = models.CharField(max_length=200)
    # Required; EmailField validates the format in full_clean()
    email = models.EmailField()
    phone = models.CharField(max_length=32, blank=True)
    address = models.TextField(blank=True)
    company = models.CharField(max_length=200, blank=True)
    status = models.CharField(
        max_length=10, choices=ClientStatus.choices, default=ClientStatus.ACTIVE
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = ClientManager()

    class Meta:
        indexes = [
            models.Index(fields=["workspace", "name"], name="invoicing_c_workspa_5d2a10_idx"),
            models.Index(fields=["workspace", "status"], name="invoicing_c_workspa_8e4b37_idx"),
        ]
        ordering = ("-created_at", "-id")

    def __str__(self):
        return self.name

    def archive(self):
        """Retire a client that still has invoices (they cannot be deleted)."""
        self.status = ClientStatus.ARCHIVED
        self.save(update_fields=["status"])

    def save(self, *args, **kwargs):
        # partial saves (archive) skip full validation
        if not kwargs.get("update_fields"):
            self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        # the RESTRICT foreign key also blocks queryset deletes
        count = self.invoices.count()
        if count:
            raise ClientHasInvoices(
                f"Cannot delete client {self.name}: {count} invoice(s) reference it. "
                "Archive the client instead."
            )
        return super().delete(*args, **kwargs)
