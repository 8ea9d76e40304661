from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .workspace import Workspace


# ---------- Audit / Event log ----------
class AuditLog(models.Model):
    """Who did what to which invoice or client, and what changed."""

    # Nullable for system-wide events
    workspace = models.ForeignKey(
        Workspace, null=True, blank=True, on_delete=models.SET_NULL
    )
    # Null when the action was automated (overdue sweep, Celery task)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    action = models.CharField(max_length=50)  # transition, send, remind, delete
    object_type = models.CharField(max_length=100)  # "Invoice", "Client"
    object_id = models.CharField(max_length=100)
    # before/after details
    changes = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["workspace", "user"], name="invoicing_a_workspa_0d8e57_idx"),
            models.Index(fields=["workspace", "created_at"], name="invoicing_a_workspa_72c1ab_idx"),
            models.Index(fields=["object_type", "object_id"], name="invoicing_a_object__e5f3c8_idx"),
        ]
        ordering = ("-created_at", "-id")

    def __str__(self):
        return f"[{self.created_at:%Y-%m-%d %H:%M}] {self.user} {self.action} {self.object_type}({self.object_id})"

    def clean(self):
        # The acting user must be a member of the workspace being logged
        if self.user and self.workspace and not self.user.is_superuser:
            if not self.user.memberships.filter(
                workspace=self.workspace, is_active=True
            ).exists():
                raise ValidationError(
                    "AuditLog.user must be a member of AuditLog.workspace"
                )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
