from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager, WorkspaceUserManager
from ..money import CURRENCIES, get_currency


def _default_currency():
    return getattr(settings, "INVOICING_DEFAULT_CURRENCY", "USD")


CURRENCY_CHOICES = [(code, code) for code in sorted(CURRENCIES)]


# ---------- Tenant / Workspace ----------
class Workspace(models.Model):
    """Tenant boundary: owns clients and invoices."""

    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=80, unique=True)

    # Reporting currency for the dashboard and default for new invoices
    default_currency = models.CharField(
        max_length=3, choices=CURRENCY_CHOICES, default=_default_currency
    )

    # Issuer details printed on invoices and emails
    company_name = models.CharField(max_length=200, blank=True)
    company_email = models.EmailField(blank=True)
    company_address = models.TextField(blank=True)

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        # if the owner is deleted the workspace stays
        on_delete=models.SET_NULL,
        related_name="owned_workspaces",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    @property
    def display_name(self):
        return self.company_name or self.name

    def clean(self):
        get_currency(self.default_currency)


# ---------- Custom User ----------
class User(AbstractUser):
    """
    AUTH_USER_MODEL = "invoicing.User" must be set before the first migrate.
    """
    default_workspace = models.ForeignKey(
        "Workspace",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="default_users",
    )

    objects = WorkspaceUserManager()

    class Meta:
        indexes = [models.Index(fields=["default_workspace"], name="invoicing_u_default_7c1e0d_idx")]

    def __str__(self):
        return self.get_full_name() or self.username

    def workspaces(self):
        return Workspace.objects.filter(
            memberships__user=self, memberships__is_active=True
        )

    def is_member_of(self, workspace):
        return self.memberships.filter(workspace=workspace, is_active=True).exists()


# ---------- WorkspaceMembership ----------
class WorkspaceMembership(models.Model):
    ROLE_CHOICES = [
        ("owner", "Owner"),
        ("admin", "Admin"),
        ("member", "Member"),
        ("viewer", "Viewer"),  # read-only
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    workspace = models.ForeignKey(
        Workspace, on_delete=models.CASCADE, related_name="memberships"
    )
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default="viewer")

    # suspend access without deleting the record
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["user", "workspace"], name="uq_user_workspace_membership"
            ),
        ]
        indexes = [models.Index(fields=["workspace", "user"], name="invoicing_w_workspa_3b9f21_idx")]

    def __str__(self):
        return f"{self.user} @ {self.workspace} ({self.role})"

    def clean(self):
        """
        A user's default workspace must be one of their memberships. The
        membership being validated counts, so the first one can be saved.
        """
        default_id = getattr(self.user, "default_workspace_id", None)
        if not default_id:
            return
        memberships = self.user.memberships.all()
        if self.pk:
            memberships = memberships.exclude(pk=self.pk)
        existing = set(memberships.values_list("workspace_id", flat=True))
        if default_id not in existing and default_id != self.workspace_id:
            raise ValidationError(
                f"Default workspace {self.user.default_workspace} must be a user's membership."
            )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
