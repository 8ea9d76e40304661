from django.contrib import admin

from invoicing.models import AuditLog

from .mixins import TenantAdminMixin


# Register `AuditLog` model (read-only trail)
@admin.register(AuditLog)
class AuditLogAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "workspace",
        "user",
        "action",
        "object_type",
        "object_id",
        "created_at",
    )
    search_fields = ("object_type", "object_id", "user__username")
    list_filter = ("workspace", "action", "created_at")

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("workspace", "user")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
