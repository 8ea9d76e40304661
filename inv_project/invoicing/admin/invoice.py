from django.contrib import admin

from invoicing.models import Client, Invoice

from .actions import (cancel_selected_invoices, send_selected_invoices,
                      sweep_overdue_action)
from .inlines import LineItemInline
from .mixins import TenantAdminMixin

DERIVED_FIELDS = (
    "status",
    "subtotal",
    "tax_amount",
    "discount_amount",
    "total",
    "tax_mode",
    "tax_rate",
    "tax_fixed_amount",
    "sent_at",
    "viewed_at",
    "paid_at",
    "overdue_at",
    "cancelled_at",
    "refunded_at",
    "version",
)


# Register `Invoice` model
@admin.register(Invoice)
class InvoiceAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "workspace",
        "invoice_number",
        "client",
        "issue_date",
        "due_date",
        "status",
        "currency",
        "total",
    )
    list_filter = ("workspace", "status", "issue_date")
    search_fields = ("invoice_number", "client__name")
    actions = [send_selected_invoices, cancel_selected_invoices, sweep_overdue_action]
    inlines = [LineItemInline]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("workspace", "client")

    def get_readonly_fields(self, request, obj=None):
        # Everything is frozen once the invoice leaves DRAFT
        if obj and not obj.is_editable:
            return [f.name for f in self.model._meta.fields]
        if obj:
            return DERIVED_FIELDS + ("workspace", "invoice_number")
        return DERIVED_FIELDS

    def has_delete_permission(self, request, obj=None):
        if obj and obj.payment_recorded:
            return False
        return super().has_delete_permission(request, obj)

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        # inline line items changed: refresh derived totals
        invoice = form.instance
        if invoice.is_editable:
            invoice.recompute_totals()


# Register `Client` model
@admin.register(Client)
class ClientAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = ("id", "workspace", "name", "email", "company", "status")
    search_fields = ("name", "email", "company")
    list_filter = ("workspace", "status")

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("workspace")
