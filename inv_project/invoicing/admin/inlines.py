from django.contrib import admin

from invoicing.models import LineItem


class LineItemInline(admin.TabularInline):
    """Line items on the invoice page; locked once the invoice leaves DRAFT."""

    model = LineItem
    extra = 0
    fields = ("position", "description", "quantity", "unit_price", "tax_rate", "amount", "notes")
    readonly_fields = ("amount",)
    ordering = ("position", "id")

    def _locked(self, obj):
        return obj is not None and not obj.is_editable

    def get_readonly_fields(self, request, obj=None):
        if self._locked(obj):
            return self.fields
        return self.readonly_fields

    def has_add_permission(self, request, obj=None):
        return not self._locked(obj) and super().has_add_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        return not self._locked(obj) and super().has_delete_permission(request, obj)
