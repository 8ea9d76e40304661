from django.contrib import admin, messages

from invoicing.exceptions import InvoicingError
from invoicing.services.workflow import cancel_invoice, send_invoice, sweep_overdue


@admin.action(description="Send selected invoices")
def send_selected_invoices(modeladmin, request, queryset):
    sent = 0
    for inv in queryset:
        try:
            send_invoice(inv.pk, expected_version=inv.version, user=request.user)
            sent += 1
        except InvoicingError as e:
            modeladmin.message_user(request, f"{inv}: {e.messages[0]}", level=messages.ERROR)
    modeladmin.message_user(request, f"Sent {sent} of {queryset.count()} invoices.")


@admin.action(description="Cancel selected invoices")
def cancel_selected_invoices(modeladmin, request, queryset):
    for inv in queryset:
        try:
            cancel_invoice(inv.pk, expected_version=inv.version, user=request.user)
        except InvoicingError as e:
            modeladmin.message_user(request, f"{inv}: {e.messages[0]}", level=messages.ERROR)


@admin.action(description="Mark past-due invoices as Overdue")
def sweep_overdue_action(modeladmin, request, queryset):
    marked = sweep_overdue(workspace=getattr(request, "workspace", None))
    modeladmin.message_user(request, f"{len(marked)} invoice(s) marked overdue.")
