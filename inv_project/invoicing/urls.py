from django.urls import path

from . import views

app_name = "invoicing"

urlpatterns = [
    path("invoices/", views.invoice_list, name="invoice_list"),
    path("invoices/<int:invoice_id>/", views.invoice_detail, name="invoice_detail"),
    path("invoices/<int:invoice_id>/status/", views.invoice_change_status, name="invoice_status"),
    path("invoices/<int:invoice_id>/send/", views.invoice_send, name="invoice_send"),
    path("invoices/<int:invoice_id>/pdf/", views.invoice_pdf, name="invoice_pdf"),
    path("invoice/<uuid:public_id>/public/", views.invoice_public, name="invoice_public"),
    path("clients/", views.client_list, name="client_list"),
    path("workspaces/", views.workspace_list, name="workspace_list"),
    path(
        "workspaces/<int:workspace_id>/activate/",
        views.workspace_activate,
        name="workspace_activate",
    ),
    path("dashboard/", views.dashboard, name="dashboard"),
]
