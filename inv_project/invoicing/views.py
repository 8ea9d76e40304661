import functools

from django.contrib.auth.decorators import login_required
from django.http import Http404, HttpResponse, JsonResponse
from django.utils.dateparse import parse_date
from django.views.decorators.http import require_GET, require_POST

from .exceptions import InvoicingError, StaleVersion
from .middleware import activate_workspace
from .models import Client, Invoice, Workspace
from .services.dashboard import dashboard_for_workspace
from .services.rendering import invoice_document, render_invoice_pdf
from .services.workflow import change_status, record_public_view, send_invoice


def json_errors(view):
    """Turn invoicing rule violations into JSON error responses."""
    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except InvoicingError as exc:
            status = 409 if isinstance(exc, StaleVersion) else 400
            return JsonResponse(
                {"ok": False, "error": exc.messages[0], "code": exc.code}, status=status
            )
    return wrapper


def _workspace(request):
    workspace = getattr(request, "workspace", None)
    if workspace is None:
        raise Http404("No active workspace")
    return workspace


def _invoice_or_404(request, invoice_id):
    try:
        return Invoice.objects.for_workspace(_workspace(request)).select_related(
            "client"
        ).get(pk=invoice_id)
    except Invoice.DoesNotExist:
        raise Http404("Invoice not found")


def _version(request):
    try:
        return int(request.POST["version"])
    except (KeyError, ValueError):
        raise InvoicingError("A numeric 'version' is required.", code="missing_version")


def _invoice_summary(invoice):
    return {
        "id": invoice.pk,
        "invoiceNumber": invoice.invoice_number,
        "client": invoice.client.name,
        "status": str(invoice.status),
        "issueDate": invoice.issue_date.isoformat(),
        "dueDate": invoice.due_date.isoformat(),
        "currency": invoice.currency,
        "total": str(invoice.money("total").amount),
        "version": invoice.version,
    }


@login_required
@require_GET
def invoice_list(request):
    invoices = Invoice.objects.filter_for_dashboard(
        _workspace(request),
        status=(request.GET.get("status") or "").upper() or None,
        issued_from=parse_date(request.GET.get("from") or ""),
        issued_to=parse_date(request.GET.get("to") or ""),
    ).select_related("client")
    return JsonResponse([_invoice_summary(inv) for inv in invoices], safe=False)


@login_required
@require_GET
def invoice_detail(request, invoice_id):
    invoice = _invoice_or_404(request, invoice_id)
    data = _invoice_summary(invoice)
    data.update(
        subtotal=str(invoice.money("subtotal").amount),
        taxAmount=str(invoice.money("tax_amount").amount),
        discountAmount=str(invoice.money("discount_amount").amount),
        taxMode=invoice.tax_mode,
        lineItems=[
            {
                "id": line.pk,
                "description": line.description,
                "quantity": str(line.quantity),
                "unitPrice": str(line.unit_price),
                "amount": str(line.amount_money(invoice.currency).amount),
                "notes": line.notes,
            }
            for line in invoice.ordered_line_items()
        ],
    )
    return JsonResponse(data)


@login_required
@require_POST
@json_errors
def invoice_change_status(request, invoice_id):
    invoice = _invoice_or_404(request, invoice_id)
    new_status = (request.POST.get("status") or "").upper()
    try:
        invoice = change_status(
            invoice.pk,
            new_status,
            expected_version=_version(request),
            workspace=request.workspace,
            user=request.user,
        )
    except ValueError:
        return JsonResponse({"ok": False, "error": f"Unknown status {new_status!r}"}, status=400)
    return JsonResponse({"ok": True, "status": str(invoice.status), "version": invoice.version})


@login_required
@require_POST
@json_errors
def invoice_send(request, invoice_id):
    invoice = _invoice_or_404(request, invoice_id)
    invoice = send_invoice(
        invoice.pk,
        expected_version=_version(request),
        workspace=request.workspace,
        recipient=request.POST.get("recipient") or None,
        user=request.user,
    )
    return JsonResponse({"ok": True, "status": str(invoice.status), "version": invoice.version})


@login_required
@require_GET
def invoice_pdf(request, invoice_id):
    invoice = _invoice_or_404(request, invoice_id)
    response = HttpResponse(render_invoice_pdf(invoice), content_type="application/pdf")
    response["Content-Disposition"] = f'inline; filename="invoice-{invoice.invoice_number}.pdf"'
    return response


@require_GET
def invoice_public(request, public_id):
    """Recipient-facing page; opening it records the VIEWED event."""
    try:
        invoice = record_public_view(public_id)
    except Invoice.DoesNotExist:
        raise Http404("Invoice not found")
    if invoice.status == "DRAFT":
        raise Http404("Invoice not found")
    doc = invoice_document(invoice)
    doc["issue_date"] = doc["issue_date"].isoformat()
    doc["due_date"] = doc["due_date"].isoformat()
    doc["status"] = str(invoice.status)
    return JsonResponse(doc)


@login_required
@require_GET
def client_list(request):
    clients = Client.objects.for_workspace(_workspace(request)).search(request.GET.get("q"))
    status = request.GET.get("status")
    if status and status.lower() != "all":
        clients = clients.filter(status=status.upper())
    return JsonResponse(
        [
            {
                "id": c.pk,
                "name": c.name,
                "email": c.email,
                "company": c.company,
                "phone": c.phone,
                "status": c.status,
            }
            for c in clients
        ],
        safe=False,
    )


@login_required
@require_GET
def dashboard(request):
    stats = dashboard_for_workspace(_workspace(request))
    return JsonResponse({"data": stats.as_dict()})


@login_required
@require_GET
def workspace_list(request):
    active = getattr(request, "workspace", None)
    return JsonResponse(
        [
            {
                "id": w.pk,
                "name": w.display_name,
                "slug": w.slug,
                "currency": w.default_currency,
                "active": active is not None and w.pk == active.pk,
            }
            for w in request.user.workspaces().order_by("name")
        ],
        safe=False,
    )


@login_required
@require_POST
def workspace_activate(request, workspace_id):
    """Switch the session's active workspace (members only)."""
    workspace = Workspace.objects.filter(pk=workspace_id).first()
    if workspace is None or not request.user.is_member_of(workspace):
        raise Http404("Workspace not found")
    activate_workspace(request, workspace)
    return JsonResponse({"ok": True, "workspace": workspace.slug})
