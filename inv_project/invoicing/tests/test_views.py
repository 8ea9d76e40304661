import datetime
import json
import uuid
from unittest import mock

import pytest
from django.test import override_settings

from invoicing.models import Invoice, WorkspaceMembership
from invoicing.services.lifecycle import InvoiceStatus

from .helpers import make_client, make_invoice, make_member, make_workspace

S = InvoiceStatus


@pytest.fixture
def workspace(db):
    return make_workspace()


@pytest.fixture
def member(workspace, django_user_model):
    user = django_user_model.objects.create_user(username="alice", password="pw")
    make_member(user, workspace)
    return user


@pytest.fixture
def api(client, member):
    client.force_login(member)
    return client


@pytest.fixture
def invoice(workspace):
    return make_invoice(workspace, lines=[("2", "10.00"), ("1", "5.00"), ("3", "2.50")])


def test_login_required(client, invoice):
    resp = client.get("/api/invoices/")
    assert resp.status_code == 302


def test_invoice_detail(api, invoice):
    resp = api.get(f"/api/invoices/{invoice.pk}/")
    assert resp.status_code == 200
    data = json.loads(resp.content)
    assert data["total"] == "32.50"
    assert data["status"] == "DRAFT"
    assert [line["amount"] for line in data["lineItems"]] == ["20.00", "5.00", "7.50"]


def test_invoice_list_status_filter(api, workspace, invoice):
    make_invoice(workspace)
    resp = api.get("/api/invoices/", {"status": "draft"})
    assert len(json.loads(resp.content)) == 2
    resp = api.get("/api/invoices/", {"status": "paid"})
    assert json.loads(resp.content) == []


def test_invoice_list_issue_date_filter(api, workspace, invoice):
    older = make_invoice(workspace, issue_date=datetime.date(2025, 5, 1))
    resp = api.get("/api/invoices/", {"to": "2025-05-31"})
    assert [row["id"] for row in json.loads(resp.content)] == [older.pk]
    resp = api.get("/api/invoices/", {"from": "2025-06-01", "to": "2025-06-30"})
    assert [row["id"] for row in json.loads(resp.content)] == [invoice.pk]


def test_change_status(api, invoice):
    resp = api.post(
        f"/api/invoices/{invoice.pk}/status/", {"status": "sent", "version": invoice.version}
    )
    assert resp.status_code == 200
    data = json.loads(resp.content)
    assert data == {"ok": True, "status": "SENT", "version": invoice.version + 1}


def test_illegal_transition_is_400(api, invoice):
    resp = api.post(
        f"/api/invoices/{invoice.pk}/status/", {"status": "PAID", "version": invoice.version}
    )
    assert resp.status_code == 400
    assert json.loads(resp.content)["code"] == "illegal_status_transition"


def test_stale_version_is_409(api, invoice):
    resp = api.post(
        f"/api/invoices/{invoice.pk}/status/", {"status": "SENT", "version": invoice.version - 1}
    )
    assert resp.status_code == 409
    assert json.loads(resp.content)["code"] == "stale_version"


def test_missing_version_is_400(api, invoice):
    resp = api.post(f"/api/invoices/{invoice.pk}/status/", {"status": "SENT"})
    assert resp.status_code == 400
    assert json.loads(resp.content)["code"] == "missing_version"


def test_unknown_status_is_400(api, invoice):
    resp = api.post(
        f"/api/invoices/{invoice.pk}/status/", {"status": "LOST", "version": invoice.version}
    )
    assert resp.status_code == 400


@override_settings(INVOICING_ATTACH_PDF=False)
def test_send_invoice(api, invoice, mailoutbox):
    resp = api.post(f"/api/invoices/{invoice.pk}/send/", {"version": invoice.version})
    assert resp.status_code == 200
    assert json.loads(resp.content)["status"] == "SENT"
    assert len(mailoutbox) == 1


def test_invoice_pdf(api, invoice):
    with mock.patch("invoicing.views.render_invoice_pdf", return_value=b"%PDF-1.7"):
        resp = api.get(f"/api/invoices/{invoice.pk}/pdf/")
    assert resp.status_code == 200
    assert resp["Content-Type"] == "application/pdf"
    assert resp.content == b"%PDF-1.7"


def test_public_page_records_view(client, invoice):
    resp = client.get(f"/api/invoice/{invoice.public_id}/public/")
    assert resp.status_code == 404  # drafts are not public

    invoice.transition(S.SENT)
    resp = client.get(f"/api/invoice/{invoice.public_id}/public/")
    assert resp.status_code == 200
    assert json.loads(resp.content)["total"] == "$32.50"
    assert Invoice.objects.get(pk=invoice.pk).status == S.VIEWED


def test_public_page_not_reachable_by_pk(client, db):
    other = make_workspace(name="Other Co")
    invoice = make_invoice(
        other, client=make_client(other, email="ap@other.example"), lines=[("1", "10.00")]
    )
    invoice.transition(S.SENT)

    assert client.get(f"/api/invoice/{invoice.pk}/public/").status_code == 404
    assert client.get(f"/api/invoice/{uuid.uuid4()}/public/").status_code == 404
    assert Invoice.objects.get(pk=invoice.pk).status == S.SENT


def test_client_search(api, workspace):
    make_client(workspace, name="Globex", email="ap@globex.example")
    make_client(workspace, name="Initech", email="pay@initech.example", status="ARCHIVED")
    resp = api.get("/api/clients/", {"q": "glob"})
    assert [c["name"] for c in json.loads(resp.content)] == ["Globex"]
    resp = api.get("/api/clients/", {"status": "archived"})
    assert [c["name"] for c in json.loads(resp.content)] == ["Initech"]


def test_dashboard(api, invoice):
    resp = api.get("/api/dashboard/")
    assert resp.status_code == 200
    data = json.loads(resp.content)["data"]
    assert data["totalInvoices"] == 1
    assert data["totalAmount"] == "32.50"
    assert data["analytics"]["revenueGrowth"] == 0.0


def test_workspace_list_marks_active(api, member, workspace):
    other = make_workspace(name="Side Gig")
    WorkspaceMembership.objects.create(user=member, workspace=other, role="member")
    make_workspace(name="Strangers")
    resp = api.get("/api/workspaces/")
    rows = json.loads(resp.content)
    assert [(w["slug"], w["active"]) for w in rows] == [
        ("acme-studio", True),
        ("side-gig", False),
    ]


def test_workspace_activate_switches_tenant(api, member, workspace, invoice):
    other = make_workspace(name="Side Gig")
    WorkspaceMembership.objects.create(user=member, workspace=other, role="member")
    resp = api.post(f"/api/workspaces/{other.pk}/activate/")
    assert resp.status_code == 200
    assert json.loads(api.get("/api/invoices/").content) == []
    assert api.get(f"/api/invoices/{invoice.pk}/").status_code == 404


def test_workspace_activate_requires_membership(api):
    stranger = make_workspace(name="Strangers")
    resp = api.post(f"/api/workspaces/{stranger.pk}/activate/")
    assert resp.status_code == 404
