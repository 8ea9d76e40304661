"""Dashboard rollups over a snapshot of invoices and clients.

``build_dashboard`` is pure: it takes already-loaded records plus a
reference "now" and never touches the database. ``dashboard_for_workspace``
is the thin loader the views and tasks use.

Growth policy: a growth percentage is defined as 0 when the prior-period
value is 0. A rise from nothing has no meaningful ratio, and reporting 0
keeps the figure finite for charts and JSON.
"""
import datetime
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from django.conf import settings
from django.utils import timezone

from ..money import Money, sum_money
from .lifecycle import InvoiceStatus

PENDING_STATUSES = frozenset({InvoiceStatus.SENT, InvoiceStatus.VIEWED})
ONE_PLACE = Decimal("0.1")
EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


@dataclass(frozen=True)
class Period:
    """Inclusive date range."""
    start: datetime.date
    end: datetime.date

    def __contains__(self, day):
        return day is not None and self.start <= day <= self.end


@dataclass(frozen=True)
class RevenuePoint:
    month: str  # "YYYY-MM"
    total: Money


@dataclass
class DashboardStats:
    currency: str
    total_invoices: int
    total_clients: int
    total_revenue: Money
    total_amount: Money
    monthly_revenue: Money
    pending_invoices: int
    overdue_invoices: int
    revenue_growth: Decimal
    invoice_growth: Decimal
    client_growth: Decimal
    revenue_series: List[RevenuePoint] = field(default_factory=list)
    recent_invoices: list = field(default_factory=list)
    recent_clients: list = field(default_factory=list)
    excluded_currencies: List[str] = field(default_factory=list)

    def as_dict(self):
        return {
            "currency": self.currency,
            "totalInvoices": self.total_invoices,
            "totalClients": self.total_clients,
            "totalRevenue": str(self.total_revenue.amount),
            "totalAmount": str(self.total_amount.amount),
            "monthlyRevenue": str(self.monthly_revenue.amount),
            "pendingInvoices": self.pending_invoices,
            "overdueInvoices": self.overdue_invoices,
            "revenueSeries": [
                {"month": p.month, "total": str(p.total.amount)} for p in self.revenue_series
            ],
            "recentInvoices": [
                {
                    "id": inv.pk,
                    "invoiceNumber": inv.invoice_number,
                    "status": str(inv.status),
                    "total": str(Money(inv.total, inv.currency).rounded().amount),
                    "currency": inv.currency,
                    "issueDate": inv.issue_date.isoformat() if inv.issue_date else None,
                }
                for inv in self.recent_invoices
            ],
            "recentClients": [
                {"id": c.pk, "name": c.name, "email": c.email} for c in self.recent_clients
            ],
            "analytics": {
                "revenueGrowth": float(self.revenue_growth),
                "invoiceGrowth": float(self.invoice_growth),
                "clientGrowth": float(self.client_growth),
            },
            "excludedCurrencies": self.excluded_currencies,
        }


# ----------------------------
# Period helpers
# ----------------------------
def as_date(value):
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    return value


def month_period(day):
    day = as_date(day)
    start = day.replace(day=1)
    following = (start + datetime.timedelta(days=32)).replace(day=1)
    return Period(start, following - datetime.timedelta(days=1))


def previous_month(period):
    return month_period(period.start - datetime.timedelta(days=1))


def month_starts(first, last):
    """First day of every calendar month from ``first`` to ``last`` inclusive."""
    current = as_date(first).replace(day=1)
    last = as_date(last).replace(day=1)
    while current <= last:
        yield current
        current = (current + datetime.timedelta(days=32)).replace(day=1)


def growth_rate(current, prior):
    """Percentage change from ``prior`` to ``current``, one decimal place.

    Returns 0 when ``prior`` is 0 (see module docstring).
    """
    current = getattr(current, "amount", current)
    prior = getattr(prior, "amount", prior)
    if not prior:
        return Decimal("0")
    change = (Decimal(current) - Decimal(prior)) / Decimal(prior) * 100
    return change.quantize(ONE_PLACE, rounding=ROUND_HALF_UP)


# ----------------------------
# Aggregation
# ----------------------------
def _total(invoice, currency):
    return Money(invoice.total, currency).rounded()


def revenue_series(invoices, currency, first_month, last_month):
    """Paid revenue per calendar month, zero-filled."""
    buckets = {start: Money.zero(currency) for start in month_starts(first_month, last_month)}
    for invoice in invoices:
        if invoice.status != InvoiceStatus.PAID or invoice.currency != currency:
            continue
        paid_on = as_date(invoice.paid_at)
        if paid_on is None:
            continue
        key = paid_on.replace(day=1)
        if key in buckets:
            buckets[key] = buckets[key] + _total(invoice, currency)
    return [
        RevenuePoint(month=start.strftime("%Y-%m"), total=total)
        for start, total in buckets.items()
    ]


def _recency_key(record):
    created = getattr(record, "created_at", None)
    return (created or EPOCH, record.pk or 0)


def build_dashboard(
    invoices,
    clients,
    *,
    now,
    currency,
    period: Optional[Period] = None,
    prior_period: Optional[Period] = None,
    series_months: Optional[int] = None,
    recent: int = 5,
) -> DashboardStats:
    """Summary statistics for one workspace snapshot.

    Money figures only include invoices in ``currency``; other currencies
    are counted but reported in ``excluded_currencies``.
    """
    invoices = list(invoices)
    clients = list(clients)
    period = period or month_period(now)
    prior_period = prior_period or previous_month(period)
    if series_months is None:
        series_months = getattr(settings, "INVOICING_DASHBOARD_MONTHS", 6)

    in_currency = [inv for inv in invoices if inv.currency == currency]
    paid = [inv for inv in in_currency if inv.status == InvoiceStatus.PAID]

    def paid_in(window):
        return sum_money(
            (_total(inv, currency) for inv in paid if as_date(inv.paid_at) in window),
            currency,
        )

    monthly_revenue = paid_in(period)
    prior_revenue = paid_in(prior_period)

    invoices_now = sum(1 for inv in invoices if as_date(inv.issue_date) in period)
    invoices_prior = sum(1 for inv in invoices if as_date(inv.issue_date) in prior_period)
    clients_now = sum(1 for c in clients if as_date(c.created_at) in period)
    clients_prior = sum(1 for c in clients if as_date(c.created_at) in prior_period)

    last_month = period.start
    first_month = last_month
    for _ in range(max(series_months, 1) - 1):
        first_month = (first_month - datetime.timedelta(days=1)).replace(day=1)

    return DashboardStats(
        currency=currency,
        total_invoices=len(invoices),
        total_clients=len(clients),
        total_revenue=sum_money((_total(inv, currency) for inv in paid), currency),
        total_amount=sum_money((_total(inv, currency) for inv in in_currency), currency),
        monthly_revenue=monthly_revenue,
        pending_invoices=sum(1 for inv in invoices if inv.status in PENDING_STATUSES),
        overdue_invoices=sum(1 for inv in invoices if inv.status == InvoiceStatus.OVERDUE),
        revenue_growth=growth_rate(monthly_revenue, prior_revenue),
        invoice_growth=growth_rate(invoices_now, invoices_prior),
        client_growth=growth_rate(clients_now, clients_prior),
        revenue_series=revenue_series(paid, currency, first_month, last_month),
        recent_invoices=sorted(invoices, key=_recency_key, reverse=True)[:recent],
        recent_clients=sorted(clients, key=_recency_key, reverse=True)[:recent],
        excluded_currencies=sorted({inv.currency for inv in invoices} - {currency}),
    )


def dashboard_for_workspace(workspace, now=None, **kwargs):
    from ..models import Client, Invoice

    now = now or timezone.now()
    invoices = Invoice.objects.filter_for_dashboard(workspace).select_related("client")
    clients = Client.objects.for_workspace(workspace)
    return build_dashboard(
        invoices, clients, now=now, currency=workspace.default_currency, **kwargs
    )
