import datetime
from decimal import Decimal
from types import SimpleNamespace

from django.test import SimpleTestCase, TestCase

from invoicing.money import Money
from invoicing.services.dashboard import (Period, build_dashboard,
                                          dashboard_for_workspace, growth_rate,
                                          month_period)

from .helpers import make_invoice, make_workspace

UTC = datetime.timezone.utc
NOW = datetime.datetime(2025, 6, 15, 12, 0, tzinfo=UTC)


def inv(pk, status, total, issue_date, paid_at=None, currency="USD"):
    return SimpleNamespace(
        pk=pk,
        invoice_number=f"INV-{pk:04d}",
        status=status,
        total=Decimal(total),
        currency=currency,
        issue_date=issue_date,
        paid_at=paid_at,
        created_at=datetime.datetime.combine(issue_date, datetime.time(9), tzinfo=UTC),
    )


def client_row(pk, created_at):
    return SimpleNamespace(pk=pk, name=f"Client {pk}", email=f"c{pk}@example.com",
                           created_at=created_at)


class GrowthRateTests(SimpleTestCase):
    def test_zero_baseline_is_zero(self):
        self.assertEqual(growth_rate(Decimal("150"), Decimal("0")), Decimal("0"))
        self.assertEqual(growth_rate(0, 0), Decimal("0"))

    def test_one_decimal_place(self):
        self.assertEqual(growth_rate(Decimal("150"), Decimal("100")), Decimal("50.0"))
        self.assertEqual(growth_rate(2, 3), Decimal("-33.3"))

    def test_accepts_money(self):
        self.assertEqual(
            growth_rate(Money("110", "USD"), Money("100", "USD")), Decimal("10.0")
        )


class BuildDashboardTests(SimpleTestCase):
    def setUp(self):
        may = datetime.date(2025, 5, 10)
        june = datetime.date(2025, 6, 2)
        self.invoices = [
            inv(1, "PAID", "100.00", may, paid_at=datetime.datetime(2025, 5, 20, tzinfo=UTC)),
            inv(2, "PAID", "150.00", june, paid_at=datetime.datetime(2025, 6, 5, tzinfo=UTC)),
            inv(3, "SENT", "80.00", june),
            inv(4, "VIEWED", "20.00", june),
            inv(5, "OVERDUE", "40.00", may),
            inv(6, "PAID", "999.00", june, paid_at=datetime.datetime(2025, 6, 6, tzinfo=UTC),
                currency="EUR"),
        ]
        self.clients = [
            client_row(1, datetime.datetime(2025, 5, 1, tzinfo=UTC)),
            client_row(2, datetime.datetime(2025, 6, 1, tzinfo=UTC)),
            client_row(3, datetime.datetime(2025, 6, 3, tzinfo=UTC)),
        ]

    def test_counts_and_money_figures(self):
        stats = build_dashboard(self.invoices, self.clients, now=NOW, currency="USD")
        self.assertEqual(stats.total_invoices, 6)
        self.assertEqual(stats.total_clients, 3)
        self.assertEqual(stats.total_revenue, Money("250.00", "USD"))
        self.assertEqual(stats.total_amount, Money("390.00", "USD"))
        self.assertEqual(stats.monthly_revenue, Money("150.00", "USD"))
        self.assertEqual(stats.pending_invoices, 2)
        self.assertEqual(stats.overdue_invoices, 1)
        self.assertEqual(stats.excluded_currencies, ["EUR"])

    def test_growth_against_previous_month(self):
        stats = build_dashboard(self.invoices, self.clients, now=NOW, currency="USD")
        self.assertEqual(stats.revenue_growth, Decimal("50.0"))
        # 4 invoices issued in June vs 2 in May
        self.assertEqual(stats.invoice_growth, Decimal("100.0"))
        self.assertEqual(stats.client_growth, Decimal("100.0"))

    def test_revenue_series_is_zero_filled(self):
        stats = build_dashboard(
            self.invoices, self.clients, now=NOW, currency="USD", series_months=4
        )
        self.assertEqual(
            [(p.month, p.total.amount) for p in stats.revenue_series],
            [
                ("2025-03", Decimal("0.00")),
                ("2025-04", Decimal("0.00")),
                ("2025-05", Decimal("100.00")),
                ("2025-06", Decimal("150.00")),
            ],
        )

    def test_empty_snapshot(self):
        stats = build_dashboard([], [], now=NOW, currency="USD")
        self.assertTrue(stats.total_revenue.is_zero())
        self.assertEqual(stats.revenue_growth, Decimal("0"))
        self.assertEqual(stats.recent_invoices, [])

    def test_recent_lists_newest_first(self):
        stats = build_dashboard(self.invoices, self.clients, now=NOW, currency="USD", recent=2)
        self.assertEqual([c.pk for c in stats.recent_clients], [3, 2])
        self.assertEqual(len(stats.recent_invoices), 2)

    def test_custom_period(self):
        period = Period(datetime.date(2025, 5, 1), datetime.date(2025, 6, 30))
        stats = build_dashboard(
            self.invoices, self.clients, now=NOW, currency="USD",
            period=period, prior_period=month_period(datetime.date(2025, 4, 1)),
        )
        self.assertEqual(stats.monthly_revenue, Money("250.00", "USD"))
        self.assertEqual(stats.revenue_growth, Decimal("0"))

    def test_as_dict_shape(self):
        data = build_dashboard(self.invoices, self.clients, now=NOW, currency="USD").as_dict()
        self.assertEqual(data["totalRevenue"], "250.00")
        self.assertEqual(data["analytics"]["revenueGrowth"], 50.0)
        self.assertIn("recentInvoices", data)
        self.assertEqual(len(data["revenueSeries"]), 6)


class DashboardLoaderTests(TestCase):
    def test_reads_one_workspace(self):
        mine = make_workspace("Mine")
        other = make_workspace("Other")
        make_invoice(mine, lines=[("1", "10.00")])
        make_invoice(other, lines=[("1", "99.00")])

        stats = dashboard_for_workspace(mine)
        self.assertEqual(stats.total_invoices, 1)
        self.assertEqual(stats.total_amount, Money("10.00", "USD"))
        self.assertEqual(stats.currency, "USD")
