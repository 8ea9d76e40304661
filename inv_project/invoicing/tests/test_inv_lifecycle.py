import datetime
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import transaction
from django.test import TestCase
from django.utils import timezone

from invoicing.exceptions import (IllegalStatusTransition, InvalidAmount,
                                  InvalidDiscount, InvalidInvoiceTotals,
                                  InvoiceNotDeletable, InvoiceNotEditable,
                                  StaleVersion)
from invoicing.models import Invoice, LineItem
from invoicing.money import Money
from invoicing.services.lifecycle import InvoiceStatus
from invoicing.services.totals import FlatRateTax, PerItemRateTax
from invoicing.services.workflow import cancel_invoice, record_payment

from .helpers import TODAY, make_invoice, make_workspace

S = InvoiceStatus


class LineItemRecordTests(TestCase):
    def setUp(self):
        self.workspace = make_workspace()
        self.invoice = make_invoice(self.workspace)

    def test_adding_lines_keeps_totals_in_sync(self):
        self.invoice.add_line_item("Design", Decimal("2"), Decimal("10.00"))
        self.invoice.add_line_item("Hosting", Decimal("1"), Decimal("5.00"))
        self.invoice.add_line_item("Stickers", Decimal("3"), Decimal("2.50"))

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.money("subtotal"), Money("32.50", "USD"))
        self.assertEqual(self.invoice.money("total"), Money("32.50", "USD"))
        self.assertEqual(
            [line.position for line in self.invoice.ordered_line_items()], [0, 1, 2]
        )

    def test_update_and_remove_recompute_totals(self):
        first = self.invoice.add_line_item("Design", Decimal("2"), Decimal("10.00"))
        second = self.invoice.add_line_item("Hosting", Decimal("1"), Decimal("5.00"))

        self.invoice.update_line_item(first.pk, quantity=Decimal("3"))
        self.assertEqual(self.invoice.money("total"), Money("35.00", "USD"))

        self.invoice.remove_line_item(second.pk)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.money("total"), Money("30.00", "USD"))
        self.assertEqual(self.invoice.line_items.count(), 1)

    def test_rejected_line_leaves_invoice_unchanged(self):
        self.invoice.add_line_item("Design", Decimal("1"), Decimal("10.00"))
        version = self.invoice.version

        with self.assertRaises(InvalidAmount):
            self.invoice.add_line_item("Refund", Decimal("1"), Decimal("-1.00"))
        with self.assertRaises(InvalidAmount):
            self.invoice.add_line_item("Nothing", Decimal("0"), Decimal("1.00"))
        with self.assertRaises(InvalidAmount):
            self.invoice.add_line_item("Float", 1.5, Decimal("1.00"))

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.version, version)
        self.assertEqual(self.invoice.line_items.count(), 1)
        self.assertEqual(self.invoice.money("total"), Money("10.00", "USD"))

    def test_rejected_update_leaves_stored_line_untouched(self):
        line = self.invoice.add_line_item("Design", Decimal("1"), Decimal("10.00"))
        with self.assertRaises(InvalidAmount):
            self.invoice.update_line_item(line.pk, unit_price=Decimal("-5"))
        line.refresh_from_db()
        self.assertEqual(line.unit_price, Decimal("10.00"))

    def test_stale_line_write_is_rolled_back(self):
        stale = self.invoice.version
        self.invoice.add_line_item("Design", Decimal("1"), Decimal("10.00"))

        with self.assertRaises(StaleVersion):
            self.invoice.add_line_item(
                "Late", Decimal("1"), Decimal("1.00"), expected_version=stale
            )
        self.assertFalse(LineItem.objects.filter(description="Late").exists())

    def test_discount_and_tax(self):
        self.invoice.add_line_item("Design", Decimal("1"), Decimal("100.00"))
        self.invoice.set_tax_policy(FlatRateTax("8.25"))
        self.invoice.apply_discount("10.00")

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.tax_mode, "rate")
        self.assertEqual(self.invoice.money("tax_amount"), Money("8.25", "USD"))
        self.assertEqual(self.invoice.money("total"), Money("98.25", "USD"))

        with self.assertRaises(InvalidDiscount):
            self.invoice.apply_discount("108.26")

    def test_rejected_discount_leaves_totals_untouched(self):
        self.invoice.add_line_item("Design", Decimal("1"), Decimal("100.00"))
        self.invoice.apply_discount("10.00")
        version = self.invoice.version

        with self.assertRaises(InvalidDiscount):
            self.invoice.apply_discount("100.01")
        self.assertEqual(self.invoice.version, version)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.money("discount_amount"), Money("10.00", "USD"))
        self.assertEqual(self.invoice.money("total"), Money("90.00", "USD"))
        self.assertEqual(self.invoice.version, version)

    def test_tax_rate_must_fit_stored_precision(self):
        with self.assertRaises(InvalidAmount):
            self.invoice.set_tax_policy(FlatRateTax("8.12345"))
        with self.assertRaises(InvalidAmount):
            self.invoice.add_line_item("Books", Decimal("1"), Decimal("10.00"), tax_rate="1000")
        self.invoice.set_tax_policy(FlatRateTax("8.1234"))
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.tax_rate, Decimal("8.1234"))

    def test_per_item_tax_uses_line_rates(self):
        self.invoice.set_tax_policy(PerItemRateTax())
        self.invoice.add_line_item("Books", Decimal("1"), Decimal("10.00"), tax_rate="5")
        self.invoice.add_line_item("Music", Decimal("1"), Decimal("10.00"), tax_rate="20")
        self.assertEqual(self.invoice.money("tax_amount"), Money("2.50", "USD"))
        self.assertEqual(self.invoice.money("total"), Money("22.50", "USD"))


class InvoiceLifecycleTests(TestCase):
    def setUp(self):
        self.workspace = make_workspace()
        self.invoice = make_invoice(self.workspace, lines=[("1", "100.00")])

    def test_cannot_leave_draft_without_lines(self):
        empty = make_invoice(self.workspace)
        with self.assertRaises(IllegalStatusTransition):
            empty.transition(S.SENT)
        empty.refresh_from_db()
        self.assertEqual(empty.status, S.DRAFT)

    def test_send_then_pay_stamps_timestamps(self):
        now = timezone.now()
        self.invoice.transition(S.SENT, now=now)
        self.invoice.transition(S.PAID, now=now)

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, S.PAID)
        self.assertEqual(self.invoice.sent_at, now)
        self.assertEqual(self.invoice.paid_at, now)

    def test_illegal_transition_changes_nothing(self):
        version = self.invoice.version
        with self.assertRaises(IllegalStatusTransition):
            self.invoice.transition(S.PAID)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, S.DRAFT)
        self.assertEqual(self.invoice.version, version)

    def test_only_drafts_are_editable(self):
        self.invoice.transition(S.SENT)
        with self.assertRaises(InvoiceNotEditable):
            self.invoice.add_line_item("Extra", Decimal("1"), Decimal("1.00"))
        with self.assertRaises(InvoiceNotEditable):
            self.invoice.apply_discount("1.00")

        self.invoice.notes = "changed after sending"
        with self.assertRaises(InvoiceNotEditable):
            self.invoice.save()

    def test_revise_reopens_for_editing(self):
        self.invoice.transition(S.SENT)
        self.invoice.transition(S.DRAFT)
        self.assertIsNone(self.invoice.sent_at)

        self.invoice.add_line_item("Extra", Decimal("1"), Decimal("1.00"))
        self.assertEqual(self.invoice.money("total"), Money("101.00", "USD"))

    def test_derived_and_fixed_fields_cannot_be_set_directly(self):
        self.invoice.total = Decimal("1.00")
        with self.assertRaises(InvalidInvoiceTotals):
            self.invoice.save()
        self.invoice.refresh_from_db()

        self.invoice.status = S.PAID
        with self.assertRaises(IllegalStatusTransition):
            self.invoice.save()
        self.invoice.refresh_from_db()

        # Attempt to change an immutable field
        self.invoice.invoice_number = "INV-CHANGED"
        with self.assertRaises(ValidationError):
            self.invoice.save()

    def test_draft_fields_save_with_version_bump(self):
        version = self.invoice.version
        self.invoice.notes = "Thanks for your business"
        self.invoice.due_date = TODAY + datetime.timedelta(days=10)
        self.invoice.save()
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.version, version + 1)

    def test_due_date_before_issue_date_rejected(self):
        self.invoice.due_date = TODAY - datetime.timedelta(days=1)
        with self.assertRaises(ValidationError):
            self.invoice.save()

    def test_overdue_check_is_pure(self):
        self.invoice.transition(S.SENT)
        late = datetime.datetime.combine(
            self.invoice.due_date + datetime.timedelta(days=2), datetime.time(12)
        )
        self.assertEqual(self.invoice.check_overdue(late), S.OVERDUE)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, S.SENT)


class ConcurrentTransitionTests(TestCase):
    def setUp(self):
        self.workspace = make_workspace()
        invoice = make_invoice(self.workspace, lines=[("1", "50.00")])
        invoice.transition(S.SENT)
        self.invoice_id = invoice.pk
        self.version = invoice.version

    def test_paid_and_cancelled_race_has_one_winner(self):
        first = Invoice.objects.get(pk=self.invoice_id)
        second = Invoice.objects.get(pk=self.invoice_id)

        first.transition(S.PAID, expected_version=self.version)
        with self.assertRaises(StaleVersion):
            second.transition(S.CANCELLED, expected_version=self.version)

        # the loser's copy is untouched
        self.assertEqual(second.status, S.SENT)
        stored = Invoice.objects.get(pk=self.invoice_id)
        self.assertEqual(stored.status, S.PAID)
        self.assertIsNone(stored.cancelled_at)
        self.assertEqual(stored.version, self.version + 1)

    def test_workflow_services_check_the_version(self):
        record_payment(self.invoice_id, expected_version=self.version)
        with self.assertRaises(StaleVersion):
            cancel_invoice(self.invoice_id, expected_version=self.version)

    def test_stale_full_save_rejected(self):
        invoice = make_invoice(self.workspace)
        first = Invoice.objects.get(pk=invoice.pk)
        second = Invoice.objects.get(pk=invoice.pk)

        first.notes = "first"
        first.save()
        second.notes = "second"
        with self.assertRaises(StaleVersion):
            second.save()

    def test_transition_between_check_and_write_is_not_overwritten(self):
        invoice = make_invoice(self.workspace, lines=[("1", "10.00")])
        editor = Invoice.objects.get(pk=invoice.pk)
        sender = Invoice.objects.get(pk=invoice.pk)
        real_validate = Invoice.validate_rules
        interleaved = []

        def validate_then_send(inv):
            real_validate(inv)
            if not interleaved:
                interleaved.append(True)
                sender.transition(S.SENT)

        editor.notes = "edited"
        with mock.patch.object(
            Invoice, "validate_rules", autospec=True, side_effect=validate_then_send
        ):
            with self.assertRaises(StaleVersion):
                editor.save()

        stored = Invoice.objects.get(pk=invoice.pk)
        self.assertEqual(stored.status, S.SENT)
        self.assertIsNotNone(stored.sent_at)
        self.assertEqual(stored.notes, "")
        self.assertEqual(stored.version, sender.version)

    def test_partial_save_cannot_bypass_the_rules(self):
        invoice = make_invoice(self.workspace, lines=[("1", "10.00")])
        invoice.status = S.REFUNDED
        with self.assertRaises(IllegalStatusTransition):
            invoice.save(update_fields=["status"])
        invoice.refresh_from_db()

        invoice.total = Decimal("0")
        with self.assertRaises(InvalidInvoiceTotals):
            invoice.save(update_fields=["total"])
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, S.DRAFT)
        self.assertEqual(invoice.money("total"), Money("10.00", "USD"))

    def test_partial_save_of_draft_field_bumps_version(self):
        invoice = make_invoice(self.workspace)
        version = invoice.version
        invoice.terms = "Net 30"
        invoice.save(update_fields=["terms"])
        invoice.refresh_from_db()
        self.assertEqual(invoice.terms, "Net 30")
        self.assertEqual(invoice.version, version + 1)


class InvoiceDeletionTests(TestCase):
    def setUp(self):
        self.workspace = make_workspace()

    def test_draft_can_be_deleted_with_its_lines(self):
        invoice = make_invoice(self.workspace, lines=[("1", "10.00")])
        invoice.delete()
        self.assertFalse(LineItem.objects.exists())

    def test_paid_invoice_cannot_be_deleted(self):
        invoice = make_invoice(self.workspace, lines=[("1", "10.00")])
        invoice.transition(S.SENT)
        invoice.transition(S.PAID)
        with self.assertRaises(InvoiceNotDeletable):
            invoice.delete()
        self.assertTrue(Invoice.objects.filter(pk=invoice.pk).exists())

    def test_refused_delete_keeps_the_transaction_usable(self):
        invoice = make_invoice(self.workspace, lines=[("1", "10.00")])
        invoice.transition(S.SENT)
        invoice.transition(S.PAID)
        with transaction.atomic():
            with self.assertRaises(InvoiceNotDeletable):
                invoice.delete()
            # still able to query inside the same transaction
            self.assertEqual(Invoice.objects.filter(pk=invoice.pk).count(), 1)

    def test_bulk_delete_refused_when_any_invoice_is_paid(self):
        draft = make_invoice(self.workspace)
        paid = make_invoice(self.workspace, lines=[("1", "10.00")])
        paid.transition(S.SENT)
        paid.transition(S.PAID)
        with self.assertRaises(InvoiceNotDeletable):
            Invoice.objects.for_workspace(self.workspace).delete()
        self.assertEqual(Invoice.objects.count(), 2)

        Invoice.objects.filter(pk=draft.pk).delete()
        self.assertFalse(Invoice.objects.filter(pk=draft.pk).exists())
