import copy
import datetime
import logging
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone

from ..exceptions import (ClientNotFound, IllegalStatusTransition,
                          InvalidInvoiceTotals, InvoiceNotDeletable,
                          InvoiceNotEditable, StaleVersion)
from ..managers import InvoiceManager
from ..money import Money, get_currency, to_decimal
from ..services.lifecycle import (INITIAL_STATUS, STATUS_TIMESTAMPS,
                                  InvoiceStatus, evaluate_overdue,
                                  plan_transition)
from ..services.totals import (TAX_MODE_CHOICES, TAX_MODE_NONE, AbsoluteTax,
                               FlatRateTax, PerItemRateTax, compute_totals,
                               line_amount, parse_tax_rate,
                               tax_policy_for)
from .client import Client
from .workspace import CURRENCY_CHOICES, Workspace

logger = logging.getLogger(__name__)

MONEY_FIELD = dict(max_digits=18, decimal_places=3, default=Decimal("0"))

# Written only by recomputation (never by callers)
TOTAL_FIELDS = ("subtotal", "tax_amount", "discount_amount", "total")
# Written only by transition()
LIFECYCLE_FIELDS = ("status",) + tuple(STATUS_TIMESTAMPS.values())
# Written only by set_tax_policy()
TAX_POLICY_FIELDS = ("tax_mode", "tax_rate", "tax_fixed_amount")
# Fixed at creation
IMMUTABLE_FIELDS = ("workspace_id", "invoice_number", "public_id")

LINE_ITEM_FIELDS = ("description", "quantity", "unit_price", "notes", "tax_rate")


class Invoice(models.Model):
    """Aggregate root: client, issuer, owned line items and derived totals.

    Every write after creation goes through ``_write()``, a conditional
    UPDATE on ``version``; a caller holding an outdated copy gets
    ``StaleVersion`` and nothing changes, in memory or in the database.
    """

    workspace = models.ForeignKey(
        Workspace, on_delete=models.CASCADE, related_name="invoices"
    )
    # Referenced, not owned. RESTRICT blocks deleting a billed client but
    # still lets a whole workspace be torn down.
    client = models.ForeignKey(
        Client, on_delete=models.RESTRICT, related_name="invoices"
    )
    issued_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="issued_invoices",
    )

    invoice_number = models.CharField(max_length=64)
    # Opaque key for the unauthenticated recipient page
    public_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    issue_date = models.DateField()
    due_date = models.DateField()
    currency = models.CharField(max_length=3, choices=CURRENCY_CHOICES)
    status = models.CharField(
        max_length=10, choices=InvoiceStatus.choices, default=INITIAL_STATUS
    )

    # Derived from line items
    subtotal = models.DecimalField(**MONEY_FIELD)
    tax_amount = models.DecimalField(**MONEY_FIELD)
    discount_amount = models.DecimalField(**MONEY_FIELD)
    total = models.DecimalField(**MONEY_FIELD)

    # Tax policy inputs
    tax_mode = models.CharField(
        max_length=10, choices=TAX_MODE_CHOICES, default=TAX_MODE_NONE
    )
    tax_rate = models.DecimalField(max_digits=7, decimal_places=4, null=True, blank=True)
    tax_fixed_amount = models.DecimalField(
        max_digits=18, decimal_places=3, null=True, blank=True
    )

    description = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    terms = models.TextField(blank=True)

    sent_at = models.DateTimeField(null=True, blank=True)
    viewed_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    overdue_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    # Optimistic concurrency counter
    version = models.PositiveIntegerField(default=1)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = InvoiceManager()

    class Meta:
        indexes = [
            models.Index(fields=["workspace", "invoice_number"], name="invoicing_i_workspa_1f0c42_idx"),
            models.Index(fields=["workspace", "status"], name="invoicing_i_workspa_9a7d5e_idx"),
            models.Index(fields=["workspace", "issue_date"], name="invoicing_i_workspa_c3e816_idx"),
            models.Index(fields=["status", "due_date"], name="invoicing_i_status_4b6f09_idx"),
        ]
        constraints = [
            # Unique inside a workspace, duplicates allowed across workspaces
            models.UniqueConstraint(
                fields=["workspace", "invoice_number"],
                name="uq_invoice_workspace_number",
            ),
            models.CheckConstraint(
                condition=models.Q(due_date__gte=F("issue_date")),
                name="inv_due_after_issue",
            ),
            models.CheckConstraint(
                condition=models.Q(total__gte=0),
                name="inv_total_non_negative",
            ),
        ]
        ordering = ("-issue_date", "-id")

    def __str__(self):
        return f"Invoice {self.invoice_number}"

    # ---------- read helpers ----------
    def money(self, field):
        return Money(getattr(self, field) or Decimal("0"), self.currency).rounded()

    @property
    def is_editable(self):
        return self.status == InvoiceStatus.DRAFT

    @property
    def payment_recorded(self):
        return self.paid_at is not None

    @property
    def tax_policy(self):
        return tax_policy_for(
            self.tax_mode,
            rate=self.tax_rate,
            fixed_amount=self.tax_fixed_amount,
            currency=self.currency,
        )

    def ordered_line_items(self):
        return list(self.line_items.order_by("position", "id"))

    # ---------- validation ----------
    def validate_rules(self):
        """Domain checks, raised with their own error types."""
        if not (self.invoice_number or "").strip():
            raise ValidationError("Invoice number is required.")
        get_currency(self.currency)
        if self.issue_date and self.due_date and self.due_date < self.issue_date:
            raise ValidationError("Due date cannot be before the issue date.")
        if self.client_id is None or not Client.objects.filter(
            pk=self.client_id, workspace_id=self.workspace_id
        ).exists():
            raise ClientNotFound(
                f"Client {self.client_id} not found in workspace {self.workspace_id}"
            )

        if not self.pk:
            return
        orig = type(self).objects.get(pk=self.pk)
        if orig.version != self.version:
            raise StaleVersion(self.version, orig.version)
        # Fixed at creation
        changed = [f for f in IMMUTABLE_FIELDS if getattr(orig, f) != getattr(self, f)]
        if changed:
            raise ValidationError(f"Cannot modify {changed} after creation.")
        # Totals and lifecycle only move through their own operations
        changed = [
            f for f in TOTAL_FIELDS + TAX_POLICY_FIELDS
            if getattr(orig, f) != getattr(self, f)
        ]
        if changed:
            raise InvalidInvoiceTotals(f"{changed} are derived from line items.")
        changed = [f for f in LIFECYCLE_FIELDS if getattr(orig, f) != getattr(self, f)]
        if changed:
            raise IllegalStatusTransition(
                orig.status, self.status, "use transition() to change status"
            )
        # Everything else is frozen once the invoice leaves DRAFT
        if orig.status != InvoiceStatus.DRAFT:
            editable = [
                f.attname for f in self._meta.concrete_fields
                if f.attname not in ("version", "updated_at")
            ]
            changed = [f for f in editable if getattr(orig, f) != getattr(self, f)]
            if changed:
                raise InvoiceNotEditable(
                    f"Invoice {self.invoice_number} is {orig.status}; cannot modify {changed}."
                )
        elif orig.currency != self.currency and self.line_items.exists():
            raise InvoiceNotEditable("Cannot change the currency of an invoice with line items.")

    def clean(self):
        self.validate_rules()

    # Written by _write() itself
    WRITE_MANAGED_FIELDS = ("id", "version", "created_at", "updated_at")

    def save(self, *args, **kwargs):
        """Insert new rows; write existing ones through ``_write()``.

        Partial saves are validated too, so ``update_fields`` cannot reach
        status, timestamps, totals or the tax policy.
        """
        update_fields = kwargs.get("update_fields")
        if update_fields is None:
            self.clean_fields()
        self.validate_rules()
        if self._state.adding or kwargs.get("force_insert"):
            return super().save(*args, **kwargs)

        names = (
            [self._meta.get_field(name).attname for name in update_fields]
            if update_fields is not None
            else [f.attname for f in self._meta.concrete_fields]
        )
        self._write({
            name: getattr(self, name) for name in names
            if name not in self.WRITE_MANAGED_FIELDS
        })

    def delete(self, *args, **kwargs):
        # checked against the stored row; a stale copy may miss the payment
        if type(self).objects.filter(pk=self.pk, paid_at__isnull=False).exists():
            raise InvoiceNotDeletable(
                f"Cannot delete invoice {self.invoice_number}: a payment was recorded. "
                "Cancel or refund it instead."
            )
        return super().delete(*args, **kwargs)

    # ---------- versioned persistence ----------
    def _write(self, changes, expected_version=None):
        """Persist ``changes`` only if the stored version still matches."""
        expected = self.version if expected_version is None else expected_version
        changes = dict(changes, updated_at=timezone.now())
        updated = type(self).objects.filter(pk=self.pk, version=expected).update(
            version=F("version") + 1, **changes
        )
        if not updated:
            actual = (
                type(self).objects.filter(pk=self.pk)
                .values_list("version", flat=True).first()
            )
            logger.warning(
                "Rejected stale write to invoice %s (expected version %s, stored %s)",
                self.pk, expected, actual,
            )
            raise StaleVersion(expected, actual)
        for field, value in changes.items():
            setattr(self, field, value)
        self.version = expected + 1

    def _require_editable(self):
        if not self.is_editable:
            raise InvoiceNotEditable(
                f"Invoice {self.invoice_number} is {self.status}; only drafts can be edited."
            )

    # ---------- totals ----------
    def calculate_totals(self, lines=None, tax_policy=None, discount=None):
        """Pure recomputation; nothing is written."""
        if lines is None:
            lines = self.ordered_line_items()
        return compute_totals(
            lines,
            self.currency,
            tax_policy=tax_policy or self.tax_policy,
            discount=discount if discount is not None else self.money("discount_amount"),
        )

    @staticmethod
    def _totals_changes(totals):
        return {
            "subtotal": totals.subtotal.amount,
            "tax_amount": totals.tax_amount.amount,
            "discount_amount": totals.discount_amount.amount,
            "total": totals.total.amount,
        }

    def recompute_totals(self, expected_version=None):
        self._require_editable()
        totals = self.calculate_totals()
        self._write(self._totals_changes(totals), expected_version)
        return totals

    def apply_discount(self, amount, expected_version=None):
        """Set an absolute discount; must not exceed subtotal plus tax."""
        self._require_editable()
        if not isinstance(amount, Money):
            amount = Money(to_decimal(amount, "discount"), self.currency)
        totals = self.calculate_totals(discount=amount)
        self._write(self._totals_changes(totals), expected_version)
        return totals

    def set_tax_policy(self, policy, expected_version=None):
        self._require_editable()
        totals = self.calculate_totals(tax_policy=policy)
        changes = self._totals_changes(totals)
        changes.update(tax_mode=policy.mode, tax_rate=None, tax_fixed_amount=None)
        if isinstance(policy, FlatRateTax):
            changes["tax_rate"] = policy.rate
        elif isinstance(policy, PerItemRateTax):
            changes["tax_rate"] = policy.default_rate
        elif isinstance(policy, AbsoluteTax):
            changes["tax_fixed_amount"] = policy.amount.rounded().amount
        self._write(changes, expected_version)
        return totals

    # ---------- line items ----------
    def add_line_item(self, description, quantity, unit_price, notes="",
                      tax_rate=None, expected_version=None):
        self._require_editable()
        lines = self.ordered_line_items()
        item = LineItem(
            invoice=self,
            position=(lines[-1].position + 1) if lines else 0,
            description=description,
            quantity=to_decimal(quantity, "quantity"),
            unit_price=to_decimal(unit_price, "unit_price"),
            notes=notes,
            tax_rate=None if tax_rate is None else to_decimal(tax_rate, "tax_rate"),
        )
        item.validate(self.currency)
        totals = self.calculate_totals(lines=lines + [item])
        with transaction.atomic():
            item.save()
            self._write(self._totals_changes(totals), expected_version)
        return item

    def update_line_item(self, item_id, expected_version=None, **fields):
        self._require_editable()
        unknown = set(fields) - set(LINE_ITEM_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown line item fields: {sorted(unknown)}")
        lines = self.ordered_line_items()
        current = next((line for line in lines if line.pk == item_id), None)
        if current is None:
            raise LineItem.DoesNotExist(f"Line item {item_id} not on invoice {self.pk}")

        # edit a copy so a rejected update leaves the stored item untouched
        item = copy.copy(current)
        for name, value in fields.items():
            if name in ("quantity", "unit_price"):
                value = to_decimal(value, name)
            elif name == "tax_rate" and value is not None:
                value = to_decimal(value, name)
            setattr(item, name, value)
        item.validate(self.currency)
        totals = self.calculate_totals(
            lines=[item if line.pk == item_id else line for line in lines]
        )
        with transaction.atomic():
            item.save()
            self._write(self._totals_changes(totals), expected_version)
        return item

    def remove_line_item(self, item_id, expected_version=None):
        self._require_editable()
        lines = self.ordered_line_items()
        remaining = [line for line in lines if line.pk != item_id]
        if len(remaining) == len(lines):
            raise LineItem.DoesNotExist(f"Line item {item_id} not on invoice {self.pk}")
        totals = self.calculate_totals(lines=remaining)
        with transaction.atomic():
            LineItem.objects.filter(pk=item_id, invoice=self).delete()
            self._write(self._totals_changes(totals), expected_version)
        return totals

    # ---------- lifecycle ----------
    def transition(self, new_status, expected_version=None, now=None):
        """Move to ``new_status`` and stamp its timestamp (or revise to DRAFT)."""
        now = now or timezone.now()
        requested = InvoiceStatus(new_status)
        # a caller holding an old copy loses before any rule is evaluated
        if expected_version is not None and expected_version != self.version:
            raise StaleVersion(expected_version, self.version)
        if (
            self.status == InvoiceStatus.DRAFT
            and requested != InvoiceStatus.DRAFT
            and not self.line_items.exists()
        ):
            raise IllegalStatusTransition(
                self.status, requested, "invoice has no line items"
            )
        changes = plan_transition(
            self.status, requested, now, payment_recorded=self.payment_recorded
        )
        previous = self.status
        self._write(changes, expected_version)
        logger.info(
            "Invoice %s (%s) moved %s -> %s",
            self.invoice_number, self.pk, previous, self.status,
        )
        return previous

    def check_overdue(self, now=None):
        """Return OVERDUE if this invoice is past due, else None. Pure."""
        now = now or timezone.now()
        if isinstance(now, datetime.datetime) and timezone.is_aware(now):
            now = timezone.localtime(now)
        return evaluate_overdue(self.status, self.due_date, now)


class LineItem(models.Model):
    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="line_items"
    )
    # Insertion order, kept for display and PDF layout
    position = models.PositiveIntegerField(default=0)
    description = models.CharField(max_length=500)

    # quantity × unit_price = amount (rounded to the currency minor unit)
    quantity = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal("1"))
    unit_price = models.DecimalField(max_digits=18, decimal_places=4)
    amount = models.DecimalField(editable=False, **MONEY_FIELD)

    # Only used by the per-item tax policy
    tax_rate = models.DecimalField(max_digits=7, decimal_places=4, null=True, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ("position", "id")
        indexes = [models.Index(fields=["invoice", "position"], name="invoicing_l_invoice_6e2d93_idx")]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0) & models.Q(unit_price__gte=0),
                name="li_positive_quantity_non_negative_price",
            ),
        ]

    def __str__(self):
        return f"{self.description} ({self.quantity} x {self.unit_price})"

    def unit_price_money(self, currency=None):
        return Money(self.unit_price, currency or self.invoice.currency)

    def amount_money(self, currency=None):
        return Money(self.amount, currency or self.invoice.currency).rounded()

    def validate(self, currency):
        """Check the item and refresh its derived amount."""
        if not (self.description or "").strip():
            raise ValidationError("Line item description cannot be empty.")
        if self.tax_rate is not None:
            self.tax_rate = parse_tax_rate(self.tax_rate)
        self.amount = line_amount(self.quantity, self.unit_price_money(currency)).amount

    def save(self, *args, **kwargs):
        invoice = self.invoice
        if invoice.status != InvoiceStatus.DRAFT:
            raise InvoiceNotEditable(
                f"Invoice {invoice.invoice_number} is {invoice.status}; only drafts can be edited."
            )
        # amount is always recomputed, never taken from the caller
        self.validate(invoice.currency)
        self.full_clean(exclude=["invoice"], validate_constraints=False)
        return super().save(*args, **kwargs)
