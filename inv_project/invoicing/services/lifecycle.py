import datetime

from django.db import models

from ..exceptions import IllegalStatusTransition


class InvoiceStatus(models.TextChoices):
    DRAFT = "DRAFT", "Draft"
    SENT = "SENT", "Sent"
    VIEWED = "VIEWED", "Viewed"
    PAID = "PAID", "Paid"
    OVERDUE = "OVERDUE", "Overdue"
    CANCELLED = "CANCELLED", "Cancelled"
    REFUNDED = "REFUNDED", "Refunded"


S = InvoiceStatus

INITIAL_STATUS = S.DRAFT
TERMINAL_STATUSES = frozenset({S.CANCELLED, S.REFUNDED})

# Forward edges: requested status -> statuses it may be reached from
FORWARD_TRANSITIONS = {
    S.SENT: frozenset({S.DRAFT}),
    S.VIEWED: frozenset({S.SENT}),
    S.PAID: frozenset({S.SENT, S.VIEWED, S.OVERDUE}),
    S.OVERDUE: frozenset({S.SENT, S.VIEWED}),
    S.CANCELLED: frozenset({S.DRAFT, S.SENT, S.VIEWED, S.OVERDUE}),
    S.REFUNDED: frozenset({S.PAID}),
}

# Timestamp set when a status is entered
STATUS_TIMESTAMPS = {
    S.SENT: "sent_at",
    S.VIEWED: "viewed_at",
    S.PAID: "paid_at",
    S.OVERDUE: "overdue_at",
    S.CANCELLED: "cancelled_at",
    S.REFUNDED: "refunded_at",
}

# Cleared by "revise" (back to DRAFT)
REVISE_CLEARS = ("sent_at", "viewed_at", "overdue_at")

# Statuses that accept a send/reminder without leaving them
RESENDABLE_STATUSES = frozenset({S.SENT, S.VIEWED, S.OVERDUE})
OVERDUE_CANDIDATES = frozenset({S.SENT, S.VIEWED})


def allowed_transitions(current, payment_recorded=False):
    """Statuses reachable from ``current``."""
    current = S(current)
    targets = {to for to, sources in FORWARD_TRANSITIONS.items() if current in sources}
    if (
        current not in TERMINAL_STATUSES
        and current != S.DRAFT
        and not payment_recorded
    ):
        targets.add(S.DRAFT)
    return frozenset(targets)


def check_transition(current, requested, payment_recorded=False):
    """Raise IllegalStatusTransition unless ``current -> requested`` is legal."""
    current, requested = S(current), S(requested)

    if current in TERMINAL_STATUSES:
        raise IllegalStatusTransition(current, requested, f"{current} is terminal")

    if requested == S.DRAFT:
        if current == S.DRAFT:
            raise IllegalStatusTransition(current, requested, "already a draft")
        if payment_recorded:
            raise IllegalStatusTransition(
                current, requested, "cannot revise after a payment was recorded"
            )
        return

    if current not in FORWARD_TRANSITIONS.get(requested, ()):
        raise IllegalStatusTransition(current, requested)


def plan_transition(current, requested, now, payment_recorded=False):
    """Return the field updates a legal transition produces.

    Pure: nothing is written. Raises IllegalStatusTransition otherwise.
    """
    check_transition(current, requested, payment_recorded=payment_recorded)
    requested = S(requested)
    changes = {"status": requested}
    if requested == S.DRAFT:
        for field in REVISE_CLEARS:
            changes[field] = None
    else:
        changes[STATUS_TIMESTAMPS[requested]] = now
    return changes


def evaluate_overdue(status, due_date, now):
    """Return ``OVERDUE`` when a sent invoice is past its due date, else None.

    An invoice is overdue from the day after ``due_date``.
    ``now`` may be a date or a datetime.
    """
    if S(status) not in OVERDUE_CANDIDATES or due_date is None:
        return None
    today = now.date() if isinstance(now, datetime.datetime) else now
    if due_date < today:
        return S.OVERDUE
    return None
