from django.core.exceptions import ValidationError


class InvoicingError(ValidationError):
    """Base class for every invoicing rule violation.

    Subclasses Django's ValidationError so admin forms and views
    surface these like any other validation failure.
    """

    default_code = "invoicing_error"

    def __init__(self, message, code=None, params=None):
        super().__init__(message, code=code or self.default_code, params=params)


class CurrencyMismatch(InvoicingError):
    """Raised when two Money values with different currencies are combined."""
    default_code = "currency_mismatch"

    def __init__(self, left, right):
        self.left = left
        self.right = right
        super().__init__(f"Currency mismatch: {left} vs {right}")


class UnknownCurrency(InvoicingError):
    default_code = "unknown_currency"


class InvalidAmount(InvoicingError):
    """Raised for negative or malformed amounts where the domain forbids them."""
    default_code = "invalid_amount"


class InvalidDiscount(InvoicingError):
    default_code = "invalid_discount"


class InvalidInvoiceTotals(InvoicingError):
    default_code = "invalid_invoice_totals"


class IllegalStatusTransition(InvoicingError):
    """Raised when the requested status is not reachable from the current one."""
    default_code = "illegal_status_transition"

    def __init__(self, current, requested, reason=None):
        self.current = current
        self.requested = requested
        message = f"Cannot go from {current} to {requested}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvoiceNotEditable(InvoicingError):
    default_code = "invoice_not_editable"


class InvoiceNotDeletable(InvoicingError):
    default_code = "invoice_not_deletable"


class InvoiceNotSendable(InvoicingError):
    default_code = "invoice_not_sendable"


class StaleVersion(InvoicingError):
    """Raised when a write supplies a version older than the stored one."""
    default_code = "stale_version"

    def __init__(self, expected, actual=None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Invoice was modified concurrently "
            f"(expected version {expected}, stored version {actual})"
        )


class ClientNotFound(InvoicingError):
    default_code = "client_not_found"


class ClientHasInvoices(InvoicingError):
    default_code = "client_has_invoices"


class DuplicateInvoiceNumber(InvoicingError):
    default_code = "duplicate_invoice_number"
