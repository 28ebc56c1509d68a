"""Failure types raised at the relay's I/O seams.

Business outcomes of reconciliation (already settled, overpayment, ...) are
not exceptions; see `ReconciliationOutcome`.
"""


class RelayError(Exception):
    """Base class for relay failures."""


class AuthError(RelayError):
    """Credential refresh against the accounting identity provider failed."""


class UpstreamError(RelayError):
    """An upstream call was unreachable, timed out, or reported failure."""

    def __init__(self, message: str, status_code: int | None = None, code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class InvoiceNotFound(RelayError):
    """The accounting system has no invoice with the requested id."""

    def __init__(self, invoice_id: str) -> None:
        super().__init__(f"invoice {invoice_id} not found")
        self.invoice_id = invoice_id


class GatewayError(RelayError):
    """The payment gateway did not issue a hosted payment token."""
