"""Reconciliation outcomes."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel


class ReconciliationOutcome(str, Enum):
    APPLIED = "applied"
    IGNORED = "ignored"
    NO_INVOICE_FOUND = "no_invoice_found"
    ALREADY_SETTLED = "already_settled"
    OVERPAYMENT = "overpayment"
    INVALID_AMOUNT = "invalid_amount"
    DUPLICATE = "duplicate"


class ReconciliationResult(BaseModel):
    """Business outcome of one capture event; never an HTTP concern."""

    outcome: ReconciliationOutcome
    invoice_id: str | None = None
    transaction_id: str = ""
    captured_amount: Decimal | None = None
    balance: Decimal | None = None
    payment_id: str | None = None
    detail: str = ""
