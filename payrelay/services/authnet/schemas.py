"""Authorize.Net webhook shapes consumed by reconciliation."""

from decimal import Decimal

from pydantic import BaseModel


class CaptureEvent(BaseModel):
    """One gateway notification, reduced to what reconciliation needs."""

    event_type: str
    gateway_transaction_id: str = ""
    captured_amount: Decimal | None = None
    invoice_reference: str | None = None
    notification_id: str = ""
    description: str = ""
