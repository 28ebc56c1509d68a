"""Zoho Books records as the relay sees them."""

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator


class Invoice(BaseModel):
    """Invoice snapshot; `balance` is authoritative for "fully paid"."""

    invoice_id: str = Field(min_length=1)
    invoice_number: str = ""
    customer_id: str = ""
    customer_name: str = ""
    email: str = ""
    balance: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    date: str = ""
    due_date: str = ""
    status: str = ""

    @field_validator("balance", "total", mode="before")
    @classmethod
    def _json_number_to_decimal(cls, value):
        # Zoho sends JSON numbers; go through str so 12.34 stays 12.34.
        if isinstance(value, float):
            return Decimal(str(value))
        return value


class PaymentRecord(BaseModel):
    """Customer payment created against one invoice."""

    payment_id: str
    amount: Decimal
    date: str = ""
    reference_number: str = ""
    invoice_id: str
