"""Zoho Books invoice reads and customer payment writes.

Zoho reports success with `code == 0` in the JSON body; the HTTP status alone
is not trusted. No business rules live here: callers validate amounts against
the current balance before calling `record_payment`.
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

import httpx

from payrelay.common.errors import InvoiceNotFound, UpstreamError
from payrelay.common.http import send
from payrelay.common.logging import logger
from payrelay.services.zoho.schemas import Invoice, PaymentRecord
from payrelay.services.zoho.token_cache import TokenCache


# Zoho codes for "no such invoice" (1002) and an unroutable id (5).
INVOICE_MISSING_CODES = {5, 1002}


class ZohoBooksClient:
    """Narrow Zoho Books API client scoped to one organization."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        tokens: TokenCache,
        base_url: str,
        organization_id: str,
        payment_mode: str = "Authorize.Net",
    ) -> None:
        self.http = http
        self.tokens = tokens
        self.base_url = base_url.rstrip("/")
        self.organization_id = organization_id
        self.payment_mode = payment_mode

    async def _call(self, method: str, path: str, **kwargs) -> tuple[httpx.Response, dict]:
        token = await self.tokens.get_access_token()
        resp = await send(
            self.http,
            "zoho_books",
            method,
            f"{self.base_url}{path}",
            params={"organization_id": self.organization_id},
            headers={"Authorization": f"Zoho-oauthtoken {token}"},
            **kwargs,
        )
        if resp.status_code == 401:
            self.tokens.invalidate()
        try:
            body = resp.json()
        except ValueError as exc:
            raise UpstreamError(
                f"Zoho returned a non-JSON response (status={resp.status_code})",
                status_code=resp.status_code,
            ) from exc
        if not isinstance(body, dict):
            raise UpstreamError("Zoho response malformed", status_code=resp.status_code)
        return resp, body

    async def fetch_invoice(self, invoice_id: str) -> Invoice:
        """Read one invoice with its current balance."""

        resp, body = await self._call("GET", f"/invoices/{invoice_id}")
        code = body.get("code")
        if code != 0:
            if code in INVOICE_MISSING_CODES or resp.status_code == 404:
                raise InvoiceNotFound(invoice_id)
            logger.error("zoho invoice fetch failed code=%s message=%s", code, body.get("message"))
            raise UpstreamError(
                body.get("message") or "Zoho invoice fetch failed",
                status_code=resp.status_code,
                code=code,
            )
        invoice = body.get("invoice")
        if not isinstance(invoice, dict):
            raise UpstreamError("Zoho invoice response missing invoice", status_code=resp.status_code)
        return Invoice.model_validate(invoice)

    async def record_payment(
        self,
        invoice: Invoice,
        amount: Decimal,
        reference: str,
        description: str | None = None,
        payment_date: date | None = None,
    ) -> PaymentRecord:
        """Create a customer payment applying `amount` to `invoice`."""

        amount = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        paid_on = (payment_date or datetime.now(timezone.utc).date()).isoformat()
        payload = {
            "customer_id": invoice.customer_id,
            "amount": float(amount),
            "date": paid_on,
            "payment_mode": self.payment_mode,
            "reference_number": reference,
            "description": description or "",
            "invoices": [{"invoice_id": invoice.invoice_id, "amount_applied": float(amount)}],
        }
        resp, body = await self._call("POST", "/customerpayments", json=payload)
        code = body.get("code")
        if code != 0:
            logger.error("zoho payment write failed code=%s message=%s", code, body.get("message"))
            raise UpstreamError(
                body.get("message") or "Zoho payment write failed",
                status_code=resp.status_code,
                code=code,
            )
        payment = body.get("payment") or {}
        return PaymentRecord(
            payment_id=str(payment.get("payment_id", "")),
            amount=Decimal(str(payment.get("amount", amount))),
            date=payment.get("date", paid_on),
            reference_number=payment.get("reference_number", reference),
            invoice_id=invoice.invoice_id,
        )
