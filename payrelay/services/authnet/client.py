"""Authorize.Net Accept Hosted token issuance.

The invoice id rides through the gateway twice: in `order.invoiceNumber` (when
it fits) and as `invoice_ref=<id>` in the order description. The return and
cancel URLs carry it as a query parameter as well.
"""

import json
from decimal import ROUND_HALF_UP, Decimal
from urllib.parse import urlencode

import httpx

from payrelay.common.errors import GatewayError, UpstreamError
from payrelay.common.http import send
from payrelay.common.logging import logger
from payrelay.common.metrics import hosted_token_requests_total


INVOICE_NUMBER_MAX_LENGTH = 20
DESCRIPTION_MAX_LENGTH = 255


def format_amount(amount: Decimal) -> str:
    """Render an amount with exactly two fractional digits."""

    return str(amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def invoice_ref_token(invoice_id: str) -> str:
    return f"invoice_ref={invoice_id}"


class AuthorizeNetClient:
    """Requests hosted payment page tokens for invoice payments."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_url: str,
        hosted_url: str,
        login_id: str,
        transaction_key: str,
        public_base_url: str,
    ) -> None:
        self.http = http
        self.api_url = api_url
        self.hosted_payment_url = hosted_url
        self.login_id = login_id
        self.transaction_key = transaction_key
        self.public_base_url = public_base_url.rstrip("/")

    def callback_url(self, path: str, invoice_id: str) -> str:
        return f"{self.public_base_url}{path}?{urlencode({'invoice_id': invoice_id})}"

    def build_request(self, amount: Decimal, invoice_id: str, display_number: str | None = None) -> dict:
        """Assemble `getHostedPaymentPageRequest`; key order follows the gateway schema."""

        label = display_number or invoice_id
        description = f"Invoice {label} {invoice_ref_token(invoice_id)}"[:DESCRIPTION_MAX_LENGTH]
        order: dict[str, str] = {}
        if len(invoice_id) <= INVOICE_NUMBER_MAX_LENGTH:
            order["invoiceNumber"] = invoice_id
        order["description"] = description

        return_options = {
            "showReceipt": False,
            "url": self.callback_url("/payment/success", invoice_id),
            "urlText": "Continue",
            "cancelUrl": self.callback_url("/payment/cancel", invoice_id),
            "cancelUrlText": "Cancel",
        }
        return {
            "getHostedPaymentPageRequest": {
                "merchantAuthentication": {
                    "name": self.login_id,
                    "transactionKey": self.transaction_key,
                },
                "transactionRequest": {
                    "transactionType": "authCaptureTransaction",
                    "amount": format_amount(amount),
                    "order": order,
                },
                "hostedPaymentSettings": {
                    "setting": [
                        {
                            "settingName": "hostedPaymentReturnOptions",
                            "settingValue": json.dumps(return_options),
                        },
                        {
                            "settingName": "hostedPaymentOrderOptions",
                            "settingValue": json.dumps({"show": True, "merchantName": ""}),
                        },
                    ]
                },
            }
        }

    async def create_hosted_payment_token(
        self, amount: Decimal, invoice_id: str, display_number: str | None = None
    ) -> str:
        """Return a hosted payment page token for `amount` against `invoice_id`."""

        if not (self.login_id and self.transaction_key):
            hosted_token_requests_total.labels(result="unconfigured").inc()
            raise GatewayError("Authorize.Net credentials are not configured")
        if amount <= 0:
            raise GatewayError(f"refusing to request a token for amount {amount}")

        try:
            resp = await send(
                self.http,
                "authnet",
                "POST",
                self.api_url,
                json=self.build_request(amount, invoice_id, display_number),
            )
        except UpstreamError as exc:
            hosted_token_requests_total.labels(result="transport_error").inc()
            raise GatewayError(str(exc)) from exc

        try:
            # The gateway prefixes its JSON with a byte order mark.
            body = json.loads(resp.content.decode("utf-8-sig"))
        except ValueError as exc:
            hosted_token_requests_total.labels(result="failed").inc()
            raise GatewayError(f"Authorize.Net returned a non-JSON response (status={resp.status_code})") from exc

        token = body.get("token") if isinstance(body, dict) else None
        if not token:
            hosted_token_requests_total.labels(result="failed").inc()
            message = _gateway_message(body) or "Authorize.Net did not return a token"
            logger.error("hosted payment token request failed invoice_id=%s message=%s", invoice_id, message)
            raise GatewayError(message)

        hosted_token_requests_total.labels(result="ok").inc()
        return token


def _gateway_message(body) -> str:
    if not isinstance(body, dict):
        return ""
    messages = (body.get("messages") or {}).get("message") or []
    return "; ".join(f"{m.get('code', '')}: {m.get('text', '')}" for m in messages if isinstance(m, dict))
