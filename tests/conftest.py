"""Shared fixtures: a stateful fake of Zoho Books and Authorize.Net.

All outbound HTTP is served by `httpx.MockTransport`; no network access.
"""

import codecs
import json
import os
from decimal import Decimal

# Must be set before payrelay settings are first imported.
os.environ["OTEL_EXPORTER_OTLP_ENDPOINT"] = ""
os.environ.setdefault("REDIS_URL", "")

import httpx
import pytest

from payrelay.common.config import RelaySettings


SIGNATURE_KEY = "0123456789ABCDEF" * 8


class FakeUpstream:
    """In-memory Zoho org and gateway; payment writes reduce invoice balances."""

    def __init__(self) -> None:
        self.invoices: dict[str, dict] = {}
        self.payments: list[dict] = []
        self.token_calls = 0
        self.gateway_requests: list[dict] = []
        self.token_response: dict = {"access_token": "zoho-token-1", "expires_in": 3600}
        self.gateway_response: dict = {
            "token": "hosted-token-abc",
            "messages": {"resultCode": "Ok", "message": [{"code": "I00001", "text": "Successful."}]},
        }
        self.payment_write_error: dict | None = None
        self.payment_write_timeout = False
        self.seen_auth_headers: list[str] = []

    def add_invoice(self, invoice_id: str, balance: str, **fields) -> None:
        self.invoices[invoice_id] = {
            "invoice_id": invoice_id,
            "invoice_number": fields.pop("invoice_number", f"INV-{invoice_id[-4:]}"),
            "customer_id": fields.pop("customer_id", "CUST-1"),
            "customer_name": "Acme Plumbing",
            "email": "billing@acme.test",
            "balance": float(balance),
            "total": float(balance),
            "date": "2026-10-01",
            "due_date": "2026-10-31",
            "status": "sent",
            **fields,
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        path = request.url.path
        if host == "accounts.zoho.com":
            self.token_calls += 1
            return httpx.Response(200, json=self.token_response)
        if host == "www.zohoapis.com":
            self.seen_auth_headers.append(request.headers.get("authorization", ""))
            if request.method == "GET" and path.startswith("/books/v3/invoices/"):
                invoice = self.invoices.get(path.rsplit("/", 1)[1])
                if invoice is None:
                    return httpx.Response(404, json={"code": 1002, "message": "Invoice does not exist."})
                return httpx.Response(200, json={"code": 0, "message": "success", "invoice": dict(invoice)})
            if request.method == "POST" and path == "/books/v3/customerpayments":
                if self.payment_write_timeout:
                    raise httpx.ReadTimeout("timed out", request=request)
                if self.payment_write_error is not None:
                    return httpx.Response(400, json=self.payment_write_error)
                body = json.loads(request.content)
                for applied in body["invoices"]:
                    invoice = self.invoices[applied["invoice_id"]]
                    remaining = Decimal(str(invoice["balance"])) - Decimal(str(applied["amount_applied"]))
                    invoice["balance"] = float(remaining)
                self.payments.append(body)
                return httpx.Response(
                    201,
                    json={
                        "code": 0,
                        "message": "The payment has been created.",
                        "payment": {
                            "payment_id": f"PAY-{len(self.payments)}",
                            "amount": body["amount"],
                            "date": body["date"],
                            "reference_number": body["reference_number"],
                        },
                    },
                )
        if host == "apitest.authorize.net":
            self.gateway_requests.append(json.loads(request.content))
            return httpx.Response(200, content=codecs.BOM_UTF8 + json.dumps(self.gateway_response).encode())
        return httpx.Response(404, json={"code": 404, "message": f"unexpected {request.method} {request.url}"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=5.0)


@pytest.fixture
def anyio_backend() -> str:
    """Run async tests on asyncio only."""

    return "asyncio"


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def relay_settings() -> RelaySettings:
    return RelaySettings(
        zoho_client_id="client-id",
        zoho_client_secret="client-secret",
        zoho_refresh_token="refresh-token",
        zoho_org_id="852929343",
        authnet_login_id="login-id",
        authnet_transaction_key="txn-key",
        authnet_signature_key=SIGNATURE_KEY,
        public_base_url="https://pay.example.com",
        redis_url="",
        otel_exporter_otlp_endpoint="",
    )
