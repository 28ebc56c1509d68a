"""Zoho Books client request shapes and error discrimination."""

from datetime import date
from decimal import Decimal

import httpx
import pytest

from payrelay.common.errors import InvoiceNotFound, UpstreamError
from payrelay.services.zoho.client import ZohoBooksClient
from payrelay.services.zoho.token_cache import TokenCache


def make_books(http: httpx.AsyncClient) -> ZohoBooksClient:
    tokens = TokenCache(http, "https://accounts.zoho.com/oauth/v2/token", "cid", "secret", "refresh")
    return ZohoBooksClient(http, tokens, "https://www.zohoapis.com/books/v3", "852929343")


@pytest.mark.anyio
async def test_fetch_invoice_returns_balance(upstream):
    upstream.add_invoice("460000000012345", "100.00", invoice_number="INV-000042")
    books = make_books(upstream.client())

    invoice = await books.fetch_invoice("460000000012345")

    assert invoice.invoice_number == "INV-000042"
    assert invoice.balance == Decimal("100.00")
    assert upstream.seen_auth_headers == ["Zoho-oauthtoken zoho-token-1"]


@pytest.mark.anyio
async def test_fetch_missing_invoice(upstream):
    books = make_books(upstream.client())

    with pytest.raises(InvoiceNotFound):
        await books.fetch_invoice("nope")


@pytest.mark.anyio
async def test_nonzero_code_is_upstream_error_even_on_http_200():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "accounts.zoho.com":
            return httpx.Response(200, json={"access_token": "t", "expires_in": 3600})
        return httpx.Response(200, json={"code": 57, "message": "You are not authorized to perform this operation"})

    books = make_books(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(UpstreamError) as exc_info:
        await books.fetch_invoice("1")
    assert exc_info.value.code == 57


@pytest.mark.anyio
async def test_timeout_surfaces_as_upstream_error():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "accounts.zoho.com":
            return httpx.Response(200, json={"access_token": "t", "expires_in": 3600})
        raise httpx.ReadTimeout("timed out", request=request)

    books = make_books(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(UpstreamError, match="timed out"):
        await books.fetch_invoice("1")


@pytest.mark.anyio
async def test_unauthorized_response_drops_cached_token():
    calls = {"token": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "accounts.zoho.com":
            calls["token"] += 1
            return httpx.Response(200, json={"access_token": f"t{calls['token']}", "expires_in": 3600})
        return httpx.Response(401, json={"code": 14, "message": "Invalid value passed for authtoken."})

    books = make_books(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    for _ in range(2):
        with pytest.raises(UpstreamError):
            await books.fetch_invoice("1")
    assert calls["token"] == 2


@pytest.mark.anyio
async def test_record_payment_body(upstream):
    upstream.add_invoice("460000000012345", "100.00", customer_id="CUST-9")
    books = make_books(upstream.client())
    invoice = await books.fetch_invoice("460000000012345")

    record = await books.record_payment(
        invoice,
        Decimal("40"),
        reference="60012345678",
        description="Authorize.Net transaction 60012345678",
        payment_date=date(2026, 10, 18),
    )

    assert upstream.payments == [
        {
            "customer_id": "CUST-9",
            "amount": 40.0,
            "date": "2026-10-18",
            "payment_mode": "Authorize.Net",
            "reference_number": "60012345678",
            "description": "Authorize.Net transaction 60012345678",
            "invoices": [{"invoice_id": "460000000012345", "amount_applied": 40.0}],
        }
    ]
    assert record.payment_id == "PAY-1"
    assert record.invoice_id == "460000000012345"
    assert upstream.invoices["460000000012345"]["balance"] == 60.0


@pytest.mark.anyio
async def test_record_payment_failure(upstream):
    upstream.add_invoice("1", "10.00")
    upstream.payment_write_error = {"code": 24016, "message": "Amount applied exceeds balance."}
    books = make_books(upstream.client())
    invoice = await books.fetch_invoice("1")

    with pytest.raises(UpstreamError, match="exceeds balance"):
        await books.record_payment(invoice, Decimal("10.00"), reference="x")


@pytest.mark.anyio
async def test_organization_scope_on_every_call():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "accounts.zoho.com":
            return httpx.Response(200, json={"access_token": "t", "expires_in": 3600})
        seen.append(request)
        return httpx.Response(200, json={"code": 0, "invoice": {"invoice_id": "1", "balance": 5}})

    books = make_books(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    await books.fetch_invoice("1")

    assert seen[0].url.params["organization_id"] == "852929343"


@pytest.mark.anyio
async def test_record_payment_rounds_half_up(upstream):
    upstream.add_invoice("1", "10.00")
    books = make_books(upstream.client())
    invoice = await books.fetch_invoice("1")

    record = await books.record_payment(invoice, Decimal("0.125"), reference="x")

    assert upstream.payments[0]["amount"] == 0.13
    assert upstream.payments[0]["invoices"][0]["amount_applied"] == 0.13
    assert record.amount == Decimal("0.13")
