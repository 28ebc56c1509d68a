"""Relay HTTP surface: payer redirect, gateway webhook, and ops endpoints.

`/pay` reads the invoice balance from Zoho Books and hands the payer to the
Authorize.Net hosted page. `/webhooks/authnet` verifies the signed capture
notification and reconciles it back into Zoho.
"""

import json
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

import httpx
import uvicorn
from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse

from payrelay.common.config import RelaySettings, settings
from payrelay.common.errors import AuthError, GatewayError, InvoiceNotFound, RelayError, UpstreamError
from payrelay.common.http import build_http_client
from payrelay.common.logging import configure_logging, invoice_id_ctx, logger, trace_id_ctx, transaction_id_ctx
from payrelay.common.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    metrics_response,
    webhook_signature_failures_total,
)
from payrelay.common.startup import log_startup_config, safe_config
from payrelay.common.tracing import instrument_app, setup_tracing
from payrelay.services.authnet.client import AuthorizeNetClient
from payrelay.services.authnet.webhook import parse_capture_event, verify_signature
from payrelay.services.reconciliation.ledger import TransactionLedger
from payrelay.services.reconciliation.service import ReconciliationService
from payrelay.services.relay import pages
from payrelay.services.zoho.client import ZohoBooksClient
from payrelay.services.zoho.token_cache import TokenCache

CONFIG_KEYS = [
    "SERVICE_NAME",
    "ZOHO_CLIENT_ID",
    "ZOHO_CLIENT_SECRET",
    "ZOHO_REFRESH_TOKEN",
    "ZOHO_ORG_ID",
    "AUTHNET_LOGIN_ID",
    "AUTHNET_TRANSACTION_KEY",
    "AUTHNET_SIGNATURE_KEY",
    "AUTHNET_API_URL",
    "PUBLIC_BASE_URL",
    "REDIS_URL",
]

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(settings.service_name, CONFIG_KEYS)


def _relay_error(exc: RelayError) -> HTTPException:
    """Map relay failures to payer-facing HTTP errors."""

    if isinstance(exc, InvoiceNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, AuthError):
        return HTTPException(status_code=502, detail=f"accounting authentication failed: {exc}")
    if isinstance(exc, GatewayError):
        return HTTPException(status_code=502, detail=f"payment gateway error: {exc}")
    if isinstance(exc, UpstreamError):
        return HTTPException(status_code=502, detail=f"accounting system error: {exc}")
    return HTTPException(status_code=500, detail=str(exc))


def create_app(
    config: RelaySettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    ledger: TransactionLedger | None = None,
) -> FastAPI:
    """Wire clients, cache, and reconciler into one FastAPI app."""

    config = config or settings
    http = build_http_client(config.http_timeout_seconds, transport)
    tokens = TokenCache(
        http,
        config.zoho_accounts_url,
        config.zoho_client_id,
        config.zoho_client_secret,
        config.zoho_refresh_token,
    )
    books = ZohoBooksClient(http, tokens, config.zoho_books_url, config.zoho_org_id, config.zoho_payment_mode)
    gateway = AuthorizeNetClient(
        http,
        config.authnet_api_url,
        config.authnet_hosted_url,
        config.authnet_login_id,
        config.authnet_transaction_key,
        config.public_base_url,
    )
    if ledger is None and config.redis_url:
        ledger = TransactionLedger.from_url(config.redis_url, config.ledger_ttl_seconds)
    reconciler = ReconciliationService(books, ledger, service_name=config.service_name)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Close pooled connections on shutdown."""

        yield
        await http.aclose()
        if ledger is not None:
            await ledger.close()

    app = FastAPI(title="Payments Relay", lifespan=lifespan)
    app.state.books = books
    app.state.gateway = gateway
    app.state.reconciler = reconciler
    instrument_app(app)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Record request count and latency for every HTTP call."""

        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=config.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=config.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    @app.get("/", response_class=PlainTextResponse)
    def root():
        return "payments relay is running"

    @app.get("/health")
    def health():
        """Liveness check for the container."""

        return {"ok": True}

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    @app.get("/debug/env")
    def debug_env():
        """Redacted view of the configuration this process sees."""

        return safe_config(CONFIG_KEYS)

    @app.get("/invoice/{invoice_id}")
    async def get_invoice(invoice_id: str):
        """Current Zoho view of one invoice."""

        invoice_id_ctx.set(invoice_id)
        try:
            invoice = await books.fetch_invoice(invoice_id)
        except RelayError as exc:
            raise _relay_error(exc) from exc
        return invoice.model_dump(mode="json")

    @app.get("/pay", response_class=HTMLResponse)
    async def pay(
        invoice_id: str = Query(min_length=1),
        x_trace_id: str | None = Header(default=None),
    ):
        """Look up the invoice balance and send the payer to the hosted page."""

        trace_id_ctx.set(x_trace_id or str(uuid4()))
        invoice_id_ctx.set(invoice_id)
        try:
            invoice = await books.fetch_invoice(invoice_id)
            if invoice.balance <= 0:
                logger.info("pay requested for settled invoice")
                label = invoice.invoice_number or invoice_id
                return HTMLResponse(
                    pages.message("Already paid", f"Invoice {label} has no balance due."),
                    status_code=409,
                )
            token = await gateway.create_hosted_payment_token(
                invoice.balance, invoice.invoice_id, invoice.invoice_number or None
            )
        except RelayError as exc:
            logger.error("pay flow failed error=%s", exc)
            raise _relay_error(exc) from exc
        logger.info("hosted payment token issued amount=%s", invoice.balance)
        return pages.redirect_to_gateway(gateway.hosted_payment_url, token, invoice.invoice_number or invoice_id)

    @app.get("/payment/success", response_class=HTMLResponse)
    def payment_success(invoice_id: str = ""):
        """Payer acknowledgement; the capture is recorded by the webhook."""

        logger.info("payer returned from gateway invoice_id=%s", invoice_id)
        return pages.message(
            "Payment received",
            "Thank you. Your payment is being applied to your invoice.",
        )

    @app.get("/payment/cancel", response_class=HTMLResponse)
    def payment_cancel(invoice_id: str = ""):
        logger.info("payer cancelled at gateway invoice_id=%s", invoice_id)
        return pages.message("Payment cancelled", "No payment was taken. You can try again at any time.")

    @app.post("/webhooks/authnet")
    async def authnet_webhook(
        request: Request,
        x_anet_signature: str | None = Header(default=None),
    ):
        """Verify and reconcile a gateway notification.

        Any delivery with a valid signature is acknowledged with 200, whatever
        the business outcome or internal failure, so the gateway does not
        redeliver it indefinitely.
        """

        raw_body = await request.body()
        trace_id_ctx.set(str(uuid4()))
        if not verify_signature(raw_body, x_anet_signature, config.authnet_signature_key):
            webhook_signature_failures_total.inc()
            logger.warning("webhook rejected: invalid signature header_present=%s", x_anet_signature is not None)
            return JSONResponse(status_code=401, content={"ok": False, "error": "invalid signature"})

        try:
            notification = json.loads(raw_body)
        except ValueError:
            notification = None
        if not isinstance(notification, dict):
            logger.warning("webhook body is not a JSON object")
            return {"ok": False, "outcome": "malformed"}

        event = parse_capture_event(notification)
        transaction_id_ctx.set(event.gateway_transaction_id)
        invoice_id_ctx.set(event.invoice_reference or "")
        try:
            result = await reconciler.reconcile(event)
        except Exception as exc:
            logger.exception("reconciliation failed notification_id=%s error=%s", event.notification_id, exc)
            return {"ok": False, "outcome": "error"}
        return {
            "ok": True,
            "outcome": result.outcome.value,
            "invoice_id": result.invoice_id,
            "transaction_id": result.transaction_id,
        }

    return app


app = create_app()


def run() -> None:
    """Serve the relay (`payrelay` console script)."""

    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
