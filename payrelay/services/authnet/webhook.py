"""Webhook signature verification and capture-event parsing.

Signatures are computed over the exact request bytes; the body must not be
parsed and re-serialized before `verify_signature` runs.
"""

import hashlib
import hmac
import re
from decimal import Decimal, InvalidOperation
from typing import Callable

from payrelay.services.authnet.schemas import CaptureEvent


SIGNATURE_RE = re.compile(r"^sha512=([0-9a-f]+)$", re.IGNORECASE)
INVOICE_REF_RE = re.compile(r"invoice_ref=([A-Za-z0-9]+)")


def verify_signature(raw_body: bytes, signature_header: str | None, secret_hex: str | None) -> bool:
    """Check an `X-ANet-Signature: SHA512=<hex>` header against `raw_body`.

    Never raises; a missing header, malformed header, or missing/non-hex
    secret yields False.
    """

    if not signature_header or not secret_hex:
        return False
    match = SIGNATURE_RE.match(signature_header.strip())
    if not match:
        return False
    try:
        key = bytes.fromhex(secret_hex.strip())
    except ValueError:
        return False
    expected = hmac.new(key, raw_body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, match.group(1).lower())


def sign(raw_body: bytes, secret_hex: str) -> str:
    """Header value the gateway would send for `raw_body`."""

    digest = hmac.new(bytes.fromhex(secret_hex), raw_body, hashlib.sha512).hexdigest()
    return f"SHA512={digest.upper()}"


def from_order_field(payload: dict) -> str | None:
    value = payload.get("invoiceNumber")
    if value is None:
        return None
    return str(value).strip() or None


def from_description(payload: dict) -> str | None:
    match = INVOICE_REF_RE.search(str(payload.get("description") or ""))
    return match.group(1) if match else None


# Tried in order; first non-empty result wins.
INVOICE_REFERENCE_EXTRACTORS: tuple[Callable[[dict], str | None], ...] = (
    from_order_field,
    from_description,
)


def extract_invoice_reference(payload: dict) -> str | None:
    for extractor in INVOICE_REFERENCE_EXTRACTORS:
        reference = extractor(payload)
        if reference:
            return reference
    return None


def _amount(value) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_capture_event(notification: dict) -> CaptureEvent:
    """Reduce a webhook notification body to a `CaptureEvent`."""

    payload = notification.get("payload")
    if not isinstance(payload, dict):
        payload = {}
    return CaptureEvent(
        event_type=str(notification.get("eventType") or ""),
        gateway_transaction_id=str(payload.get("id") or ""),
        captured_amount=_amount(payload.get("authAmount")),
        invoice_reference=extract_invoice_reference(payload),
        notification_id=str(notification.get("notificationId") or ""),
        description=str(payload.get("description") or ""),
    )
