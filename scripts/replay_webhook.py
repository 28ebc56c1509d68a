"""Sign and POST an Authorize.Net capture notification to the relay.

Useful for manual reconciliation of a capture the relay missed, and for
duplicate-delivery testing.
"""

import argparse
import json
import os
from uuid import uuid4

import httpx

from payrelay.services.authnet.webhook import sign


def build_notification(transaction_id: str, amount: str, invoice_id: str) -> dict:
    """Capture notification body in the gateway's shape."""

    return {
        "notificationId": str(uuid4()),
        "eventType": "net.authorize.payment.authcapture.created",
        "payload": {
            "responseCode": 1,
            "entityName": "transaction",
            "id": transaction_id,
            "authAmount": float(amount),
            "invoiceNumber": invoice_id,
            "description": f"invoice_ref={invoice_id}",
        },
    }


def main() -> None:
    """Parse CLI args, sign the body, and post it."""

    parser = argparse.ArgumentParser(description="Replay a signed capture webhook to the relay.")
    parser.add_argument("--relay-url", default="http://localhost:8000")
    parser.add_argument("--transaction-id", required=True)
    parser.add_argument("--amount", required=True)
    parser.add_argument("--invoice-id", required=True)
    parser.add_argument("--signature-key", default=os.getenv("AUTHNET_SIGNATURE_KEY"))
    args = parser.parse_args()

    if not args.signature_key:
        raise SystemExit("Provide --signature-key or set AUTHNET_SIGNATURE_KEY")

    body = json.dumps(build_notification(args.transaction_id, args.amount, args.invoice_id)).encode("utf-8")
    resp = httpx.post(
        f"{args.relay_url}/webhooks/authnet",
        content=body,
        headers={"content-type": "application/json", "x-anet-signature": sign(body, args.signature_key)},
        timeout=30.0,
    )
    print(f"status={resp.status_code}")
    print(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    main()
