"""Fetch and print the relay's view of one invoice."""

import argparse
import json

import httpx


def main() -> None:
    """CLI entrypoint for invoice balance checks."""

    parser = argparse.ArgumentParser(description="Fetch an invoice through the relay.")
    parser.add_argument("--relay-url", default="http://localhost:8000")
    parser.add_argument("invoice_id")
    args = parser.parse_args()

    resp = httpx.get(f"{args.relay_url}/invoice/{args.invoice_id}", timeout=30.0)
    resp.raise_for_status()
    print(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    main()
