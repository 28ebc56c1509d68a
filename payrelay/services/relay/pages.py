"""Minimal payer-facing HTML acknowledgements."""

from html import escape


def _page(title: str, body: str) -> str:
    return (
        "<!doctype html><html><head><meta charset='utf-8'>"
        f"<title>{escape(title)}</title></head><body>{body}</body></html>"
    )


def redirect_to_gateway(hosted_url: str, token: str, invoice_label: str) -> str:
    """Auto-submitting form that posts the token to the hosted payment page."""

    return _page(
        "Redirecting to payment",
        f"<p>Redirecting to secure payment for invoice {escape(invoice_label)}...</p>"
        f"<form id='pay' method='post' action='{escape(hosted_url, quote=True)}'>"
        f"<input type='hidden' name='token' value='{escape(token, quote=True)}'>"
        "<noscript><button type='submit'>Continue to payment</button></noscript>"
        "</form><script>document.getElementById('pay').submit();</script>",
    )


def message(title: str, text: str) -> str:
    return _page(title, f"<h1>{escape(title)}</h1><p>{escape(text)}</p>")
