"""Central environment-driven settings for the relay.

The process loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "payrelay"
    log_level: str = "INFO"

    zoho_client_id: str = ""
    zoho_client_secret: str = ""
    zoho_refresh_token: str = ""
    zoho_org_id: str = "852929343"
    zoho_accounts_url: str = "https://accounts.zoho.com/oauth/v2/token"
    zoho_books_url: str = "https://www.zohoapis.com/books/v3"
    zoho_payment_mode: str = "Authorize.Net"

    authnet_login_id: str = ""
    authnet_transaction_key: str = ""
    authnet_signature_key: str = ""
    authnet_api_url: str = "https://apitest.authorize.net/xml/v1/request.api"
    authnet_hosted_url: str = "https://test.authorize.net/payment/payment"

    host: str = "0.0.0.0"
    port: int = 8000
    public_base_url: str = "http://localhost:8000"
    http_timeout_seconds: float = 15.0
    # Empty disables the transaction ledger; balance gating still applies.
    redis_url: str = ""
    ledger_ttl_seconds: int = 30 * 86400
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = RelaySettings()
