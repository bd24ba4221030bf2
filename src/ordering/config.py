"""Runtime settings for the ordering service.

Values are read from ``STOREFRONT_*`` environment variables (or a ``.env``
file). Secrets have development defaults so tests and local runs work out of
the box; production deployments must override them.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STOREFRONT_", env_file=".env", extra="ignore")

    # Guest order access
    guest_token_secret: str = "dev-guest-token-secret-change-me"
    guest_token_algorithm: str = "HS256"
    guest_token_ttl_days: int = 30
    guest_verify_max_attempts: int = 5
    guest_verify_window_seconds: int = 15 * 60

    # Webhook gateway
    webhook_secret: str = "whsec_dev_secret"
    webhook_tolerance_seconds: int = 300
    webhook_api_key: str = "sk_test_dev_key"
    webhook_currency: str = "usd"

    # Redirect gateway
    redirect_merchant_id: str = "00000000-0000-0000-0000-000000000000"
    redirect_sandbox: bool = True
    redirect_timeout_seconds: float = 10.0
    redirect_amount_multiplier: int = 10
    callback_base_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:3000"

    # Pricing
    tax_rate: float = 0.09
    standard_shipping_fee: float = 200_000.0
    free_shipping_threshold: float = 1_000_000.0
    express_surcharge: float = 150_000.0
    same_day_surcharge: float = 300_000.0
    bulk_discount_quantity: int = 5
    bulk_discount_rate: float = 0.10

    # Identifiers
    order_number_prefix: str = "KRN"
    tracking_code_prefix: str = "KN"

    # Optimistic concurrency
    max_write_attempts: int = 3

    # Logging
    log_level: str = "INFO"
    log_json: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
