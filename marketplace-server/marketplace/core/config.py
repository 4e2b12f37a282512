"""Application configuration using pydantic settings with structured sections."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 1 EUR = 655.957 XOF (fixed peg)
XOF_PER_EUR = Decimal("655.957")


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False


class DatabaseSettings(BaseModel):
    url: str = Field(default="sqlite+aiosqlite:///./marketplace.db", alias="url")
    echo: bool = False
    pool_size: Optional[int] = None
    max_overflow: Optional[int] = None


class SecuritySettings(BaseModel):
    secret_key: str = Field(default="change-me", min_length=8)
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    audit_level: str = "INFO"


class PaymentSettings(BaseModel):
    commission_percentage: Decimal = Decimal("0")
    allow_dev_auth_bypass: bool = False
    dev_account_username: str = "dev-test-user"
    max_provider_amount: Decimal = Decimal("10000")
    order_number_prefix: str = "MKT"


class PayPalSettings(BaseModel):
    client_id: Optional[str] = None
    secret: Optional[str] = None
    api_base: str = "https://api-m.sandbox.paypal.com"
    currency: str = "EUR"
    brand_name: str = "Marketplace"
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None
    webhook_id: Optional[str] = None
    timeout: float = 10.0


class StripeSettings(BaseModel):
    secret_key: Optional[str] = None
    webhook_secret: Optional[str] = None
    # seconds a signed webhook stays acceptable
    webhook_tolerance: int = 300
    currency: str = "EUR"
    payment_method_types: list[str] = ["card", "link"]


class CurrencySettings(BaseModel):
    base: str = "XOF"
    # units of each currency for one unit of the base currency
    rates: dict[str, Decimal] = {
        "XOF": Decimal("1"),
        "EUR": Decimal("1") / XOF_PER_EUR,
        "USD": Decimal("0.00165"),
    }
    rates_url: Optional[str] = None
    cache_ttl_seconds: int = 3600
    refresh_retry_seconds: int = 60


class WalletSettings(BaseModel):
    default_min_withdrawal_amount: Decimal = Decimal("5000")
    default_withdrawal_fee_percentage: Decimal = Decimal("1")
    payment_methods: list[str] = ["wave", "orange_money", "free_money", "bank_transfer", "paypal"]
    reconciliation_grace_minutes: int = 15


class Settings(BaseSettings):
    """Top-level application settings with nested sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    project_name: str = "Marketplace Payments"
    api_prefix: str = "/api"

    server: ServerSettings = ServerSettings()
    database: DatabaseSettings = DatabaseSettings()
    security: SecuritySettings = SecuritySettings()
    logging: LoggingSettings = LoggingSettings()
    payments: PaymentSettings = PaymentSettings()
    paypal: PayPalSettings = PayPalSettings()
    stripe: StripeSettings = StripeSettings()
    currency: CurrencySettings = CurrencySettings()
    wallet: WalletSettings = WalletSettings()

    @property
    def database_url(self) -> str:
        return self.database.url

    @property
    def host(self) -> str:
        return self.server.host

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def secret_key(self) -> str:
        return self.security.secret_key

    @property
    def algorithm(self) -> str:
        return self.security.algorithm

    @property
    def access_token_expire_minutes(self) -> int:
        return self.security.access_token_expire_minutes

    @property
    def dev_auth_bypass_enabled(self) -> bool:
        return self.environment == "development" and self.payments.allow_dev_auth_bypass


@lru_cache()
def get_settings() -> Settings:
    return Settings()
