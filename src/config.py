"""Configuration module for the Ace Fixings storefront client.

Uses pydantic-settings for environment variable loading and validation.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Platform(str, Enum):
    """Where the client runs.

    NATIVE talks to Shopify directly. WEB is subject to browser CORS rules,
    so Storefront calls go through the relay endpoint and login is disabled.
    """

    NATIVE = "native"
    WEB = "web"


class TagMatchMode(str, Enum):
    """Tag matching strategy for customer tag checks."""

    EXACT = "exact"
    CONTAINS = "contains"
    REGEX = "regex"


class LogFormat(str, Enum):
    """Log output format."""

    CONSOLE = "console"
    JSON = "json"


def _strip_domain(value: str) -> str:
    value = value.strip()
    for prefix in ("https://", "http://"):
        if value.startswith(prefix):
            value = value[len(prefix) :]
    return value.rstrip("/")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Environment variables can be set directly or via a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storefront / Customer Account configuration
    shop_domain: str = Field(
        default="acefixings.com",
        description="Public shop domain used for Storefront and Customer Account APIs",
    )
    shopify_api_version: str = Field(
        default="2025-07",
        description="Shopify API version",
    )
    shopify_storefront_token: str | None = Field(
        default=None,
        description="Storefront API access token",
    )

    # Admin configuration (proxy service only)
    shopify_admin_domain: str = Field(
        default="acefixings.myshopify.com",
        description="myshopify.com domain for the Admin API",
    )
    shopify_admin_api_token: str | None = Field(
        default=None,
        description="Shopify Admin API access token",
    )

    # OAuth / PKCE
    customer_accounts_client_id: str = Field(
        default="edc5278a-8942-4645-a802-bdfa625f8dbd",
        description="Customer Account API public client id",
    )
    redirect_uri: str = Field(
        default="shop.90779713878.app://callback",
        description="Registered OAuth redirect URI (app deep link)",
    )
    oauth_scope: str = Field(
        default="openid email customer-account-api:full",
    )

    platform: Platform = Field(
        default=Platform.NATIVE,
        description="native (direct to Shopify) or web (through the relay)",
    )
    proxy_base_url: str = Field(
        default="https://ace-fixings-app.vercel.app",
        description="Base URL of the proxy service",
    )

    # Business rules
    vat_rate: float = Field(default=0.2, ge=0, description="UK VAT rate")
    default_country: str = "Ireland"
    no_vat_tag: str = "No Vat Customers"
    no_vat_segment: str = "no vat customers"
    vat_verified_tag: str = "vat-verified"
    vat_verified_match_mode: TagMatchMode = Field(
        default=TagMatchMode.EXACT,
        description="How the VAT-verified tag is matched: exact, contains, or regex",
    )
    registration_metafield_namespace: str = "custom"
    vat_metafield_namespace: str = "acefixings"

    state_dir: Path = Field(
        default=Path.home() / ".acefixings",
        description="Directory holding the persisted key-value state",
    )
    http_timeout: float = Field(default=30.0, gt=0)

    # Logging configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: LogFormat = Field(
        default=LogFormat.CONSOLE,
        description="Log output format: console or json",
    )

    @field_validator("shop_domain", "shopify_admin_domain", mode="after")
    @classmethod
    def normalize_domain(cls, v: str) -> str:
        """Normalize domains by removing protocol prefix and trailing slash."""
        return _strip_domain(v)

    @field_validator("proxy_base_url", mode="after")
    @classmethod
    def normalize_proxy_url(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @property
    def storefront_graphql_url(self) -> str:
        return f"https://{self.shop_domain}/api/{self.shopify_api_version}/graphql.json"

    @property
    def admin_graphql_url(self) -> str:
        """Construct the full Shopify Admin GraphQL API endpoint URL."""
        return (
            f"https://{self.shopify_admin_domain}/admin/api/"
            f"{self.shopify_api_version}/graphql.json"
        )

    @property
    def oidc_config_url(self) -> str:
        return f"https://{self.shop_domain}/.well-known/openid-configuration"

    @property
    def customer_api_discovery_url(self) -> str:
        return f"https://{self.shop_domain}/.well-known/customer-account-api"

    @property
    def fallback_token_endpoint(self) -> str:
        return f"https://{self.shop_domain}/account/oauth/token"

    @property
    def relay_url(self) -> str:
        return f"{self.proxy_base_url}/.netlify/functions/shopify"

    @property
    def register_customer_url(self) -> str:
        return f"{self.proxy_base_url}/api/registerCustomer"

    @property
    def submit_vat_url(self) -> str:
        return f"{self.proxy_base_url}/api/submitVatVerification"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload settings if needed.
    """
    return Settings()
