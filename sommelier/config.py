"""
Centralized configuration with environment variable overrides.

Commerce credentials, upstream timeouts, and cache TTLs are configurable
here. When the Shopify credentials are absent the engine runs in demo mode.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from sommelier.logging_context import CallIdFilter

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag (1/0, true/false, yes/no, on/off)."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class CommerceConfig:
    """Shopify Storefront and Admin API settings."""

    store_domain: str = os.getenv("SHOPIFY_STORE_DOMAIN", "")
    storefront_token: str = os.getenv("SHOPIFY_STOREFRONT_TOKEN", "")
    admin_token: str = os.getenv("SHOPIFY_ADMIN_API_TOKEN", "")
    storefront_api_version: str = os.getenv("SHOPIFY_STOREFRONT_API_VERSION", "2024-01")
    admin_api_version: str = os.getenv("SHOPIFY_ADMIN_API_VERSION", "2025-01")
    timeout_sec: float = _safe_float("COMMERCE_TIMEOUT_SEC", "4.0")
    product_search_limit: int = _safe_int("COMMERCE_PRODUCT_SEARCH_LIMIT", "5")

    @property
    def is_configured(self) -> bool:
        """Storefront credentials present; otherwise cart tools run in demo mode."""
        return bool(self.store_domain and self.storefront_token)

    @property
    def orders_configured(self) -> bool:
        return bool(self.store_domain and self.admin_token)


@dataclass(frozen=True)
class CatalogConfig:
    """Wine catalog store settings."""

    database_url: str = os.getenv("DATABASE_URL", "")
    timeout_sec: float = _safe_float("CATALOG_TIMEOUT_SEC", "3.0")
    pool_max_size: int = _safe_int("CATALOG_POOL_MAX_SIZE", "10")


@dataclass(frozen=True)
class CacheConfig:
    """In-process cache settings."""

    order_cache_ttl_sec: float = _safe_float("ORDER_CACHE_TTL_SEC", "300")


@dataclass(frozen=True)
class DispatchConfig:
    """Tool dispatcher limits."""

    tool_timeout_sec: float = _safe_float("TOOL_TIMEOUT_SEC", "10.0")
    force_demo_mode: bool = _safe_bool("FORCE_DEMO_MODE", "false")
    max_cart_sessions: int = _safe_int("CART_MAX_SESSIONS", "10000")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    commerce: CommerceConfig = field(default_factory=CommerceConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "sommelier-tools")
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = _safe_int("PORT", "8000")

    @property
    def demo_mode(self) -> bool:
        return self.dispatch.force_demo_mode or not self.commerce.is_configured


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.commerce.timeout_sec <= 0:
        raise ValueError(
            f"COMMERCE_TIMEOUT_SEC must be > 0, got {config.commerce.timeout_sec}"
        )
    if not 1 <= config.commerce.product_search_limit <= 50:
        raise ValueError(
            "COMMERCE_PRODUCT_SEARCH_LIMIT must be between 1 and 50, "
            f"got {config.commerce.product_search_limit}"
        )
    if config.catalog.timeout_sec <= 0:
        raise ValueError(
            f"CATALOG_TIMEOUT_SEC must be > 0, got {config.catalog.timeout_sec}"
        )
    if config.catalog.pool_max_size < 1:
        raise ValueError(
            f"CATALOG_POOL_MAX_SIZE must be >= 1, got {config.catalog.pool_max_size}"
        )
    if config.cache.order_cache_ttl_sec <= 0:
        raise ValueError(
            f"ORDER_CACHE_TTL_SEC must be > 0, got {config.cache.order_cache_ttl_sec}"
        )
    if config.dispatch.tool_timeout_sec <= 0:
        raise ValueError(
            f"TOOL_TIMEOUT_SEC must be > 0, got {config.dispatch.tool_timeout_sec}"
        )
    if config.dispatch.max_cart_sessions < 1:
        raise ValueError(
            f"CART_MAX_SESSIONS must be >= 1, got {config.dispatch.max_cart_sessions}"
        )
    if not 1 <= config.port <= 65535:
        raise ValueError(f"PORT must be between 1 and 65535, got {config.port}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s [call=%(call_id)s]: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, CallIdFilter) for f in handler.filters):
            handler.addFilter(CallIdFilter())
    logger.info(
        "Configuration loaded for '%s' (demo_mode=%s)", config.service_name, config.demo_mode
    )
    return config


# Singleton instance
settings = load_config()
