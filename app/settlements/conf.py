"""
Settlement configuration.

Provider credentials and settlement tuning are read from Django settings
exactly once per process and frozen into dataclasses. Components receive
these objects through their constructors instead of reaching into
django.conf.settings on every call.

Settings (see config/settings.py, all read via django-environ):
    SETTLEMENT_PROVIDER_BASE_URL
    SETTLEMENT_PROVIDER_SECRET_KEY
    SETTLEMENT_PROVIDER_SECURITY_KEY
    SETTLEMENT_PROVIDER_WEBHOOK_SECRET
    SETTLEMENT_PROVIDER_WEBHOOK_URL
    SETTLEMENT_PROVIDER_CONNECT_TIMEOUT_SECONDS
    SETTLEMENT_PROVIDER_READ_TIMEOUT_SECONDS
    SETTLEMENT_PROVIDER_TEST_CODE
    SETTLEMENT_PLATFORM_FEE_RATE
    SETTLEMENT_WEBHOOK_TOLERANCE_SECONDS
    SETTLEMENT_RETRY_MAX_ATTEMPTS
    SETTLEMENT_RETRY_BASE_DELAY_SECONDS
    SETTLEMENT_RETRY_MULTIPLIER
    SETTLEMENT_RETRY_MAX_DELAY_SECONDS

Usage:
    from settlements.conf import get_provider_config

    config = get_provider_config()
    gateway = PayoutGateway(config)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache

from django.conf import settings


@dataclass(frozen=True)
class ProviderConfig:
    """
    Connection settings for the payout provider.

    secret_key, security_key and webhook_secret are excluded from repr so
    they never end up in logs or tracebacks.
    """

    base_url: str
    secret_key: str = field(repr=False)
    security_key: str = field(repr=False)
    webhook_secret: str = field(repr=False)
    webhook_url: str = ""
    connect_timeout: float = 30.0
    read_timeout: float = 30.0
    test_code: str = ""

    @classmethod
    def from_settings(cls) -> ProviderConfig:
        return cls(
            base_url=settings.SETTLEMENT_PROVIDER_BASE_URL.rstrip("/"),
            secret_key=settings.SETTLEMENT_PROVIDER_SECRET_KEY,
            security_key=settings.SETTLEMENT_PROVIDER_SECURITY_KEY,
            webhook_secret=settings.SETTLEMENT_PROVIDER_WEBHOOK_SECRET,
            webhook_url=settings.SETTLEMENT_PROVIDER_WEBHOOK_URL,
            connect_timeout=float(settings.SETTLEMENT_PROVIDER_CONNECT_TIMEOUT_SECONDS),
            read_timeout=float(settings.SETTLEMENT_PROVIDER_READ_TIMEOUT_SECONDS),
            test_code=settings.SETTLEMENT_PROVIDER_TEST_CODE,
        )


@dataclass(frozen=True)
class SettlementConfig:
    """Fee, webhook freshness and retry tuning."""

    platform_fee_rate: Decimal = Decimal("0.2000")
    webhook_tolerance_seconds: int = 300
    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_multiplier: float = 2.0
    retry_max_delay: float = 10.0

    @classmethod
    def from_settings(cls) -> SettlementConfig:
        return cls(
            platform_fee_rate=Decimal(str(settings.SETTLEMENT_PLATFORM_FEE_RATE)),
            webhook_tolerance_seconds=int(settings.SETTLEMENT_WEBHOOK_TOLERANCE_SECONDS),
            retry_max_attempts=int(settings.SETTLEMENT_RETRY_MAX_ATTEMPTS),
            retry_base_delay=float(settings.SETTLEMENT_RETRY_BASE_DELAY_SECONDS),
            retry_multiplier=float(settings.SETTLEMENT_RETRY_MULTIPLIER),
            retry_max_delay=float(settings.SETTLEMENT_RETRY_MAX_DELAY_SECONDS),
        )


@lru_cache(maxsize=1)
def get_provider_config() -> ProviderConfig:
    """Return the process-wide provider configuration."""
    return ProviderConfig.from_settings()


@lru_cache(maxsize=1)
def get_settlement_config() -> SettlementConfig:
    """Return the process-wide settlement configuration."""
    return SettlementConfig.from_settings()


__all__ = [
    "ProviderConfig",
    "SettlementConfig",
    "get_provider_config",
    "get_settlement_config",
]
