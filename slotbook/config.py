"""
Centralized configuration with environment variable overrides.

Scan caps, booking policies, and reconciliation limits are configurable here.
Nothing is hardcoded in resolver or reservation logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from slotbook.logging_context import LOG_FORMAT, install_session_filter

load_dotenv()

logger = logging.getLogger(__name__)

STALE_SLOT_POLICIES = ("keep", "reject")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BusinessConfig:
    """Business-specific settings loaded from environment or defaults."""

    name: str = os.getenv("BUSINESS_NAME", "Studio Agenda")
    currency: str = os.getenv("CURRENCY", "BRL")


@dataclass(frozen=True)
class CatalogConfig:
    """Settings for date catalogs and suggestions."""

    suggestion_scan_cap: int = _safe_int("SUGGESTION_SCAN_CAP", "100")


@dataclass(frozen=True)
class ReservationConfig:
    """Booking policies and reconciliation limits."""

    stale_slot_policy: str = os.getenv("STALE_SLOT_POLICY", "keep")
    reconcile_batch_size: int = _safe_int("RECONCILE_BATCH_SIZE", "500")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    reservation: ReservationConfig = field(default_factory=ReservationConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    engine_name: str = os.getenv("ENGINE_NAME", "slotbook")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.catalog.suggestion_scan_cap < 1:
        raise ValueError(
            f"SUGGESTION_SCAN_CAP must be >= 1, got {config.catalog.suggestion_scan_cap}"
        )
    if config.reservation.stale_slot_policy not in STALE_SLOT_POLICIES:
        raise ValueError(
            f"STALE_SLOT_POLICY must be one of {STALE_SLOT_POLICIES}, "
            f"got {config.reservation.stale_slot_policy!r}"
        )
    if config.reservation.reconcile_batch_size < 1:
        raise ValueError(
            f"RECONCILE_BATCH_SIZE must be >= 1, got {config.reservation.reconcile_batch_size}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_session_filter()
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
