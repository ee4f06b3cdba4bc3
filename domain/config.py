"""
Configuration module for the statement gateway.

All configuration values are loaded from environment variables with sensible defaults.
See .env.example for all available configuration options.
"""
import os
from dataclasses import dataclass, field
from typing import List


def _get_float(key: str, default: float) -> float:
    """Get float from environment variable."""
    return float(os.getenv(key, default))


def _get_int(key: str, default: int) -> int:
    """Get int from environment variable."""
    return int(os.getenv(key, default))


def _get_str(key: str, default: str = "") -> str:
    """Get stripped string from environment variable."""
    return os.getenv(key, default).strip()


def _get_list(key: str, default: str = "") -> List[str]:
    """Get comma separated list from environment variable (empty items dropped)."""
    return [item.strip() for item in os.getenv(key, default).split(",") if item.strip()]


@dataclass
class SuppressionConfig:
    """Noise rules applied before records reach the user-visible list.

    Document and name literals are empty by default, which disables the
    rule that depends on them.
    """

    # Rule 1: decoy deposit pattern
    decoy_amount: float = field(default_factory=lambda: _get_float("SUPPRESS_DECOY_AMOUNT", 0.50))
    decoy_document: str = field(default_factory=lambda: _get_str("SUPPRESS_DECOY_DOCUMENT"))

    # Rule 2: beneficiaries that are never ours
    foreign_beneficiary_documents: List[str] = field(
        default_factory=lambda: _get_list("SUPPRESS_FOREIGN_BENEFICIARY_DOCUMENTS")
    )

    # Rule 4: bank-internal fee transfers (second provider only)
    fee_threshold: float = field(default_factory=lambda: _get_float("SUPPRESS_FEE_THRESHOLD", 1.00))
    fee_counterparty_name: str = field(default_factory=lambda: _get_str("SUPPRESS_FEE_COUNTERPARTY_NAME"))
    fee_counterparty_document: str = field(default_factory=lambda: _get_str("SUPPRESS_FEE_COUNTERPARTY_DOCUMENT"))

    internal_transfer_keywords: List[str] = field(
        default_factory=lambda: _get_list(
            "INTERNAL_TRANSFER_KEYWORDS",
            "TRANSF.ENTRE CTAS,TRANSF ENTRE CTAS,TRANSFERENCIA ENTRE CONTAS",
        )
    )


@dataclass
class FetchConfig:
    """Paginated fetch settings."""

    page_size: int = field(default_factory=lambda: _get_int("FETCH_PAGE_SIZE", 100))
    # Hard cap accepted by the listing endpoint
    max_page_size: int = field(default_factory=lambda: _get_int("FETCH_MAX_PAGE_SIZE", 2000))
    # Iteration guard for the accumulation loop
    max_iterations: int = field(default_factory=lambda: _get_int("FETCH_MAX_ITERATIONS", 10))
    # Default period: today and the previous (default_days - 1) days
    default_days: int = field(default_factory=lambda: _get_int("FETCH_DEFAULT_DAYS", 3))


@dataclass
class BankApiConfig:
    """Remote bank API settings."""

    base_url: str = field(default_factory=lambda: _get_str("BANK_API_URL", "http://localhost:8001"))
    api_key: str = field(default_factory=lambda: _get_str("BANK_API_KEY"))
    connect_timeout: float = field(default_factory=lambda: _get_float("BANK_API_CONNECT_TIMEOUT", 2.0))
    read_timeout: float = field(default_factory=lambda: _get_float("BANK_API_READ_TIMEOUT", 10.0))
    sync_max_attempts: int = field(default_factory=lambda: _get_int("BANK_API_SYNC_MAX_ATTEMPTS", 3))


@dataclass
class SessionConfig:
    """In-memory statement session settings."""

    # Sessions kept before the least recently loaded one is evicted
    max_sessions: int = field(default_factory=lambda: _get_int("SESSION_MAX_COUNT", 1000))


# Global config instances (lazy loaded)
_suppression_config = None
_fetch_config = None
_bank_api_config = None
_session_config = None


def get_suppression_config() -> SuppressionConfig:
    """Get suppression rule configuration."""
    global _suppression_config
    if _suppression_config is None:
        _suppression_config = SuppressionConfig()
    return _suppression_config


def get_fetch_config() -> FetchConfig:
    """Get paginated fetch configuration."""
    global _fetch_config
    if _fetch_config is None:
        _fetch_config = FetchConfig()
    return _fetch_config


def get_bank_api_config() -> BankApiConfig:
    """Get remote bank API configuration."""
    global _bank_api_config
    if _bank_api_config is None:
        _bank_api_config = BankApiConfig()
    return _bank_api_config


def get_session_config() -> SessionConfig:
    """Get statement session configuration."""
    global _session_config
    if _session_config is None:
        _session_config = SessionConfig()
    return _session_config


def reload_config():
    """Force reload of all configuration from environment variables."""
    global _suppression_config, _fetch_config, _bank_api_config, _session_config
    _suppression_config = SuppressionConfig()
    _fetch_config = FetchConfig()
    _bank_api_config = BankApiConfig()
    _session_config = SessionConfig()
