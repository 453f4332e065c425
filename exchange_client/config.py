"""
Exchange Client - Configuration.

============================================================
PURPOSE
============================================================
All configuration for exchange services.

ENVIRONMENT VARIABLES:
- {EXCHANGE}_API_KEY / {EXCHANGE}_API_SECRET / {EXCHANGE}_PASSPHRASE
- EXCHANGE_CLIENT_FIAT            (default USD)
- EXCHANGE_CLIENT_CRYPTO          (default BTC)
- EXCHANGE_CLIENT_IGNORED_FIATS   (comma separated, default empty)
- EXCHANGE_CLIENT_TIMEOUT_SECONDS (default 30)

A .env file in the working directory is loaded on import; variables
already set in the environment take precedence.

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv

from .currency import CurrencyStore, UserPreference
from .errors import ConfigurationError
from .signing import Credentials


logger = logging.getLogger(__name__)

load_dotenv()


ENV_PREFIX = "EXCHANGE_CLIENT"
DEFAULT_TIMEOUT_SECONDS = 30.0


# ============================================================
# PREFERENCE CONFIGURATION
# ============================================================

@dataclass
class PreferenceConfig:
    """User reporting preferences as currency codes."""

    fiat: str = "USD"
    """Preferred fiat currency for balance aggregation."""

    crypto: str = "BTC"
    """Preferred crypto unit, used when no fiat ticker exists."""

    ignored_fiats: Tuple[str, ...] = ()
    """Quote currencies whose products are filtered out."""

    def to_user_preference(
        self,
        currency_store: Optional[CurrencyStore] = None,
    ) -> UserPreference:
        return UserPreference.from_codes(
            fiat=self.fiat,
            crypto=self.crypto,
            ignored_fiats=self.ignored_fiats,
            currency_store=currency_store,
        )

    @classmethod
    def from_env(cls) -> "PreferenceConfig":
        ignored = os.environ.get(f"{ENV_PREFIX}_IGNORED_FIATS", "")
        return cls(
            fiat=os.environ.get(f"{ENV_PREFIX}_FIAT", "USD"),
            crypto=os.environ.get(f"{ENV_PREFIX}_CRYPTO", "BTC"),
            ignored_fiats=tuple(c.strip().upper() for c in ignored.split(",") if c.strip()),
        )


# ============================================================
# CLIENT CONFIGURATION
# ============================================================

@dataclass
class ClientConfig:
    """
    Configuration for one exchange service.

    Credentials are optional; services with authenticated endpoints
    check them on first use of such an endpoint.
    """

    exchange_id: str
    credentials: Credentials = field(default_factory=Credentials)
    preference: PreferenceConfig = field(default_factory=PreferenceConfig)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.exchange_id = self.exchange_id.lower()
        if self.timeout_seconds <= 0:
            raise ConfigurationError(
                f"timeout_seconds must be positive, got {self.timeout_seconds}",
                exchange_id=self.exchange_id,
            )

    @classmethod
    def from_env(cls, exchange_id: str) -> "ClientConfig":
        """
        Create config from environment variables.

        Args:
            exchange_id: Exchange identifier

        Returns:
            ClientConfig
        """
        prefix = exchange_id.upper()
        timeout_raw = os.environ.get(f"{ENV_PREFIX}_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))
        try:
            timeout = float(timeout_raw)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid {ENV_PREFIX}_TIMEOUT_SECONDS: {timeout_raw!r}",
                exchange_id=exchange_id,
            ) from e

        return cls(
            exchange_id=exchange_id,
            credentials=Credentials(
                key=os.environ.get(f"{prefix}_API_KEY", ""),
                secret=os.environ.get(f"{prefix}_API_SECRET", ""),
                passphrase=os.environ.get(f"{prefix}_PASSPHRASE", ""),
            ),
            preference=PreferenceConfig.from_env(),
            timeout_seconds=timeout,
        )


__all__ = [
    "ENV_PREFIX",
    "DEFAULT_TIMEOUT_SECONDS",
    "PreferenceConfig",
    "ClientConfig",
]
