"""
Exchange Client - Data Models.

============================================================
PURPOSE
============================================================
Records decoded from exchange responses and the typed result of
every fetch operation.

RECORDS:
- Ticker   - point-in-time price/volume snapshot for one pair
- Product  - tradable pair metadata
- Account  - balance held in one currency (BalanceType)

RESULT:
- FetchResult(status=CACHED | FETCHED | FAILED, payload, error)

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Generic, Optional, Protocol, TypeVar, runtime_checkable

from .currency import Currency, CurrencyPair, CurrencyStore
from .errors import FetchError


T = TypeVar("T")


# ============================================================
# DECODING HELPERS
# ============================================================

class RecordCastError(ValueError):
    """A JSON record is missing a required field or has the wrong shape."""


def decimal_from_any(value: Any) -> Decimal:
    """Lenient Decimal conversion: strings and numbers, else zero."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return result if result.is_finite() else Decimal("0")


def _require(json: Dict[str, Any], key: str, kind: type) -> Any:
    if not isinstance(json, dict):
        raise RecordCastError(f"expected object, got {type(json).__name__}")
    value = json.get(key)
    if not isinstance(value, kind):
        raise RecordCastError(f"field {key!r} missing or not {kind.__name__}")
    return value


def parse_exchange_time(value: Any) -> datetime:
    """Parse an ISO-8601 exchange timestamp, falling back to now."""
    if isinstance(value, str):
        text = value.replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
    return datetime.now(timezone.utc)


# ============================================================
# RESULT TYPES
# ============================================================

class ResponseType(Enum):
    """Outcome of a fetch operation."""

    CACHED = "cached"
    FETCHED = "fetched"
    FAILED = "failed"


@dataclass
class FetchResult(Generic[T]):
    """Typed outcome of a cache-or-fetch operation."""

    status: ResponseType
    payload: Optional[T] = None
    error: Optional[FetchError] = None
    pair: Optional[CurrencyPair] = None

    @property
    def ok(self) -> bool:
        return self.status != ResponseType.FAILED

    @classmethod
    def cached(cls, payload: T, pair: Optional[CurrencyPair] = None) -> "FetchResult[T]":
        return cls(ResponseType.CACHED, payload=payload, pair=pair)

    @classmethod
    def fetched(cls, payload: T, pair: Optional[CurrencyPair] = None) -> "FetchResult[T]":
        return cls(ResponseType.FETCHED, payload=payload, pair=pair)

    @classmethod
    def failed(cls, error: FetchError, pair: Optional[CurrencyPair] = None) -> "FetchResult[T]":
        return cls(ResponseType.FAILED, error=error, pair=pair)


# ============================================================
# BALANCE CAPABILITY
# ============================================================

@runtime_checkable
class BalanceType(Protocol):
    """Anything holding a quantity of one currency."""

    @property
    def currency(self) -> Currency: ...

    @property
    def quantity(self) -> Decimal: ...


# ============================================================
# GDAX RECORDS
# ============================================================

@dataclass
class Product:
    """Tradable pair metadata."""

    pair: CurrencyPair
    base_currency: Currency
    quote_currency: Currency
    base_min_size: Decimal
    base_max_size: Decimal
    quote_increment: Decimal
    display_name: str
    margin_enabled: bool

    @classmethod
    def from_json(cls, json: Dict[str, Any], currency_store: CurrencyStore) -> "Product":
        """
        Decode a product record.

        Raises:
            RecordCastError: If a required field is missing
        """
        product_id = _require(json, "id", str)
        try:
            pair = CurrencyPair.from_gdax_product_id(product_id, currency_store)
        except ValueError as e:
            raise RecordCastError(str(e)) from e
        return cls(
            pair=pair,
            base_currency=currency_store.for_code(_require(json, "base_currency", str)),
            quote_currency=currency_store.for_code(_require(json, "quote_currency", str)),
            base_min_size=decimal_from_any(json.get("base_min_size")),
            base_max_size=decimal_from_any(json.get("base_max_size")),
            quote_increment=decimal_from_any(json.get("quote_increment")),
            display_name=_require(json, "display_name", str),
            margin_enabled=_require(json, "margin_enabled", bool),
        )


@dataclass
class Ticker:
    """Point-in-time price/volume snapshot for one pair."""

    pair: CurrencyPair
    trade_id: int
    price: Decimal
    size: Decimal
    bid: Decimal
    ask: Decimal
    volume: Decimal
    time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_json(cls, json: Dict[str, Any], pair: CurrencyPair) -> "Ticker":
        """
        Decode a ticker record. Numeric fields default to zero.

        Raises:
            RecordCastError: If the record is not an object
        """
        if not isinstance(json, dict):
            raise RecordCastError(f"expected object, got {type(json).__name__}")
        trade_id = json.get("trade_id")
        return cls(
            pair=pair,
            trade_id=trade_id if isinstance(trade_id, int) and not isinstance(trade_id, bool) else 0,
            price=decimal_from_any(json.get("price")),
            size=decimal_from_any(json.get("size")),
            bid=decimal_from_any(json.get("bid")),
            ask=decimal_from_any(json.get("ask")),
            volume=decimal_from_any(json.get("volume")),
            time=parse_exchange_time(json.get("time")),
        )


@dataclass
class Account:
    """Balance held in one currency (implements BalanceType)."""

    id: str
    currency: Currency
    quantity: Decimal
    available: Decimal
    hold: Decimal
    profile_id: str = ""

    @classmethod
    def from_json(cls, json: Dict[str, Any], currency_store: CurrencyStore) -> "Account":
        """
        Decode an account record.

        Raises:
            RecordCastError: If the record has no currency
        """
        currency_code = _require(json, "currency", str)
        account_id = json.get("id")
        profile_id = json.get("profile_id")
        return cls(
            id=account_id if isinstance(account_id, str) else "",
            currency=currency_store.for_code(currency_code),
            quantity=decimal_from_any(json.get("balance")),
            available=decimal_from_any(json.get("available")),
            hold=decimal_from_any(json.get("hold")),
            profile_id=profile_id if isinstance(profile_id, str) else "",
        )


# ============================================================
# KOINEX RECORDS
# ============================================================

@dataclass
class PriceTicker:
    """Last price for one pair (single-endpoint exchanges)."""

    pair: CurrencyPair
    price: Decimal


__all__ = [
    "RecordCastError",
    "decimal_from_any",
    "parse_exchange_time",
    "ResponseType",
    "FetchResult",
    "BalanceType",
    "Product",
    "Ticker",
    "Account",
    "PriceTicker",
]
