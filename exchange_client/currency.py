"""
Exchange Client - Currencies and User Preference.

Currency codes, ordered currency pairs, a minimal code lookup table and
the user's reporting preferences (fiat, crypto unit, ignored quote fiats).
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Optional


@dataclass(frozen=True)
class Currency:
    """A currency identified by its upper-case code."""

    code: str
    name: str = field(default="", compare=False)

    def __str__(self) -> str:
        return self.code


@dataclass(frozen=True)
class CurrencyPair:
    """
    Ordered (quantity, price) currency pair.

    Equality and hashing are by the two currency codes, so a pair can be
    used directly as a cache sub-key.
    """

    quantity: Currency
    price: Currency

    @property
    def gdax_product_id(self) -> str:
        """GDAX product identifier, e.g. ``BTC-USD``."""
        return f"{self.quantity.code}-{self.price.code}"

    @classmethod
    def from_gdax_product_id(
        cls,
        product_id: str,
        currency_store: "CurrencyStore",
    ) -> "CurrencyPair":
        """
        Parse a GDAX product identifier.

        Raises:
            ValueError: If the identifier is not ``QUANTITY-PRICE``
        """
        parts = product_id.split("-")
        if len(parts) != 2 or not all(parts):
            raise ValueError(f"Invalid product id: {product_id!r}")
        return cls(
            quantity=currency_store.for_code(parts[0]),
            price=currency_store.for_code(parts[1]),
        )

    def __str__(self) -> str:
        return f"{self.quantity.code}/{self.price.code}"


# ============================================================
# CURRENCY STORE
# ============================================================

DEFAULT_CURRENCIES = (
    Currency("USD", "United States Dollar"),
    Currency("EUR", "Euro"),
    Currency("GBP", "British Pound"),
    Currency("INR", "Indian Rupee"),
    Currency("BTC", "Bitcoin"),
    Currency("ETH", "Ethereum"),
    Currency("LTC", "Litecoin"),
    Currency("BCH", "Bitcoin Cash"),
    Currency("XRP", "Ripple"),
)


class CurrencyStore:
    """Lookup table from currency code to Currency."""

    def __init__(self, currencies: Iterable[Currency] = DEFAULT_CURRENCIES):
        self._currencies: Dict[str, Currency] = {
            c.code.upper(): c for c in currencies
        }

    def for_code(self, code: str) -> Currency:
        """Known currency for code, or a new one named after the code."""
        key = (code or "").upper()
        currency = self._currencies.get(key)
        if currency is None:
            currency = Currency(key, key)
        return currency

    def __contains__(self, code: str) -> bool:
        return (code or "").upper() in self._currencies


# ============================================================
# USER PREFERENCE
# ============================================================

@dataclass
class UserPreference:
    """Reporting preferences used by balance aggregation and product filtering."""

    fiat: Currency
    crypto: Currency
    ignored_fiats: FrozenSet[Currency] = frozenset()
    currency_store: CurrencyStore = field(default_factory=CurrencyStore)

    @classmethod
    def from_codes(
        cls,
        fiat: str = "USD",
        crypto: str = "BTC",
        ignored_fiats: Iterable[str] = (),
        currency_store: Optional[CurrencyStore] = None,
    ) -> "UserPreference":
        store = currency_store or CurrencyStore()
        return cls(
            fiat=store.for_code(fiat),
            crypto=store.for_code(crypto),
            ignored_fiats=frozenset(store.for_code(c) for c in ignored_fiats),
            currency_store=store,
        )


__all__ = [
    "Currency",
    "CurrencyPair",
    "CurrencyStore",
    "UserPreference",
    "DEFAULT_CURRENCIES",
]
