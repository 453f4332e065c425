"""
Exchange Client - Exchanges Package.

AVAILABLE SERVICES:
- GDAXService: products, per-pair tickers, signed accounts
- KoinexService: INR-quoted last prices
"""

from .base import ExchangeService, PairCallback
from .gdax import GDAXService
from .koinex import KoinexService


__all__ = [
    "ExchangeService",
    "PairCallback",
    "GDAXService",
    "KoinexService",
]
