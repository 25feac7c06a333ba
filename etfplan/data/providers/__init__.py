"""Data Providers - ETF price and metadata sources.

This module provides provider implementations for resolving ISINs and
fetching current ETF prices.
"""

from etfplan.data.providers.static_provider import StaticProvider
from etfplan.data.providers.yfinance_provider import YFinanceProvider

__all__ = [
    "YFinanceProvider",
    "StaticProvider",
]
