"""YFinance data provider implementation.

This module implements the PriceOracle and EtfDirectory interfaces using the
yfinance library to query Yahoo Finance.
"""

import math

import yfinance as yf

from etfplan.data.base import EtfDirectory, PriceOracle
from etfplan.portfolio.base import EtfInfo
from etfplan.utils.exceptions import (
    DataProviderError,
    EtfNotFoundError,
    PriceUnavailableError,
)
from etfplan.utils.logging import get_logger

logger = get_logger(__name__)


class YFinanceProvider(PriceOracle, EtfDirectory):
    """Yahoo Finance provider for ETF prices and ISIN lookups.

    Args:
        unit_multiplier: Factor applied to quoted prices to express them in
                         budget units (e.g. 100 when budgets are in cents)
        history_period: yfinance period used to find the last close

    Example:
        >>> provider = YFinanceProvider()
        >>> info = provider.search("IE00B3ZW0K18")
        >>> info.id
        'IUSE.L'
        >>> price = provider.get_price(info.id)
    """

    def __init__(self, unit_multiplier: float = 1.0, history_period: str = "5d"):
        if unit_multiplier <= 0:
            raise ValueError(f"unit_multiplier must be > 0, got {unit_multiplier}")
        self.unit_multiplier = unit_multiplier
        self.history_period = history_period

    def search(self, isin: str) -> EtfInfo:
        """Resolve an ISIN through the Yahoo Finance search endpoint.

        Raises:
            EtfNotFoundError: If zero or several quotes match
            DataProviderError: If the search request fails
        """
        logger.info("Searching ETF with isin %s", isin)

        try:
            quotes = yf.Search(isin, max_results=10, news_count=0).quotes
        except Exception as e:
            error_msg = f"Failed to search isin {isin}: {e}"
            logger.error(error_msg)
            raise DataProviderError(error_msg) from e

        quotes = [q for q in (quotes or []) if q.get("symbol")]

        if not quotes:
            logger.error("Could not find an ETF with isin = %s", isin)
            raise EtfNotFoundError(isin)

        if len(quotes) > 1:
            symbols = [q["symbol"] for q in quotes]
            logger.error("Found more than 1 result while searching for %s: %s", isin, symbols)
            raise EtfNotFoundError(
                isin, f"Isin {isin} is ambiguous, matches {', '.join(symbols)}"
            )

        quote = quotes[0]
        name = quote.get("longname") or quote.get("shortname") or quote["symbol"]
        return EtfInfo(id=quote["symbol"], name=name, isin=isin)

    def get_price(self, etf_id: str) -> float:
        """Fetch the most recent close for a ticker.

        Raises:
            PriceUnavailableError: If the request fails or no valid close exists
        """
        logger.debug("Fetching price for %s", etf_id)

        try:
            df = yf.Ticker(etf_id).history(period=self.history_period)
        except Exception as e:
            error_msg = f"Failed to fetch price for {etf_id}: {e}"
            logger.error(error_msg)
            raise PriceUnavailableError(etf_id, error_msg) from e

        if df is None or df.empty or "Close" not in df.columns:
            logger.error("No price data returned for %s", etf_id)
            raise PriceUnavailableError(etf_id)

        closes = df["Close"].dropna()
        if closes.empty:
            logger.error("No close price returned for %s", etf_id)
            raise PriceUnavailableError(etf_id)

        price = float(closes.iloc[-1])
        if not math.isfinite(price) or price <= 0:
            logger.error("Invalid close price %s for %s", price, etf_id)
            raise PriceUnavailableError(etf_id, f"Invalid price {price} for {etf_id}")

        return price * self.unit_multiplier
