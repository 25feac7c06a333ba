"""In-memory provider for fixed prices and ETF metadata.

Useful for offline planning (prices typed in by the investor) and tests.
"""

from typing import Dict, Iterable, Optional

from etfplan.data.base import EtfDirectory, PriceOracle
from etfplan.portfolio.base import EtfInfo
from etfplan.utils.exceptions import EtfNotFoundError, PriceUnavailableError


class StaticProvider(PriceOracle, EtfDirectory):
    """Serve prices and ETF metadata from dictionaries.

    Example:
        >>> provider = StaticProvider(
        ...     prices={"IUSE.L": 101.2},
        ...     etfs=[EtfInfo("IUSE.L", "iShares S&P 500 EUR Hedged", "IE00B3ZW0K18")],
        ... )
        >>> provider.search("IE00B3ZW0K18").id
        'IUSE.L'
    """

    def __init__(
        self,
        prices: Optional[Dict[str, float]] = None,
        etfs: Optional[Iterable[EtfInfo]] = None,
    ):
        self.prices = dict(prices or {})
        self._by_isin = {info.isin: info for info in (etfs or [])}

    def set_price(self, etf_id: str, price: float) -> None:
        self.prices[etf_id] = price

    def add_etf(self, info: EtfInfo) -> None:
        self._by_isin[info.isin] = info

    def get_price(self, etf_id: str) -> float:
        price = self.prices.get(etf_id)
        if price is None or price <= 0:
            raise PriceUnavailableError(etf_id)
        return float(price)

    def search(self, isin: str) -> EtfInfo:
        info = self._by_isin.get(isin)
        if info is None:
            raise EtfNotFoundError(isin)
        return info
