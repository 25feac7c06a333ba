"""Abstract base classes for ETF data providers.

This module defines the PriceOracle and EtfDirectory interfaces that all
concrete providers must implement.
"""

from abc import ABC, abstractmethod

from etfplan.portfolio.base import EtfInfo


class PriceOracle(ABC):
    """Abstract interface for current ETF prices.

    Example:
        >>> class MyOracle(PriceOracle):
        ...     def get_price(self, etf_id):
        ...         return 101.5
    """

    @abstractmethod
    def get_price(self, etf_id: str) -> float:
        """Fetch the latest price for an ETF.

        Args:
            etf_id: ETF identifier (ticker, e.g. "IUSE.L")

        Returns:
            Price strictly greater than zero

        Raises:
            PriceUnavailableError: If no usable price can be obtained
        """
        pass


class EtfDirectory(ABC):
    """Abstract interface for ETF metadata lookup."""

    @abstractmethod
    def search(self, isin: str) -> EtfInfo:
        """Resolve an ISIN to ETF reference data.

        Args:
            isin: International Securities Identification Number

        Returns:
            EtfInfo with the ticker as id

        Raises:
            EtfNotFoundError: If the ISIN does not resolve to exactly one ETF
            DataProviderError: If the lookup itself fails
        """
        pass
