"""Custom exceptions for ETF Planner.

This module defines the exception hierarchy for the application.
"""


class ETFPlannerError(Exception):
    """Base exception for all ETF Planner errors.

    All custom exceptions in the application should inherit from this class.
    """

    pass


class ConfigurationError(ETFPlannerError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Unknown planner strategy
        - Non-positive price timeout
        - Configuration file not found
    """

    pass


class DataError(ETFPlannerError):
    """Base exception for data layer errors.

    Parent class for all data-related exceptions.
    """

    pass


class DataProviderError(DataError):
    """Raised when a data provider fails to fetch data.

    Examples:
        - Network connection failed
        - Unexpected response from Yahoo Finance
    """

    pass


class EtfNotFoundError(DataProviderError):
    """Raised when an ISIN lookup does not resolve to exactly one ETF.

    Examples:
        - No quote matches the ISIN
        - More than one quote matches the ISIN
    """

    def __init__(self, isin: str, message: str | None = None):
        self.isin = isin
        super().__init__(message or f"Could not find an ETF with isin = {isin}")


class PriceUnavailableError(DataProviderError):
    """Raised when a price cannot be resolved for an ETF.

    Non-fatal during planning: the ETF is excluded from the allocation round.
    """

    def __init__(self, etf_id: str, message: str | None = None):
        self.etf_id = etf_id
        super().__init__(message or f"Price unavailable for {etf_id}")


class StorageError(DataError):
    """Raised when database operations fail.

    Examples:
        - Database connection failed
        - SQL query failed
    """

    pass


class PersistenceError(StorageError):
    """Raised when persisting settings returns a nonzero status code."""

    def __init__(self, status: int, message: str | None = None):
        self.status = status
        super().__init__(message or f"Failed to persist settings (status {status})")


class PortfolioError(ETFPlannerError):
    """Base exception for portfolio layer errors.

    Parent class for all portfolio-related exceptions.
    """

    pass


class InvalidSettingsError(PortfolioError):
    """Raised when investor settings violate their invariants.

    Examples:
        - Ideal proportions sum to more than 1
        - Negative budget
        - Duplicate ETF ids
    """

    pass


class AllocationError(PortfolioError):
    """Raised when the purchase plan cannot be computed.

    Examples:
        - Knapsack capacity too large for the configured price scale
    """

    pass
