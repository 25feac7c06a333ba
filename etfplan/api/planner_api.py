"""User-friendly Planner API for ETF investment suggestions.

This module provides a simple, high-level interface over the settings store,
the price and metadata providers and the investment planner.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, List, Mapping, Optional

import pandas as pd

from etfplan.data.base import EtfDirectory, PriceOracle
from etfplan.data.providers.static_provider import StaticProvider
from etfplan.data.providers.yfinance_provider import YFinanceProvider
from etfplan.data.storage.database import DatabaseManager
from etfplan.data.storage.settings_store import SettingsStore, SqliteSettingsStore
from etfplan.portfolio.base import (
    EtfInfo,
    EtfSetting,
    Investment,
    InvestmentPlanner,
    PurchasePlan,
    Settings,
)
from etfplan.portfolio.knapsack_planner import KnapsackPlanner
from etfplan.portfolio.proportional_planner import ProportionalPlanner
from etfplan.portfolio.ranking import DeviationRanker
from etfplan.portfolio.valuation import ValuationEngine
from etfplan.utils.config import Config
from etfplan.utils.exceptions import (
    InvalidSettingsError,
    PersistenceError,
    PriceUnavailableError,
)
from etfplan.utils.logging import get_logger

logger = get_logger(__name__)


def build_planner(config: Config) -> InvestmentPlanner:
    """Create the planner selected by ``planner.strategy``."""
    strategy = config.get("planner.strategy", "proportional")
    min_deviation = float(config.get("planner.min_deviation", 1e-9))
    if strategy == "knapsack":
        return KnapsackPlanner(
            {
                "price_scale": int(config.get("planner.knapsack.price_scale", 1)),
                "min_deviation": min_deviation,
            }
        )
    return ProportionalPlanner({"min_deviation": min_deviation})


def build_provider(config: Config) -> YFinanceProvider | StaticProvider:
    """Create the price/metadata provider selected by ``prices.provider``."""
    if config.get("prices.provider", "yfinance") == "static":
        return StaticProvider(prices=config.get("prices.static", {}))
    return YFinanceProvider(unit_multiplier=float(config.get("prices.unit_multiplier", 1.0)))


class PlannerAPI:
    """High-level API for ETF investment planning.

    Reads one consistent snapshot of settings and holdings per suggestion,
    fans price lookups out to a thread pool and hands everything to the
    planner.

    Example:
        >>> from etfplan.api.planner_api import PlannerAPI
        >>> api = PlannerAPI.from_config(load_config())
        >>> info = api.search_etf_info("IE00B3ZW0K18")
        >>> api.add_etf(info.isin, ideal_proportion=1.0)
        >>> api.set_budget(1000)
        >>> for investment in api.suggest_investments():
        ...     print(investment.etf_id, investment.quantity)
    """

    def __init__(
        self,
        store: SettingsStore,
        price_oracle: PriceOracle,
        directory: Optional[EtfDirectory] = None,
        planner: Optional[InvestmentPlanner] = None,
        price_timeout: float = 10.0,
        max_workers: int = 8,
    ):
        """Initialize PlannerAPI.

        Args:
            store: Settings and holdings store
            price_oracle: Source of current prices
            directory: ISIN lookup service (defaults to price_oracle when it
                       also implements EtfDirectory)
            planner: InvestmentPlanner (defaults to ProportionalPlanner)
            price_timeout: Seconds to wait for all price lookups of one call
            max_workers: Maximum concurrent price lookups
        """
        if price_timeout <= 0:
            raise ValueError(f"price_timeout must be > 0, got {price_timeout}")
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self.store = store
        self.price_oracle = price_oracle
        if directory is None and isinstance(price_oracle, EtfDirectory):
            directory = price_oracle
        self.directory = directory
        self.planner = planner or ProportionalPlanner()
        self.price_timeout = price_timeout
        self.max_workers = max_workers

        logger.debug("PlannerAPI initialized with %s", type(self.planner).__name__)

    @classmethod
    def from_config(cls, config: Config) -> "PlannerAPI":
        """Wire SQLite storage, provider and planner from configuration."""
        provider = build_provider(config)
        store = SqliteSettingsStore(DatabaseManager(config.get("database.path", "data/etfplan.db")))
        return cls(
            store=store,
            price_oracle=provider,
            directory=provider,
            planner=build_planner(config),
            price_timeout=float(config.get("prices.timeout_seconds", 10.0)),
            max_workers=int(config.get("prices.max_workers", 8)),
        )

    # Lookups

    def search_etf_info(self, isin: str) -> EtfInfo:
        """Resolve an ISIN to ETF metadata.

        Raises:
            EtfNotFoundError: If the ISIN does not resolve to exactly one ETF
        """
        if self.directory is None:
            raise NotImplementedError("No EtfDirectory configured")
        return self.directory.search(isin.strip())

    def get_price_of(self, etf_id: str) -> float:
        """Fetch the current price of one ETF.

        Raises:
            PriceUnavailableError: If no positive price can be obtained
        """
        price = self.price_oracle.get_price(etf_id)
        if not ValuationEngine.is_valid_price(price):
            raise PriceUnavailableError(etf_id, f"Invalid price {price!r} for {etf_id}")
        return float(price)

    def fetch_prices(self, etf_ids: List[str]) -> Dict[str, Optional[float]]:
        """Fetch prices concurrently; failures and timeouts map to None.

        Args:
            etf_ids: ETF identifiers to price

        Returns:
            Dict of {etf_id: price or None}
        """
        if not etf_ids:
            return {}

        prices: Dict[str, Optional[float]] = {etf_id: None for etf_id in etf_ids}
        executor = ThreadPoolExecutor(max_workers=min(len(etf_ids), self.max_workers))
        try:
            future_to_id = {
                executor.submit(self.get_price_of, etf_id): etf_id for etf_id in etf_ids
            }
            done, not_done = wait(future_to_id, timeout=self.price_timeout)

            for future in done:
                etf_id = future_to_id[future]
                try:
                    prices[etf_id] = future.result()
                except Exception as e:
                    logger.warning("Price lookup failed for %s: %s", etf_id, e)

            for future in not_done:
                logger.warning(
                    "Price lookup for %s timed out after %.1fs",
                    future_to_id[future],
                    self.price_timeout,
                )
        finally:
            # Stalled lookups must not block the suggestion
            executor.shutdown(wait=False, cancel_futures=True)

        return prices

    # Settings

    def get_settings(self) -> Settings:
        return self.store.load()

    def persist_settings(self, settings: Settings) -> int:
        """Validate and persist settings.

        Returns:
            0 on success

        Raises:
            InvalidSettingsError: If settings are invalid (nothing is written)
            PersistenceError: If the store reports a nonzero status
        """
        settings.validate()
        status = self.store.save(settings)
        if status != 0:
            logger.error("Persisting settings failed with status %d", status)
            raise PersistenceError(status)
        return status

    def set_budget(self, budget: int) -> Settings:
        settings = self.store.load()
        settings.budget = budget
        self.persist_settings(settings)
        return settings

    def add_etf(self, isin: str, ideal_proportion: float, cumulative: int = 0) -> EtfSetting:
        """Look up an ISIN and start tracking it (replacing an existing entry)."""
        info = self.search_etf_info(isin)
        settings = self.store.load()
        etf_setting = EtfSetting(
            id=info.id,
            isin=info.isin,
            name=info.name,
            ideal_proportion=ideal_proportion,
            cumulative=cumulative,
        )
        existing = settings.get(info.id)
        if existing is not None:
            settings.etf_settings[settings.etf_settings.index(existing)] = etf_setting
        else:
            settings.etf_settings.append(etf_setting)
        self.persist_settings(settings)
        return etf_setting

    def remove_etf(self, etf_id: str) -> Settings:
        settings = self.store.load()
        if settings.get(etf_id) is None:
            raise InvalidSettingsError(f"ETF {etf_id} is not tracked")
        settings.etf_settings = [s for s in settings.etf_settings if s.id != etf_id]
        self.persist_settings(settings)
        return settings

    def set_proportion(self, etf_id: str, ideal_proportion: float) -> Settings:
        settings = self.store.load()
        etf_setting = settings.get(etf_id)
        if etf_setting is None:
            raise InvalidSettingsError(f"ETF {etf_id} is not tracked")
        etf_setting.ideal_proportion = ideal_proportion
        self.persist_settings(settings)
        return settings

    # Holdings

    def get_holdings(self) -> Dict[str, int]:
        return self.store.load_holdings()

    def set_holding(self, etf_id: str, quantity: int) -> Dict[str, int]:
        if quantity < 0:
            raise ValueError(f"quantity must be non-negative, got {quantity}")
        holdings = self.store.load_holdings()
        holdings[etf_id] = quantity
        self._save_holdings(holdings)
        return holdings

    def record_investments(self, investments: List[Investment]) -> Settings:
        """Book executed purchases: add shares to holdings and cost to cumulative.

        Settings and holdings are written together; on failure neither changes.

        Raises:
            PersistenceError: If the store reports a nonzero status
        """
        settings = self.store.load()
        holdings = self.store.load_holdings()
        for investment in investments:
            holdings[investment.etf_id] = holdings.get(investment.etf_id, 0) + investment.quantity
            etf_setting = settings.get(investment.etf_id)
            if etf_setting is not None:
                etf_setting.cumulative += int(round(investment.cost))

        settings.validate()
        status = self.store.save_snapshot(settings, holdings)
        if status != 0:
            logger.error("Recording investments failed with status %d", status)
            raise PersistenceError(status, f"Failed to record investments (status {status})")
        return settings

    def _save_holdings(self, holdings: Mapping[str, int]) -> None:
        status = self.store.save_holdings(holdings)
        if status != 0:
            logger.error("Persisting holdings failed with status %d", status)
            raise PersistenceError(status, f"Failed to persist holdings (status {status})")

    # Suggestions

    def suggest_plan(self) -> PurchasePlan:
        """Compute a full purchase plan from one settings/holdings snapshot."""
        settings = self.store.load()
        holdings = self.store.load_holdings()
        settings.validate()

        logger.info(
            "Suggesting investments for %d ETFs with budget %s",
            len(settings.etf_settings),
            settings.budget,
        )

        prices = self.fetch_prices([s.id for s in settings.etf_settings])
        plan = self.planner.plan(settings, holdings, prices)

        if plan.excluded:
            logger.warning("Excluded ETFs without price: %s", ", ".join(plan.excluded))
        return plan

    def suggest_investments(self) -> List[Investment]:
        """Suggested purchases, each with a strictly positive quantity."""
        return self.suggest_plan().investments

    # Formatting

    def get_valuation(self) -> pd.DataFrame:
        """Current value, proportion and deviation per tracked ETF.

        Uses the planner's own valuation engine and ranker, so ``eligible``
        marks exactly the ETFs a suggestion may buy.
        """
        settings = self.store.load()
        holdings = self.store.load_holdings()
        prices = self.fetch_prices([s.id for s in settings.etf_settings])

        engine = getattr(self.planner, "valuation_engine", None) or ValuationEngine()
        ranker = getattr(self.planner, "ranker", None) or DeviationRanker()
        valuation = engine.valuate(settings, holdings, prices)
        ranked = {r.etf_id: r for r in ranker.rank(valuation)}

        data = [
            {
                "etf_id": v.etf_id,
                "name": v.setting.name,
                "quantity": v.quantity,
                "price": v.price,
                "value": v.current_value,
                "current_proportion": v.current_proportion,
                "ideal_proportion": v.setting.ideal_proportion,
                "deviation": ranked[v.etf_id].deviation if v.etf_id in ranked else None,
                "eligible": ranked[v.etf_id].eligible if v.etf_id in ranked else False,
            }
            for v in valuation.valuations
        ]
        columns = [
            "etf_id", "name", "quantity", "price", "value",
            "current_proportion", "ideal_proportion", "deviation", "eligible",
        ]
        return pd.DataFrame(data, columns=columns)

    def format_investments(self, investments: List[Investment]) -> pd.DataFrame:
        """Format investments as a DataFrame for display."""
        if not investments:
            return pd.DataFrame(columns=["etf_id", "name", "quantity", "price", "cost"])

        data = [
            {
                "etf_id": i.etf_id,
                "name": i.name,
                "quantity": i.quantity,
                "price": i.price,
                "cost": i.cost,
            }
            for i in investments
        ]
        return pd.DataFrame(data)
