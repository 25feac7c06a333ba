"""Data model and abstract planner for ETF investment suggestions.

This module defines the contract for turning investor settings, a holdings
snapshot and a price snapshot into an integer-share purchase plan.

Responsibilities:
- Settings model: budget and per-ETF target proportions
- Valuation model: current value and proportion per ETF
- Ranking model: deviation from target per ETF
- Plan model: suggested purchases and leftover cash
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional

from etfplan.utils.exceptions import InvalidSettingsError

# Absorbs float noise when checking that proportions sum to at most 1
PROPORTION_TOLERANCE = 1e-9


class PlanStage(Enum):
    """Stages of the suggestion pipeline, in execution order."""

    INIT = "init"
    VALUATE = "valuate"
    RANK = "rank"
    ALLOCATE_PASS1 = "allocate_pass1"
    ALLOCATE_PASS2 = "allocate_pass2"
    DONE = "done"


@dataclass(frozen=True)
class EtfInfo:
    """Reference data for one ETF.

    Attributes:
        id: Ticker used for price lookups (e.g. "IUSE.L")
        name: Display name
        isin: International Securities Identification Number
    """

    id: str
    name: str
    isin: str


@dataclass
class Investment:
    """A current holding or a suggested purchase.

    Attributes:
        etf_id: ETF identifier
        name: Display name
        quantity: Whole number of shares
        price: Unit price used for the suggestion (0.0 for plain holdings)
    """

    etf_id: str
    name: str
    quantity: int
    price: float = 0.0

    def __post_init__(self):
        """Validate investment fields."""
        if self.quantity < 0:
            raise ValueError(f"quantity must be non-negative, got {self.quantity}")
        if self.price < 0:
            raise ValueError(f"price must be non-negative, got {self.price}")

    @property
    def cost(self) -> float:
        return self.quantity * self.price


@dataclass
class EtfSetting:
    """Investor configuration for one tracked ETF.

    Attributes:
        id: ETF identifier (ticker)
        isin: ISIN of the ETF
        name: Display name
        ideal_proportion: Target fraction of portfolio value in [0, 1]
        cumulative: Running total previously invested (informational)
    """

    id: str
    isin: str
    name: str
    ideal_proportion: float
    cumulative: int = 0


@dataclass
class Settings:
    """Investor settings: the budget and the tracked ETFs.

    Attributes:
        budget: Cash amount to invest this round
        etf_settings: Tracked ETFs in display order, unique by id
    """

    budget: int
    etf_settings: List[EtfSetting] = field(default_factory=list)

    @classmethod
    def default(cls) -> "Settings":
        """Settings returned when nothing has been persisted yet."""
        return cls(budget=0, etf_settings=[])

    def get(self, etf_id: str) -> Optional[EtfSetting]:
        for etf_setting in self.etf_settings:
            if etf_setting.id == etf_id:
                return etf_setting
        return None

    def validate(self) -> None:
        """Check the settings invariants.

        Raises:
            InvalidSettingsError: If the budget is negative, a proportion is
                outside [0, 1], proportions sum above 1, or ids are empty or
                duplicated
        """
        if self.budget < 0:
            raise InvalidSettingsError(f"budget must be non-negative, got {self.budget}")

        seen = set()
        for etf_setting in self.etf_settings:
            if not etf_setting.id:
                raise InvalidSettingsError("ETF id must not be empty")
            if etf_setting.id in seen:
                raise InvalidSettingsError(f"duplicate ETF id: {etf_setting.id}")
            seen.add(etf_setting.id)

            proportion = etf_setting.ideal_proportion
            if math.isnan(proportion) or not 0 <= proportion <= 1:
                raise InvalidSettingsError(
                    f"ideal_proportion for {etf_setting.id} must be in [0, 1], got {proportion}"
                )

        total = sum(s.ideal_proportion for s in self.etf_settings)
        if total > 1 + PROPORTION_TOLERANCE:
            raise InvalidSettingsError(
                f"ideal proportions must sum to at most 1, got {total:.6f}"
            )


@dataclass
class EtfValuation:
    """Current market position of one tracked ETF.

    Attributes:
        setting: The investor setting for this ETF
        quantity: Shares currently held
        price: Resolved unit price, None when unavailable
        current_value: quantity * price (0 when unpriced)
        current_proportion: current_value / total priced value
    """

    setting: EtfSetting
    quantity: int
    price: Optional[float]
    current_value: float = 0.0
    current_proportion: float = 0.0

    @property
    def etf_id(self) -> str:
        return self.setting.id

    @property
    def price_available(self) -> bool:
        return self.price is not None


@dataclass
class ValuationResult:
    """Output of the valuation stage."""

    valuations: List[EtfValuation]
    total_value: float

    @property
    def excluded_ids(self) -> List[str]:
        """ETFs flagged as priced unavailable, in settings order."""
        return [v.etf_id for v in self.valuations if not v.price_available]

    @property
    def priced(self) -> List[EtfValuation]:
        return [v for v in self.valuations if v.price_available]


@dataclass
class RankedEtf:
    """An ETF with its deviation from target."""

    valuation: EtfValuation
    deviation: float
    eligible: bool = False

    @property
    def etf_id(self) -> str:
        return self.valuation.etf_id

    @property
    def price(self) -> float:
        return self.valuation.price


@dataclass
class PurchasePlan:
    """Result of the suggestion pipeline.

    Attributes:
        investments: Suggested purchases in rank order, all quantities > 0
        budget: Budget the plan was computed for
        leftover: Unspent cash, never negative
        excluded: ETF ids skipped because no price was available
        stages: Pipeline stages traversed, in order
        metrics: Additional figures for monitoring
    """

    investments: List[Investment]
    budget: float
    leftover: float
    excluded: List[str] = field(default_factory=list)
    stages: List[PlanStage] = field(default_factory=list)
    metrics: Dict[str, float] = field(default_factory=dict)

    @property
    def total_cost(self) -> float:
        return sum(i.cost for i in self.investments)


class InvestmentPlanner(ABC):
    """Abstract interface for investment suggestion.

    A planner is a pure function of (settings, holdings snapshot, price
    snapshot). It never performs lookups or writes of its own.

    Example:
        >>> planner = ProportionalPlanner()
        >>> settings = Settings(1000, [
        ...     EtfSetting("A", "", "A", 0.5),
        ...     EtfSetting("B", "", "B", 0.5),
        ... ])
        >>> plan = planner.plan(settings, {}, {"A": 100.0, "B": 250.0})
        >>> [(i.etf_id, i.quantity) for i in plan.investments]
        [('A', 5), ('B', 2)]
    """

    @abstractmethod
    def plan(
        self,
        settings: Settings,
        holdings: Mapping[str, int],
        prices: Mapping[str, Optional[float]],
    ) -> PurchasePlan:
        """Compute a purchase plan.

        Args:
            settings: Investor settings (validated before any computation)
            holdings: Current shares held {etf_id: quantity}
            prices: Resolved prices {etf_id: price}; None, missing or
                    non-positive prices exclude the ETF from this round

        Returns:
            PurchasePlan with investments, leftover cash and excluded ETFs

        Raises:
            InvalidSettingsError: If settings violate their invariants
        """
        pass

    def suggest(
        self,
        settings: Settings,
        holdings: Mapping[str, int],
        prices: Mapping[str, Optional[float]],
    ) -> List[Investment]:
        """Convenience wrapper returning only the suggested investments."""
        return self.plan(settings, holdings, prices).investments
