"""Proportional two-pass investment planner.

Wires the valuation, ranking and purchase stages into one pure pipeline:
Init -> Valuate -> Rank -> AllocatePass1 -> AllocatePass2 -> Done.
"""

from typing import Dict, List, Mapping, Optional

from etfplan.portfolio.base import (
    InvestmentPlanner,
    PlanStage,
    PurchasePlan,
    RankedEtf,
    Settings,
)
from etfplan.portfolio.purchase_resolver import Resolution, SharePurchaseResolver
from etfplan.portfolio.ranking import DeviationRanker
from etfplan.portfolio.valuation import ValuationEngine
from etfplan.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)


class ProportionalPlanner(InvestmentPlanner):
    """Default planner: proportional pass followed by a single top-up pass.

    Configuration Parameters:
        min_deviation: Deviation an ETF must exceed to be bought (default 1e-9)

    Example:
        >>> planner = ProportionalPlanner({"min_deviation": 0.01})
        >>> plan = planner.plan(settings, holdings={"A": 3}, prices={"A": 100.0})
        >>> plan.leftover
        50.0
    """

    def __init__(self, config: Optional[Dict] = None):
        config = config or {}

        self.min_deviation = float(config.get("min_deviation", 1e-9))
        if self.min_deviation < 0:
            raise ValueError(f"min_deviation must be >= 0, got {self.min_deviation}")

        self.valuation_engine = ValuationEngine()
        self.ranker = DeviationRanker(self.min_deviation)
        self.resolver = SharePurchaseResolver()

    def plan(
        self,
        settings: Settings,
        holdings: Mapping[str, int],
        prices: Mapping[str, Optional[float]],
    ) -> PurchasePlan:
        stages = [PlanStage.INIT]
        settings.validate()

        stages.append(PlanStage.VALUATE)
        valuation = self.valuation_engine.valuate(settings, holdings, prices)

        stages.append(PlanStage.RANK)
        ranked = self.ranker.rank(valuation)

        stages.extend([PlanStage.ALLOCATE_PASS1, PlanStage.ALLOCATE_PASS2])
        resolution = self.resolver.resolve(ranked, settings.budget)
        stages.append(PlanStage.DONE)

        plan = PurchasePlan(
            investments=resolution.investments,
            budget=settings.budget,
            leftover=resolution.leftover,
            excluded=valuation.excluded_ids,
            stages=stages,
            metrics=self._calculate_metrics(ranked, resolution, valuation.total_value),
        )

        log_with_context(
            logger,
            "info",
            "Purchase plan computed",
            investments=len(plan.investments),
            total_cost=plan.total_cost,
            leftover=plan.leftover,
            excluded=plan.excluded,
        )
        return plan

    def _calculate_metrics(
        self,
        ranked: List[RankedEtf],
        resolution: Resolution,
        total_value: float,
    ) -> Dict[str, float]:
        eligible = [r for r in ranked if r.eligible]
        return {
            "portfolio_value": total_value,
            "ranked_count": float(len(ranked)),
            "eligible_count": float(len(eligible)),
            "purchase_count": float(len(resolution.investments)),
            "skipped_count": float(len(resolution.skipped)),
            "pass2_executed": 1.0 if resolution.pass2_executed else 0.0,
            "max_deviation": max((r.deviation for r in ranked), default=0.0),
        }
