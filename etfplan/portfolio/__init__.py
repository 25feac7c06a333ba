"""Portfolio Planning Layer.

This layer turns investor settings, current holdings and prices into an
integer-share purchase plan.

Components:
- InvestmentPlanner: Abstract interface for suggestion pipelines
- ProportionalPlanner: Default two-pass proportional planner
- KnapsackPlanner: Optimal share mix toward money targets
- ValuationEngine, DeviationRanker, SharePurchaseResolver: pipeline stages
"""

from etfplan.portfolio.base import (
    EtfInfo,
    EtfSetting,
    EtfValuation,
    Investment,
    InvestmentPlanner,
    PlanStage,
    PurchasePlan,
    RankedEtf,
    Settings,
    ValuationResult,
)
from etfplan.portfolio.knapsack_planner import KnapsackPlanner
from etfplan.portfolio.proportional_planner import ProportionalPlanner
from etfplan.portfolio.purchase_resolver import SharePurchaseResolver
from etfplan.portfolio.ranking import DeviationRanker
from etfplan.portfolio.valuation import ValuationEngine

__all__ = [
    "EtfInfo",
    "EtfSetting",
    "EtfValuation",
    "Investment",
    "InvestmentPlanner",
    "PlanStage",
    "PurchasePlan",
    "RankedEtf",
    "Settings",
    "ValuationResult",
    "ProportionalPlanner",
    "KnapsackPlanner",
    "SharePurchaseResolver",
    "DeviationRanker",
    "ValuationEngine",
]
