"""Knapsack investment planner.

Invests the budget toward per-ETF money targets by minimising the squared
distance between each ETF's value after buying and its target.

Algorithm:
1. Targets: split (current value + budget) by the normalised ideal
   proportions, then hand the budget only to ETFs below their ideal amount,
   proportionally to the shortfall
2. Items: every additional share of an ETF becomes one knapsack item whose
   value is the reduction in squared error it brings; share generation stops
   at the first share that no longer reduces the error
3. Solve a 0/1 knapsack over the items with the budget as capacity
4. The number of chosen items per ETF is the suggested quantity

Unlike ProportionalPlanner this always tries to spend new money, even when
the portfolio already sits exactly on its targets.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np

from etfplan.portfolio.base import (
    Investment,
    InvestmentPlanner,
    PlanStage,
    PurchasePlan,
    Settings,
)
from etfplan.portfolio.ranking import DeviationRanker
from etfplan.portfolio.valuation import ValuationEngine
from etfplan.utils.exceptions import AllocationError
from etfplan.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)

# Upper bound on DP table cells (items x capacity)
MAX_DP_CELLS = 50_000_000


@dataclass(frozen=True)
class KnapsackItem:
    """One extra share of one ETF."""

    value: float
    weight: int
    etf_index: int


def calc_targets(ideal_proportions: List[float], amounts: List[float], budget: float) -> List[float]:
    """Money each ETF should hold after investing the budget.

    Args:
        ideal_proportions: Target proportions, normalised internally
        amounts: Current money held per ETF
        budget: New money to invest

    Returns:
        Target amounts, same order as the inputs
    """
    if len(ideal_proportions) != len(amounts):
        raise ValueError("ideal_proportions and amounts must have the same length")
    if not amounts:
        return []

    total_proportion = sum(ideal_proportions)
    if total_proportion <= 0:
        return [amount + budget / len(amounts) for amount in amounts]

    proportions = [p / total_proportion for p in ideal_proportions]
    total_amount = sum(amounts) + budget

    direction = [max(p * total_amount - amount, 0.0) for p, amount in zip(proportions, amounts)]
    direction_total = sum(direction)
    if direction_total <= 0:
        return list(amounts)

    return [amount + budget * d / direction_total for amount, d in zip(amounts, direction)]


def generate_items(
    capacity: int,
    amounts: List[float],
    targets: List[float],
    prices: List[float],
    weights: List[int],
) -> List[KnapsackItem]:
    """Build one item per share that strictly reduces the squared error."""
    items = []
    for etf_index, (amount, target, price, weight) in enumerate(zip(amounts, targets, prices, weights)):
        quantity = 1
        last_error = (target - amount) ** 2
        while weight * quantity <= capacity:
            error = (target - (amount + price * quantity)) ** 2
            value = last_error - error
            if value <= 0:
                break
            items.append(KnapsackItem(value=value, weight=weight, etf_index=etf_index))
            last_error = error
            quantity += 1
    return items


def solve_knapsack(capacity: int, items: List[KnapsackItem]) -> Tuple[float, List[int]]:
    """Solve the 0/1 knapsack problem.

    Args:
        capacity: Maximum total weight
        items: Candidate items, all weights >= 1

    Returns:
        Tuple of (best total value, sorted indices of chosen items)
    """
    if capacity <= 0 or not items:
        return 0.0, []

    if len(items) * (capacity + 1) > MAX_DP_CELLS:
        raise AllocationError(
            f"Knapsack too large: {len(items)} items x {capacity + 1} capacity; "
            "lower planner.knapsack.price_scale"
        )

    best = np.zeros(capacity + 1)
    taken = np.zeros((len(items), capacity + 1), dtype=bool)

    for i, item in enumerate(items):
        w = item.weight
        if w > capacity:
            continue
        candidate = best[: capacity + 1 - w] + item.value
        improves = candidate > best[w:]
        taken[i, w:] = improves
        best[w:] = np.where(improves, candidate, best[w:])

    chosen = []
    remaining = capacity
    for i in range(len(items) - 1, -1, -1):
        if taken[i, remaining]:
            chosen.append(i)
            remaining -= items[i].weight

    chosen.reverse()
    return float(best[capacity]), chosen


class KnapsackPlanner(InvestmentPlanner):
    """Planner that solves the exact share mix with a knapsack.

    Configuration Parameters:
        price_scale: Integer units per budget unit used for knapsack weights
                     (default 1). Weights are rounded up so the plan never
                     exceeds the budget; a larger scale is more precise but
                     makes the table larger.
        min_deviation: Passed to the ranker used to order the output
    """

    def __init__(self, config: Optional[Dict] = None):
        config = config or {}

        self.price_scale = int(config.get("price_scale", 1))
        if self.price_scale < 1:
            raise ValueError(f"price_scale must be >= 1, got {self.price_scale}")

        self.valuation_engine = ValuationEngine()
        self.ranker = DeviationRanker(float(config.get("min_deviation", 1e-9)))

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
        priced = valuation.priced

        stages.append(PlanStage.RANK)
        ranked = self.ranker.rank(valuation)

        stages.append(PlanStage.ALLOCATE_PASS1)
        amounts = [v.current_value for v in priced]
        unit_prices = [v.price for v in priced]
        targets = calc_targets(
            [v.setting.ideal_proportion for v in priced], amounts, float(settings.budget)
        )
        capacity = int(math.floor(settings.budget * self.price_scale))
        weights = [int(math.ceil(p * self.price_scale)) for p in unit_prices]

        items = generate_items(capacity, amounts, targets, unit_prices, weights)
        best_value, chosen = solve_knapsack(capacity, items)

        quantities = [0] * len(priced)
        for index in chosen:
            quantities[items[index].etf_index] += 1
        stages.append(PlanStage.DONE)

        by_id = {v.etf_id: q for v, q in zip(priced, quantities)}
        investments = [
            Investment(
                etf_id=r.etf_id,
                name=r.valuation.setting.name,
                quantity=by_id[r.etf_id],
                price=r.price,
            )
            for r in ranked
            if by_id[r.etf_id] > 0
        ]

        total_cost = sum(i.cost for i in investments)
        plan = PurchasePlan(
            investments=investments,
            budget=settings.budget,
            leftover=max(settings.budget - total_cost, 0.0),
            excluded=valuation.excluded_ids,
            stages=stages,
            metrics={
                "portfolio_value": valuation.total_value,
                "item_count": float(len(items)),
                "error_reduction": best_value,
                "purchase_count": float(len(investments)),
            },
        )

        log_with_context(
            logger,
            "info",
            "Knapsack plan computed",
            investments=len(plan.investments),
            total_cost=total_cost,
            leftover=plan.leftover,
            excluded=plan.excluded,
        )
        return plan
