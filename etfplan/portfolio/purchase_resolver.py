"""Purchase stage: turn ranked deviations and a budget into whole shares.

Algorithm:
1. Proportional pass over eligible ETFs in rank order. Each ETF receives
   remaining * deviation / (sum of deviations still pending) and buys the
   floor of that allocation divided by its price.
2. ETFs that could not afford a single share are retained and stay in the
   denominator above. If the leftover covers the cheapest eligible price, one
   top-up pass buys single shares round robin in rank order: first among the
   retained ETFs, then among all eligible ETFs, until the leftover is below
   every eligible price.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List

from etfplan.portfolio.base import Investment, RankedEtf
from etfplan.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Resolution:
    """Output of the purchase stage."""

    investments: List[Investment]
    leftover: float
    skipped: List[str] = field(default_factory=list)
    pass2_executed: bool = False


def _affordable_shares(allocation: float, price: float, remaining: float) -> int:
    """Whole shares purchasable with allocation, never costing more than remaining."""
    shares = math.floor(allocation / price)
    # Division can round up to the next integer
    while shares > 0 and shares * price > remaining:
        shares -= 1
    return max(shares, 0)


class SharePurchaseResolver:
    """Resolve ranked ETFs into an integer-share purchase list.

    Only ETFs marked eligible (positive deviation) are ever bought. Rounding
    is always a floor, so the total cost never exceeds the budget and no
    quantity is negative or fractional.

    Example:
        >>> resolver = SharePurchaseResolver()
        >>> resolution = resolver.resolve(ranked, budget=1000)
        >>> resolution.leftover
        0.0
    """

    def resolve(self, ranked: List[RankedEtf], budget: float) -> Resolution:
        """Allocate the budget across the ranked sequence.

        Args:
            ranked: Output of DeviationRanker.rank, in rank order
            budget: Cash to spend, non-negative

        Returns:
            Resolution with investments in rank order and the leftover cash
        """
        if budget < 0:
            raise ValueError(f"budget must be non-negative, got {budget}")

        remaining = float(budget)
        eligible = [r for r in ranked if r.eligible]
        quantities: Dict[str, int] = {}

        if not eligible:
            logger.debug("No ETF below its target, nothing to buy")
            return Resolution(investments=[], leftover=remaining)

        pending = {r.etf_id: r.deviation for r in eligible}
        skipped: List[RankedEtf] = []

        for etf in eligible:
            allocation = remaining * etf.deviation / sum(pending.values())
            shares = _affordable_shares(allocation, etf.price, remaining)

            if shares >= 1:
                quantities[etf.etf_id] = shares
                remaining -= shares * etf.price
                del pending[etf.etf_id]
                logger.debug(
                    "Pass 1: %s allocation %.2f -> %d shares at %.2f",
                    etf.etf_id, allocation, shares, etf.price,
                )
            else:
                skipped.append(etf)
                logger.debug(
                    "Pass 1: %s allocation %.2f below price %.2f, retained",
                    etf.etf_id, allocation, etf.price,
                )

        pass2_executed = False
        if remaining >= min(etf.price for etf in eligible):
            pass2_executed = True
            remaining = self._top_up(skipped, remaining, quantities)
            remaining = self._top_up(eligible, remaining, quantities)

        investments = [
            Investment(
                etf_id=etf.etf_id,
                name=etf.valuation.setting.name,
                quantity=quantities[etf.etf_id],
                price=etf.price,
            )
            for etf in eligible
            if quantities.get(etf.etf_id, 0) > 0
        ]

        return Resolution(
            investments=investments,
            leftover=max(remaining, 0.0),
            skipped=[etf.etf_id for etf in skipped if etf.etf_id not in quantities],
            pass2_executed=pass2_executed,
        )

    def _top_up(
        self,
        etfs: List[RankedEtf],
        remaining: float,
        quantities: Dict[str, int],
    ) -> float:
        """Buy single shares of the given ETFs round robin in rank order."""
        if not etfs:
            return remaining
        cheapest = min(etf.price for etf in etfs)
        while remaining >= cheapest:
            bought = False
            for etf in etfs:
                if etf.price <= remaining:
                    quantities[etf.etf_id] = quantities.get(etf.etf_id, 0) + 1
                    remaining -= etf.price
                    bought = True
                    logger.debug("Pass 2: 1 share of %s at %.2f", etf.etf_id, etf.price)
            if not bought:
                break
        return remaining
