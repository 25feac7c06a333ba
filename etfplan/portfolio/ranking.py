"""Ranking stage: order ETFs by how far they sit below their target."""

from typing import List

from etfplan.portfolio.base import RankedEtf, ValuationResult


class DeviationRanker:
    """Rank priced ETFs by deviation from their ideal proportion.

    deviation = ideal_proportion - current_proportion. The sequence is sorted
    by deviation descending with ties broken by ETF id ascending, which gives
    a total order. ETFs at or below ``min_deviation`` stay in the sequence but
    are marked ineligible for purchase.

    Args:
        min_deviation: Deviations must exceed this to be eligible (default 1e-9)
    """

    def __init__(self, min_deviation: float = 1e-9):
        if min_deviation < 0:
            raise ValueError(f"min_deviation must be >= 0, got {min_deviation}")
        self.min_deviation = min_deviation

    def rank(self, valuation: ValuationResult) -> List[RankedEtf]:
        ranked = []
        for etf in valuation.priced:
            deviation = etf.setting.ideal_proportion - etf.current_proportion
            ranked.append(
                RankedEtf(
                    valuation=etf,
                    deviation=deviation,
                    eligible=deviation > self.min_deviation,
                )
            )

        ranked.sort(key=lambda r: (-r.deviation, r.etf_id))
        return ranked
