"""Unit tests for DeviationRanker."""

import pytest

from etfplan.portfolio.base import EtfSetting, Settings
from etfplan.portfolio.ranking import DeviationRanker
from etfplan.portfolio.valuation import ValuationEngine


def valuate(proportions: dict, holdings: dict, prices: dict):
    settings = Settings(
        budget=0,
        etf_settings=[EtfSetting(i, "", i, p) for i, p in proportions.items()],
    )
    return ValuationEngine().valuate(settings, holdings, prices)


class TestDeviationRanker:
    """Test cases for DeviationRanker."""

    def test_invalid_min_deviation(self) -> None:
        """Test negative min_deviation raises ValueError."""
        with pytest.raises(ValueError, match="min_deviation must be >= 0"):
            DeviationRanker(-0.1)

    def test_sorted_by_deviation_descending(self) -> None:
        """Test most underweight ETF comes first."""
        valuation = valuate(
            {"A": 0.2, "B": 0.5, "C": 0.3},
            {"A": 1, "B": 1, "C": 2},
            {"A": 100.0, "B": 100.0, "C": 100.0},
        )

        ranked = DeviationRanker().rank(valuation)

        # current: A 0.25, B 0.25, C 0.5
        assert [r.etf_id for r in ranked] == ["B", "A", "C"]
        assert ranked[0].deviation == pytest.approx(0.25)
        assert ranked[1].deviation == pytest.approx(-0.05)
        assert ranked[2].deviation == pytest.approx(-0.2)

    def test_ties_broken_by_id(self) -> None:
        """Test equal deviations are ordered by id ascending."""
        valuation = valuate(
            {"ZZZ": 0.25, "AAA": 0.25, "MMM": 0.5},
            {},
            {"ZZZ": 10.0, "AAA": 20.0, "MMM": 30.0},
        )

        ranked = DeviationRanker().rank(valuation)

        assert [r.etf_id for r in ranked] == ["MMM", "AAA", "ZZZ"]

    def test_eligibility(self) -> None:
        """Test only positive deviations are eligible."""
        valuation = valuate(
            {"A": 0.5, "B": 0.5},
            {"A": 1, "B": 1},
            {"A": 100.0, "B": 100.0},
        )

        ranked = DeviationRanker().rank(valuation)

        assert all(r.deviation == 0.0 for r in ranked)
        assert not any(r.eligible for r in ranked)

    def test_custom_min_deviation(self) -> None:
        """Test deviations at or below min_deviation are ineligible."""
        valuation = valuate(
            {"A": 0.55, "B": 0.45},
            {"A": 1, "B": 1},
            {"A": 100.0, "B": 100.0},
        )

        ranked = DeviationRanker(min_deviation=0.1).rank(valuation)

        assert [r.etf_id for r in ranked] == ["A", "B"]
        assert not ranked[0].eligible

    def test_unpriced_etfs_not_ranked(self) -> None:
        """Test ETFs without a price are left out."""
        valuation = valuate(
            {"A": 0.5, "B": 0.5},
            {},
            {"A": 100.0, "B": None},
        )

        ranked = DeviationRanker().rank(valuation)

        assert [r.etf_id for r in ranked] == ["A"]
        assert ranked[0].price == 100.0
