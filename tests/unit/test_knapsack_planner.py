"""Unit tests for KnapsackPlanner and its helpers."""

from typing import List

import pytest

from etfplan.portfolio import knapsack_planner
from etfplan.portfolio.base import EtfSetting, PlanStage, Settings
from etfplan.portfolio.knapsack_planner import (
    KnapsackItem,
    KnapsackPlanner,
    calc_targets,
    generate_items,
    solve_knapsack,
)
from etfplan.utils.exceptions import AllocationError


def solve_quantities(budget: int, amounts: List[float], targets: List[float], prices: List[int]) -> List[int]:
    """Run item generation and the solver on integer prices."""
    items = generate_items(budget, amounts, targets, prices, prices)
    _, chosen = solve_knapsack(budget, items)
    quantities = [0] * len(prices)
    for index in chosen:
        quantities[items[index].etf_index] += 1
    return quantities


class TestCalcTargets:
    """Test cases for calc_targets."""

    def test_equal_proportions(self) -> None:
        """Test budget fills the ETFs below their share."""
        result = calc_targets([1 / 3, 1 / 3, 1 / 3], [0.0, 0.0, 1.0], 2.0)
        assert result == pytest.approx([1.0, 1.0, 1.0])

    def test_balanced_amounts_scale_up(self) -> None:
        """Test balanced amounts grow proportionally."""
        proportions = [0.2, 0.3, 0.1, 0.4]
        result = calc_targets(proportions, list(proportions), 1.0)
        assert result == pytest.approx([0.4, 0.6, 0.2, 0.8])

    def test_unnormalised_proportions(self) -> None:
        """Test proportions are normalised before use."""
        assert calc_targets([10.0, 5.0], [5.0, 10.0], 15.0) == pytest.approx([20.0, 10.0])

    def test_zero_proportion_gets_nothing(self) -> None:
        """Test an ETF with zero proportion keeps its amount."""
        assert calc_targets([10.0, 0.0], [5.0, 10.0], 150.0) == pytest.approx([155.0, 10.0])

    @pytest.mark.parametrize("proportions", [[0.0, 0.0], [-1.0, -1.0], [-1.0, 0.1]])
    def test_non_positive_total_splits_equally(self, proportions: List[float]) -> None:
        """Test a non-positive proportion total splits the budget equally."""
        assert calc_targets(proportions, [0.5, 0.5], 1.0) == pytest.approx([1.0, 1.0])

    def test_length_mismatch(self) -> None:
        """Test mismatched inputs raise ValueError."""
        with pytest.raises(ValueError, match="same length"):
            calc_targets([0.5], [1.0, 2.0], 10.0)


class TestGenerateItems:
    """Test cases for generate_items."""

    def test_values_are_error_reductions(self) -> None:
        """Test one item per share while the squared error shrinks."""
        items = generate_items(10, [0.0], [5.0], [1.0], [1])

        assert [item.value for item in items] == [9.0, 7.0, 5.0, 3.0, 1.0]
        assert all(item.weight == 1 for item in items)

    def test_overweight_etf_has_no_items(self) -> None:
        """Test an ETF above its target produces no items."""
        assert generate_items(1000, [600.0], [500.0], [200.0], [200]) == []

    def test_capacity_limits_items(self) -> None:
        """Test no more shares than the capacity allows."""
        items = generate_items(3, [0.0], [100.0], [1.0], [1])
        assert len(items) == 3


class TestSolveKnapsack:
    """Test cases for solve_knapsack."""

    def test_three_items(self) -> None:
        """Test the best pair is chosen."""
        items = [
            KnapsackItem(150, 300, 0),
            KnapsackItem(200, 200, 1),
            KnapsackItem(250, 250, 2),
        ]

        value, chosen = solve_knapsack(600, items)

        assert value == 450
        assert chosen == [1, 2]

    def test_exact_capacity(self) -> None:
        """Test an item filling the capacity exactly."""
        items = [KnapsackItem(10, 5, 0), KnapsackItem(19, 10, 1), KnapsackItem(30, 15, 2)]

        value, chosen = solve_knapsack(15, items)

        assert value == 30
        assert chosen == [2]

    def test_no_items(self) -> None:
        """Test an empty item list."""
        assert solve_knapsack(10, []) == (0.0, [])

    def test_no_capacity(self) -> None:
        """Test zero capacity selects nothing."""
        assert solve_knapsack(0, [KnapsackItem(10, 5, 0)]) == (0.0, [])

    def test_table_too_large(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test oversized problems raise AllocationError."""
        monkeypatch.setattr(knapsack_planner, "MAX_DP_CELLS", 100)

        with pytest.raises(AllocationError, match="Knapsack too large"):
            solve_knapsack(1000, [KnapsackItem(1, 1, 0)])


class TestShareMix:
    """Test cases for the combined item generation and solver."""

    def test_single_etf(self) -> None:
        """Test buying up to the target."""
        assert solve_quantities(10, [0], [5], [1]) == [5]

    def test_two_etfs(self) -> None:
        """Test mixed prices and existing amounts."""
        assert solve_quantities(89, [0, 80], [5, 95], [8, 5]) == [1, 3]

    def test_three_etfs(self) -> None:
        """Test the mix with the lowest squared error is chosen."""
        assert solve_quantities(600, [0, 0, 0], [200, 200, 200], [300, 200, 250]) == [0, 1, 1]

    def test_small_budget(self) -> None:
        """Test a budget below every price buys nothing."""
        assert solve_quantities(150, [600, 600, 500], [800, 800, 800], [300, 200, 250]) == [0, 0, 0]

    def test_target_below_amount(self) -> None:
        """Test an ETF above its target is not bought."""
        assert solve_quantities(850, [600, 600, 500], [800, 500, 1000], [300, 200, 250]) == [1, 0, 2]


class TestKnapsackPlanner:
    """Test cases for KnapsackPlanner."""

    @pytest.fixture
    def planner(self) -> KnapsackPlanner:
        """Create KnapsackPlanner instance."""
        return KnapsackPlanner()

    def test_invalid_price_scale(self) -> None:
        """Test config validation for price_scale < 1."""
        with pytest.raises(ValueError, match="price_scale must be >= 1"):
            KnapsackPlanner({"price_scale": 0})

    def test_two_etfs_from_empty_portfolio(self, planner: KnapsackPlanner) -> None:
        """Test 50/50 split of 1000 across prices 100 and 250."""
        settings = Settings(1000, [EtfSetting("A", "", "A", 0.5), EtfSetting("B", "", "B", 0.5)])

        plan = planner.plan(settings, {}, {"A": 100.0, "B": 250.0})

        assert [(i.etf_id, i.quantity) for i in plan.investments] == [("A", 5), ("B", 2)]
        assert plan.leftover == 0.0
        assert plan.stages == [
            PlanStage.INIT,
            PlanStage.VALUATE,
            PlanStage.RANK,
            PlanStage.ALLOCATE_PASS1,
            PlanStage.DONE,
        ]

    def test_single_etf_with_holdings(self, planner: KnapsackPlanner) -> None:
        """Test the whole budget goes to the only ETF."""
        settings = Settings(60000, [EtfSetting("ID1", "", "", 0.5)])

        plan = planner.plan(settings, {"ID1": 20}, {"ID1": 500.0})

        assert [(i.etf_id, i.quantity) for i in plan.investments] == [("ID1", 120)]
        assert plan.leftover == 0.0

    def test_fractional_prices_never_exceed_budget(self, planner: KnapsackPlanner) -> None:
        """Test weights are rounded up so the cost stays within budget."""
        settings = Settings(10, [EtfSetting("A", "", "A", 1.0)])

        plan = planner.plan(settings, {}, {"A": 3.3})

        assert plan.investments[0].quantity == 2
        assert plan.total_cost <= 10

    def test_price_scale_improves_precision(self) -> None:
        """Test a finer price scale fits one more share."""
        planner = KnapsackPlanner({"price_scale": 10})
        settings = Settings(10, [EtfSetting("A", "", "A", 1.0)])

        plan = planner.plan(settings, {}, {"A": 3.3})

        assert plan.investments[0].quantity == 3
        assert plan.leftover == pytest.approx(0.1)

    def test_unavailable_price_excluded(self, planner: KnapsackPlanner) -> None:
        """Test an unpriced ETF is reported and not bought."""
        settings = Settings(
            1000,
            [EtfSetting("A", "", "A", 0.5), EtfSetting("B", "", "B", 0.5)],
        )

        plan = planner.plan(settings, {}, {"A": 100.0, "B": None})

        assert plan.excluded == ["B"]
        assert all(i.etf_id == "A" for i in plan.investments)
        assert plan.total_cost <= 1000
