"""Valuation stage: current market value and proportion per tracked ETF."""

import math
from typing import Mapping, Optional

from etfplan.portfolio.base import EtfValuation, Settings, ValuationResult
from etfplan.utils.logging import get_logger

logger = get_logger(__name__)


class ValuationEngine:
    """Combine settings, holdings and prices into current proportions.

    ETFs whose price is missing, non-finite or non-positive are flagged as
    priced unavailable and left out of the total value.

    Example:
        >>> engine = ValuationEngine()
        >>> result = engine.valuate(settings, {"A": 5}, {"A": 100.0, "B": None})
        >>> result.total_value
        500.0
        >>> result.excluded_ids
        ['B']
    """

    @staticmethod
    def is_valid_price(price: Optional[float]) -> bool:
        """Return True for finite prices strictly above zero."""
        if price is None:
            return False
        try:
            value = float(price)
        except (TypeError, ValueError):
            return False
        return math.isfinite(value) and value > 0

    def valuate(
        self,
        settings: Settings,
        holdings: Mapping[str, int],
        prices: Mapping[str, Optional[float]],
    ) -> ValuationResult:
        """Value every tracked ETF.

        Args:
            settings: Investor settings
            holdings: Shares held {etf_id: quantity}; missing means 0
            prices: Price snapshot {etf_id: price}

        Returns:
            ValuationResult in settings order
        """
        valuations = []
        for etf_setting in settings.etf_settings:
            quantity = int(holdings.get(etf_setting.id, 0))
            if quantity < 0:
                raise ValueError(
                    f"holding for {etf_setting.id} must be non-negative, got {quantity}"
                )

            raw_price = prices.get(etf_setting.id)
            if self.is_valid_price(raw_price):
                price = float(raw_price)
                current_value = quantity * price
            else:
                logger.warning("No usable price for %s (%r), excluding it", etf_setting.id, raw_price)
                price = None
                current_value = 0.0

            valuations.append(
                EtfValuation(
                    setting=etf_setting,
                    quantity=quantity,
                    price=price,
                    current_value=current_value,
                )
            )

        total_value = sum(v.current_value for v in valuations if v.price_available)

        for valuation in valuations:
            if valuation.price_available and total_value > 0:
                valuation.current_proportion = valuation.current_value / total_value

        logger.debug(
            "Valued %d ETFs, total value %.2f, %d unavailable",
            len(valuations),
            total_value,
            sum(1 for v in valuations if not v.price_available),
        )

        return ValuationResult(valuations=valuations, total_value=total_value)
