"""User-facing API for ETF planning."""

from etfplan.api.planner_api import PlannerAPI, build_planner, build_provider

__all__ = [
    "PlannerAPI",
    "build_planner",
    "build_provider",
]
