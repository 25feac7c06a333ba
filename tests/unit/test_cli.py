"""Unit tests for the command line interface."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml
from click.testing import CliRunner

from etfplan.api.planner_api import PlannerAPI
from etfplan.cli import cli
from etfplan.data.providers.static_provider import StaticProvider
from etfplan.data.storage.settings_store import InMemorySettingsStore
from etfplan.portfolio.base import EtfInfo


@pytest.fixture
def runner() -> CliRunner:
    """Create click test runner."""
    return CliRunner()


@pytest.fixture
def api() -> PlannerAPI:
    """PlannerAPI with two known ETFs and an in-memory store."""
    provider = StaticProvider(
        prices={"AAA": 100.0, "BBB": 250.0},
        etfs=[EtfInfo("AAA", "Alpha ETF", "ISINAAA"), EtfInfo("BBB", "Beta ETF", "ISINBBB")],
    )
    return PlannerAPI(store=InMemorySettingsStore(), price_oracle=provider)


def invoke(runner: CliRunner, api: PlannerAPI, *args: str):
    return runner.invoke(cli, list(args), obj={"api": api})


class TestLookupCommands:
    """Test cases for search and price commands."""

    def test_search(self, runner: CliRunner, api: PlannerAPI) -> None:
        """Test ISIN search prints the ticker."""
        result = invoke(runner, api, "search", "ISINAAA")

        assert result.exit_code == 0
        assert "AAA" in result.output
        assert "Alpha ETF" in result.output

    def test_search_not_found(self, runner: CliRunner, api: PlannerAPI) -> None:
        """Test unknown ISIN prints an error and exits with 1."""
        result = invoke(runner, api, "search", "UNKNOWN")

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_price(self, runner: CliRunner, api: PlannerAPI) -> None:
        """Test prices are listed and failures marked."""
        result = invoke(runner, api, "price", "AAA", "ZZZ")

        assert result.exit_code == 0
        assert "100.00" in result.output
        assert "unavailable" in result.output


class TestSettingsCommands:
    """Test cases for settings commands."""

    def test_add_and_show(self, runner: CliRunner, api: PlannerAPI) -> None:
        """Test adding an ETF and showing settings."""
        assert invoke(runner, api, "settings", "add", "ISINAAA", "--proportion", "0.6").exit_code == 0
        assert invoke(runner, api, "settings", "budget", "1000").exit_code == 0

        result = invoke(runner, api, "settings", "show")

        assert result.exit_code == 0
        assert "Budget: 1000" in result.output
        assert "AAA" in result.output
        assert "60.0%" in result.output
        assert "Cash reserve: 40.0%" in result.output

    def test_proportion_and_remove(self, runner: CliRunner, api: PlannerAPI) -> None:
        """Test changing a proportion and removing an ETF."""
        invoke(runner, api, "settings", "add", "ISINAAA", "-p", "0.5")

        assert invoke(runner, api, "settings", "proportion", "AAA", "0.7").exit_code == 0
        assert api.get_settings().get("AAA").ideal_proportion == 0.7

        assert invoke(runner, api, "settings", "remove", "AAA").exit_code == 0
        assert api.get_settings().etf_settings == []

    def test_invalid_proportion(self, runner: CliRunner, api: PlannerAPI) -> None:
        """Test proportions above 1 are rejected."""
        result = invoke(runner, api, "settings", "add", "ISINAAA", "--proportion", "1.5")

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert api.get_settings().etf_settings == []

    def test_negative_budget(self, runner: CliRunner, api: PlannerAPI) -> None:
        """Test negative budget is rejected."""
        result = invoke(runner, api, "settings", "budget", "--", "-5")

        assert result.exit_code == 1
        assert api.get_settings().budget == 0


class TestHoldingsCommands:
    """Test cases for holdings commands."""

    def test_set_and_show(self, runner: CliRunner, api: PlannerAPI) -> None:
        """Test recording holdings and showing the valuation."""
        invoke(runner, api, "settings", "add", "ISINAAA", "-p", "0.5")
        invoke(runner, api, "settings", "add", "ISINBBB", "-p", "0.5")

        assert invoke(runner, api, "holdings", "set", "AAA", "5").exit_code == 0
        result = invoke(runner, api, "holdings", "show")

        assert result.exit_code == 0
        assert api.get_holdings() == {"AAA": 5}
        assert "500.00" in result.output
        assert "100.0%" in result.output

    def test_negative_quantity_rejected(self, runner: CliRunner, api: PlannerAPI) -> None:
        """Test click rejects negative quantities."""
        result = invoke(runner, api, "holdings", "set", "AAA", "--", "-1")

        assert result.exit_code == 2
        assert api.get_holdings() == {}


class TestSuggestCommand:
    """Test cases for the suggest command."""

    @pytest.fixture
    def configured_api(self, api: PlannerAPI) -> PlannerAPI:
        """Two ETFs at 50% with budget 1000."""
        api.add_etf("ISINAAA", 0.5)
        api.add_etf("ISINBBB", 0.5)
        api.set_budget(1000)
        return api

    def test_suggest(self, runner: CliRunner, configured_api: PlannerAPI) -> None:
        """Test suggested investments are printed."""
        result = invoke(runner, configured_api, "suggest")

        assert result.exit_code == 0
        assert "Suggested Investments" in result.output
        assert "Leftover: 0.00" in result.output
        assert configured_api.get_holdings() == {}

    def test_suggest_record(self, runner: CliRunner, configured_api: PlannerAPI) -> None:
        """Test --record books the suggestion."""
        result = invoke(runner, configured_api, "suggest", "--record")

        assert result.exit_code == 0
        assert configured_api.get_holdings() == {"AAA": 5, "BBB": 2}
        assert configured_api.get_settings().get("BBB").cumulative == 500

    def test_suggest_nothing_to_buy(self, runner: CliRunner, api: PlannerAPI) -> None:
        """Test empty settings print a notice."""
        result = invoke(runner, api, "suggest")

        assert result.exit_code == 0
        assert "Nothing to buy" in result.output


class TestCliConfiguration:
    """Test cases for building the API from configuration."""

    def test_config_file_and_db(
        self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test the group builds a SQLite-backed API from a config file."""
        monkeypatch.setattr("etfplan.cli.setup_logging", MagicMock())
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            yaml.dump({"prices": {"provider": "static", "static": {"AAA": 10.0}}})
        )
        db_path = tmp_path / "cli.db"

        result = runner.invoke(
            cli,
            ["--config", str(config_file), "--db", str(db_path), "settings", "budget", "300"],
        )

        assert result.exit_code == 0
        assert db_path.exists()

        result = runner.invoke(
            cli, ["--config", str(config_file), "--db", str(db_path), "settings", "show"]
        )
        assert "Budget: 300" in result.output
