"""Settings persistence.

A SettingsStore durably holds the investor's target configuration and the
current holdings snapshot. ``save`` overwrites the whole settings object
(last writer wins) and reports a status code instead of raising.
"""

import copy
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Mapping

from etfplan.data.storage.database import DatabaseManager, EtfRow
from etfplan.portfolio.base import EtfSetting, Settings
from etfplan.utils.exceptions import StorageError
from etfplan.utils.logging import get_logger

logger = get_logger(__name__)

STATUS_OK = 0
STATUS_BUDGET_FAILED = -1
STATUS_CLEAR_FAILED = -2
STATUS_INSERT_FAILED = -3
STATUS_HOLDINGS_FAILED = -4


class SettingsStore(ABC):
    """Abstract key-value store for Settings and holdings."""

    @abstractmethod
    def load(self) -> Settings:
        """Return persisted settings, or Settings.default() if none."""
        pass

    @abstractmethod
    def save(self, settings: Settings) -> int:
        """Overwrite the persisted settings.

        Args:
            settings: Settings to persist; validated before anything is written

        Returns:
            0 on success, nonzero on persistence failure

        Raises:
            InvalidSettingsError: If settings violate their invariants
        """
        pass

    @abstractmethod
    def load_holdings(self) -> Dict[str, int]:
        """Return current shares held {etf_id: quantity}."""
        pass

    @abstractmethod
    def save_holdings(self, holdings: Mapping[str, int]) -> int:
        """Overwrite the holdings snapshot. Returns a status code like save."""
        pass

    def save_snapshot(self, settings: Settings, holdings: Mapping[str, int]) -> int:
        """Overwrite settings and holdings together.

        Holdings are written first, so a failure leaves the settings as they
        were. Stores that can write both atomically override this.
        """
        settings.validate()
        status = self.save_holdings(holdings)
        if status != STATUS_OK:
            return status
        return self.save(settings)


class InMemorySettingsStore(SettingsStore):
    """Process-local store, for tests and one-shot runs."""

    def __init__(self, settings: Settings | None = None, holdings: Mapping[str, int] | None = None):
        self._lock = threading.Lock()
        self._settings = copy.deepcopy(settings) if settings is not None else Settings.default()
        self._holdings = dict(holdings or {})

    def load(self) -> Settings:
        with self._lock:
            return copy.deepcopy(self._settings)

    def save(self, settings: Settings) -> int:
        settings.validate()
        with self._lock:
            self._settings = copy.deepcopy(settings)
        return STATUS_OK

    def load_holdings(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._holdings)

    def save_holdings(self, holdings: Mapping[str, int]) -> int:
        if any(q < 0 for q in holdings.values()):
            raise ValueError("holdings must be non-negative")
        with self._lock:
            self._holdings = {k: int(v) for k, v in holdings.items() if v > 0}
        return STATUS_OK

    def save_snapshot(self, settings: Settings, holdings: Mapping[str, int]) -> int:
        settings.validate()
        if any(q < 0 for q in holdings.values()):
            raise ValueError("holdings must be non-negative")
        with self._lock:
            self._settings = copy.deepcopy(settings)
            self._holdings = {k: int(v) for k, v in holdings.items() if v > 0}
        return STATUS_OK


class SqliteSettingsStore(SettingsStore):
    """Settings and holdings kept in a SQLite database.

    Example:
        >>> store = SqliteSettingsStore(DatabaseManager("data/etfplan.db"))
        >>> store.save(Settings(1000, [EtfSetting("IUSE.L", "IE00B3ZW0K18", "S&P 500", 1.0)]))
        0
        >>> store.load().budget
        1000
    """

    def __init__(self, db: DatabaseManager):
        self.db = db

    def load(self) -> Settings:
        budget = self.db.get_budget()
        etf_settings = [
            EtfSetting(
                id=row.id,
                isin=row.isin,
                name=row.name,
                ideal_proportion=row.proportion,
                cumulative=row.cumulative,
            )
            for row in self.db.get_all_etfs()
        ]
        return Settings(budget=budget if budget is not None else 0, etf_settings=etf_settings)

    def save(self, settings: Settings) -> int:
        settings.validate()
        rows = self._to_rows(settings)
        status = self.db.replace_settings(settings.budget, rows)
        if status == STATUS_OK:
            logger.info("Persisted settings: budget=%s etfs=%d", settings.budget, len(rows))
        return status

    def save_snapshot(self, settings: Settings, holdings: Mapping[str, int]) -> int:
        """Write settings and holdings in one transaction; nothing changes on failure."""
        settings.validate()
        if any(q < 0 for q in holdings.values()):
            raise ValueError("holdings must be non-negative")
        rows = self._to_rows(settings)
        status = self.db.replace_settings(settings.budget, rows, holdings=holdings)
        if status == STATUS_OK:
            logger.info(
                "Persisted settings and holdings: budget=%s etfs=%d holdings=%d",
                settings.budget, len(rows), len(holdings),
            )
        return status

    @staticmethod
    def _to_rows(settings: Settings) -> List[EtfRow]:
        return [
            EtfRow(
                id=s.id,
                isin=s.isin,
                name=s.name,
                proportion=s.ideal_proportion,
                cumulative=s.cumulative,
                position=position,
            )
            for position, s in enumerate(settings.etf_settings)
        ]

    def load_holdings(self) -> Dict[str, int]:
        return self.db.get_holdings()

    def save_holdings(self, holdings: Mapping[str, int]) -> int:
        if any(q < 0 for q in holdings.values()):
            raise ValueError("holdings must be non-negative")
        try:
            self.db.clear_holdings()
            for etf_id, quantity in holdings.items():
                self.db.set_holding(etf_id, int(quantity))
        except StorageError as e:
            logger.error("Failed to save holdings: %s", e)
            return STATUS_HOLDINGS_FAILED
        return STATUS_OK
