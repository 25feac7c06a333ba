"""SQLite database manager implementation.

This module provides the DatabaseManager class for handling all interactions
with the SQLite database, including connection management, table creation,
and persistence of ETF settings, the budget and holdings.
"""

import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from etfplan.utils.exceptions import StorageError
from etfplan.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class EtfRow:
    """One row of the etf table."""

    id: str
    isin: str
    name: str
    proportion: float
    cumulative: int
    position: int = 0


class DatabaseManager:
    """Manages SQLite database interactions.

    Attributes:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str):
        """Initialize database manager.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self.create_tables()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a thread-local database connection."""
        if not hasattr(self._local, "connection"):
            self._local.connection = sqlite3.connect(self.db_path)
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    def create_tables(self) -> None:
        """Create necessary database tables if they don't exist."""
        schema_path = Path(__file__).parent / "schema.sql"
        try:
            with open(schema_path, "r") as f:
                schema = f.read()

            conn = self._get_connection()
            conn.executescript(schema)
            conn.commit()
            logger.info(f"Database initialized at {self.db_path}")
        except Exception as e:
            logger.error(f"Failed to create tables: {e}")
            raise StorageError(f"Database initialization failed: {e}") from e

    def _execute(self, query: str, params=(), what: str = "query") -> None:
        conn = self._get_connection()
        try:
            with conn:
                conn.execute(query, params)
        except sqlite3.Error as e:
            logger.error(f"Failed to {what}: {e}")
            raise StorageError(f"Failed to {what}: {e}") from e

    def _fetch(self, query: str, params=(), what: str = "query") -> List[sqlite3.Row]:
        conn = self._get_connection()
        try:
            return conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Failed to {what}: {e}")
            raise StorageError(f"Failed to {what}: {e}") from e

    def add_etf(self, etf: EtfRow) -> None:
        """Insert or replace an ETF row."""
        self._execute(
            """
            INSERT OR REPLACE INTO etf (id, isin, name, proportion, cumulative, position)
            VALUES (:id, :isin, :name, :proportion, :cumulative, :position)
            """,
            {
                "id": etf.id,
                "isin": etf.isin,
                "name": etf.name,
                "proportion": etf.proportion,
                "cumulative": etf.cumulative,
                "position": etf.position,
            },
            what=f"add etf {etf.id}",
        )

    def remove_etf(self, etf_id: str) -> None:
        self._execute("DELETE FROM etf WHERE id = ?", (etf_id,), what=f"remove etf {etf_id}")

    def get_all_etfs(self) -> List[EtfRow]:
        """Return all ETF rows in display order."""
        rows = self._fetch(
            "SELECT id, isin, name, proportion, cumulative, position FROM etf "
            "ORDER BY position ASC, id ASC",
            what="load etfs",
        )
        return [self._to_etf_row(row) for row in rows]

    def get_etf(self, etf_id: str) -> Optional[EtfRow]:
        rows = self._fetch(
            "SELECT id, isin, name, proportion, cumulative, position FROM etf WHERE id = ?",
            (etf_id,),
            what=f"load etf {etf_id}",
        )
        return self._to_etf_row(rows[0]) if rows else None

    def update_proportion(self, etf_id: str, proportion: float) -> None:
        self._execute(
            "UPDATE etf SET proportion = ? WHERE id = ?",
            (proportion, etf_id),
            what=f"update proportion of {etf_id}",
        )

    def update_cumulative(self, etf_id: str, amount: int) -> None:
        self._execute(
            "UPDATE etf SET cumulative = ? WHERE id = ?",
            (amount, etf_id),
            what=f"update cumulative of {etf_id}",
        )

    def set_budget(self, budget: int) -> None:
        self._execute(
            "INSERT OR REPLACE INTO budget (id, budget) VALUES (0, ?)",
            (budget,),
            what="set budget",
        )

    def get_budget(self) -> Optional[int]:
        rows = self._fetch("SELECT budget FROM budget WHERE id = 0", what="load budget")
        return int(rows[0]["budget"]) if rows else None

    def get_holdings(self) -> Dict[str, int]:
        rows = self._fetch("SELECT etf_id, quantity FROM holding", what="load holdings")
        return {row["etf_id"]: int(row["quantity"]) for row in rows}

    def set_holding(self, etf_id: str, quantity: int) -> None:
        """Record the shares held for an ETF; zero removes the row."""
        if quantity == 0:
            self._execute(
                "DELETE FROM holding WHERE etf_id = ?", (etf_id,), what=f"clear holding {etf_id}"
            )
            return
        self._execute(
            "INSERT OR REPLACE INTO holding (etf_id, quantity) VALUES (?, ?)",
            (etf_id, quantity),
            what=f"set holding {etf_id}",
        )

    def clear_holdings(self) -> None:
        self._execute("DELETE FROM holding", what="clear holdings")

    def replace_settings(
        self,
        budget: int,
        etfs: List[EtfRow],
        holdings: Optional[Mapping[str, int]] = None,
    ) -> int:
        """Overwrite the budget and every ETF row in a single transaction.

        Args:
            budget: New budget
            etfs: ETF rows replacing the current ones
            holdings: If given, replaces the holdings in the same transaction

        Returns:
            0 on success, -1 if the budget write failed, -2 if clearing the
            previous ETFs failed, -3 if inserting an ETF failed, -4 if
            replacing the holdings failed. Nothing is written unless every
            step succeeds.
        """
        conn = self._get_connection()
        step = -1
        try:
            with conn:
                conn.execute("INSERT OR REPLACE INTO budget (id, budget) VALUES (0, ?)", (budget,))
                step = -2
                conn.execute("DELETE FROM etf")
                step = -3
                conn.executemany(
                    """
                    INSERT INTO etf (id, isin, name, proportion, cumulative, position)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [(e.id, e.isin, e.name, e.proportion, e.cumulative, e.position) for e in etfs],
                )
                if holdings is not None:
                    step = -4
                    conn.execute("DELETE FROM holding")
                    conn.executemany(
                        "INSERT INTO holding (etf_id, quantity) VALUES (?, ?)",
                        [(etf_id, int(q)) for etf_id, q in holdings.items() if q != 0],
                    )
        except sqlite3.Error as e:
            logger.error(f"Failed to replace settings (status {step}): {e}")
            return step
        return 0

    @staticmethod
    def _to_etf_row(row: sqlite3.Row) -> EtfRow:
        return EtfRow(
            id=row["id"],
            isin=row["isin"],
            name=row["name"],
            proportion=float(row["proportion"]),
            cumulative=int(row["cumulative"]),
            position=int(row["position"]),
        )

    def close(self):
        """Close the thread-local connection."""
        if hasattr(self._local, "connection"):
            self._local.connection.close()
            del self._local.connection
