"""SQLite database management."""

import json
import sqlite3
import threading
from dataclasses import asdict
from datetime import date

from ..config import Config
from ..errors import ConcurrentUpdateError
from ..models import Address, Filer, LatestActivity, QuarterlyReport

SCHEMA_VERSION = 1

SCHEMA = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- One row per filer; the full report history is embedded as JSON
CREATE TABLE IF NOT EXISTS filers (
    cik TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    address TEXT,
    reports TEXT NOT NULL,
    last_reported_quarter TEXT,
    last_filing_date TEXT,
    current_holdings_count INTEGER,
    current_market_value INTEGER,
    last_updated TEXT,
    version INTEGER NOT NULL,
    created_at TEXT NOT NULL
);

-- Indexes for listing queries
CREATE INDEX IF NOT EXISTS idx_filers_name ON filers(name);
CREATE INDEX IF NOT EXISTS idx_filers_market_value ON filers(current_market_value);
CREATE INDEX IF NOT EXISTS idx_filers_last_quarter ON filers(last_reported_quarter);
"""


class Database:
    """SQLite database manager."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.db_path = config.db_path
        self._conn: sqlite3.Connection | None = None
        # one connection shared across threads; statements are serialised here
        self._lock = threading.RLock()

    def connect(self) -> None:
        """Open database connection and ensure schema exists."""
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._migrate()

    def _migrate(self) -> None:
        """Run schema migrations."""
        cursor = self._conn.cursor()

        # Check if schema_version table exists
        cursor.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        )
        if not cursor.fetchone():
            # Fresh database - create all tables
            cursor.executescript(SCHEMA)
            cursor.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            self._conn.commit()
            return

        cursor.execute("SELECT MAX(version) FROM schema_version")
        current_version = cursor.fetchone()[0] or 0

        if current_version < SCHEMA_VERSION:
            cursor.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
            self._conn.commit()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.connect()
        return self._conn

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "Database":
        self.connect()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # Row mapping

    @staticmethod
    def _row_to_filer(row: sqlite3.Row) -> Filer:
        activity = None
        if row["last_reported_quarter"]:
            activity = LatestActivity(
                last_reported_quarter=row["last_reported_quarter"],
                last_filing_date=(
                    date.fromisoformat(row["last_filing_date"]) if row["last_filing_date"] else None
                ),
                current_holdings_count=row["current_holdings_count"] or 0,
                current_market_value=row["current_market_value"] or 0,
                last_updated=row["last_updated"] or "",
            )
        return Filer(
            cik=row["cik"],
            name=row["name"],
            address=Address(**json.loads(row["address"])) if row["address"] else Address(),
            reports=[QuarterlyReport.from_dict(r) for r in json.loads(row["reports"])],
            latest_activity=activity,
            version=row["version"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _filer_params(filer: Filer) -> dict:
        activity = filer.latest_activity
        return {
            "cik": filer.cik,
            "name": filer.name,
            "address": json.dumps(asdict(filer.address)),
            "reports": json.dumps(filer.reports_to_json()),
            "last_reported_quarter": activity.last_reported_quarter if activity else None,
            "last_filing_date": (
                activity.last_filing_date.isoformat()
                if activity and activity.last_filing_date
                else None
            ),
            "current_holdings_count": activity.current_holdings_count if activity else None,
            "current_market_value": activity.current_market_value if activity else None,
            "last_updated": activity.last_updated if activity else None,
            "created_at": filer.created_at,
        }

    # Filer operations

    def get_filer(self, cik: str) -> Filer | None:
        """Get a filer, with its report history, by CIK."""
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM filers WHERE cik = ?", (cik,))
            row = cursor.fetchone()
        if not row:
            return None
        return self._row_to_filer(row)

    def get_all_filers(self) -> list[Filer]:
        """Get all filers."""
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM filers ORDER BY name")
            rows = cursor.fetchall()
        return [self._row_to_filer(row) for row in rows]

    def save_filer(self, filer: Filer) -> int:
        """
        Write a filer record in a single statement.

        A filer with version 0 is inserted; otherwise the row is updated only
        if its stored version still equals ``filer.version``.

        Returns:
            The new version number (also set on ``filer``)

        Raises:
            ConcurrentUpdateError: If the row was created or changed by another writer
        """
        params = self._filer_params(filer)
        params["expected_version"] = filer.version
        params["version"] = filer.version + 1

        with self._lock:
            cursor = self.conn.cursor()
            if filer.version == 0:
                try:
                    cursor.execute(
                        """
                        INSERT INTO filers (
                            cik, name, address, reports, last_reported_quarter,
                            last_filing_date, current_holdings_count, current_market_value,
                            last_updated, version, created_at
                        )
                        VALUES (
                            :cik, :name, :address, :reports, :last_reported_quarter,
                            :last_filing_date, :current_holdings_count, :current_market_value,
                            :last_updated, :version, :created_at
                        )
                        """,
                        params,
                    )
                except sqlite3.IntegrityError as e:
                    self.conn.rollback()
                    raise ConcurrentUpdateError(filer.cik, filer.version) from e
            else:
                cursor.execute(
                    """
                    UPDATE filers SET
                        name = :name,
                        address = :address,
                        reports = :reports,
                        last_reported_quarter = :last_reported_quarter,
                        last_filing_date = :last_filing_date,
                        current_holdings_count = :current_holdings_count,
                        current_market_value = :current_market_value,
                        last_updated = :last_updated,
                        version = :version
                    WHERE cik = :cik AND version = :expected_version
                    """,
                    params,
                )
                if cursor.rowcount == 0:
                    self.conn.rollback()
                    raise ConcurrentUpdateError(filer.cik, filer.version)
            self.conn.commit()

        filer.version = params["version"]
        return filer.version
