"""
Database connection and schema management
Wraps a single DuckDB connection behind a lock so scan evaluations can run as
one atomic unit.

Tables:
- restaurants / meal_times: restaurants and their meal windows
- guests: hotel guests, each linked to one restaurant
- cards: QR/RFID cards with validity and usage counters
- card_allowed_meals: optional per-card meal allow-list
- gates: physical gates; linked restaurants point at them via restaurants.gate_id
- scan_logs / access_logs: append-only audit trail of scans
- logs: system error log
"""

import duckdb
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional
from contextlib import contextmanager

from .exceptions import BaseApplicationError, ConcurrencyError, DatabaseError
from ..config.settings import settings

logger = logging.getLogger(__name__)

SCHEMA_SQL = r"""
CREATE TABLE IF NOT EXISTS restaurants (
  id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  name_ar TEXT,
  location TEXT,
  gate_id TEXT,  -- gate this restaurant is linked to
  is_active BOOLEAN DEFAULT TRUE,
  created_at TIMESTAMP DEFAULT now()
);

CREATE TABLE IF NOT EXISTS meal_times (
  id TEXT PRIMARY KEY,
  restaurant_id TEXT NOT NULL,
  name TEXT NOT NULL,
  name_ar TEXT,
  start_time TEXT NOT NULL,  -- HH:MM local wall clock
  end_time TEXT NOT NULL,
  is_active BOOLEAN DEFAULT TRUE,
  created_at TIMESTAMP DEFAULT now()
);

CREATE TABLE IF NOT EXISTS guests (
  id TEXT PRIMARY KEY,
  first_name TEXT NOT NULL,
  last_name TEXT NOT NULL,
  nationality TEXT,
  company TEXT,
  job_title TEXT,
  room_number TEXT,
  check_in_date TIMESTAMP,
  expired_date TIMESTAMP,  -- checkout
  restaurant_id TEXT,
  is_active BOOLEAN DEFAULT TRUE,
  created_at TIMESTAMP DEFAULT now()
);

CREATE TABLE IF NOT EXISTS cards (
  id TEXT PRIMARY KEY,
  guest_id TEXT NOT NULL,
  meal_time_id TEXT,  -- optional bound meal window
  card_type TEXT CHECK(card_type IN ('QR','RFID')) NOT NULL,
  card_number TEXT NOT NULL,
  card_data TEXT NOT NULL,  -- payload printed on the card
  valid_from TIMESTAMP NOT NULL,
  valid_to TIMESTAMP NOT NULL,
  is_active BOOLEAN DEFAULT TRUE,
  usage_count INTEGER DEFAULT 0,
  max_usage INTEGER,  -- NULL means unlimited
  created_at TIMESTAMP DEFAULT now()
);

CREATE TABLE IF NOT EXISTS card_allowed_meals (
  card_id TEXT NOT NULL,
  meal_time_id TEXT NOT NULL,
  PRIMARY KEY (card_id, meal_time_id)
);

CREATE TABLE IF NOT EXISTS gates (
  id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  name_ar TEXT,
  gate_type TEXT NOT NULL,  -- MAIN | RESTAURANT
  location TEXT,
  is_active BOOLEAN DEFAULT TRUE,
  created_at TIMESTAMP DEFAULT now()
);

CREATE TABLE IF NOT EXISTS scan_logs (
  id TEXT PRIMARY KEY,
  card_id TEXT,
  guest_id TEXT,
  station_id TEXT,
  scan_time TIMESTAMP NOT NULL,
  is_success BOOLEAN NOT NULL,
  error_code TEXT,
  error_message TEXT,
  matched_meal_time_id TEXT,
  processing_time_ms INTEGER
);

CREATE INDEX IF NOT EXISTS idx_scan_logs_card ON scan_logs(card_id);
CREATE INDEX IF NOT EXISTS idx_scan_logs_time ON scan_logs(scan_time);

CREATE TABLE IF NOT EXISTS access_logs (
  id TEXT PRIMARY KEY,
  gate_id TEXT NOT NULL,
  card_id TEXT,
  guest_id TEXT,
  scan_time TIMESTAMP NOT NULL,
  is_success BOOLEAN NOT NULL,
  access_type TEXT,
  error_code TEXT,
  error_message TEXT
);

CREATE INDEX IF NOT EXISTS idx_access_logs_gate ON access_logs(gate_id);

CREATE SEQUENCE IF NOT EXISTS logs_id_seq;
CREATE TABLE IF NOT EXISTS logs (
  log_id INTEGER DEFAULT nextval('logs_id_seq') PRIMARY KEY,
  action TEXT,
  detail_json JSON,
  created_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_logs_action ON logs(action);
"""


class DatabaseManager:
    """Database manager wrapping one DuckDB connection"""

    def __init__(self, db_path: Optional[str] = None):
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self._in_transaction = False
        self.db_path = db_path or self._get_db_path_from_settings()

    def _get_db_path_from_settings(self) -> str:
        """Resolve the database path from settings"""
        db_url = settings.database_url
        if db_url.startswith("duckdb://"):
            db_url = db_url.replace("duckdb://", "", 1)
        return db_url or ":memory:"

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """Lazily opened connection"""
        with self._lock:
            if self._connection is None:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                try:
                    self._connection = duckdb.connect(self.db_path)
                except duckdb.Error as e:
                    raise DatabaseError(f"Failed to open database: {e}")
                self._init_schema()
            return self._connection

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self.connection

    def _init_schema(self):
        """Create tables and indexes"""
        try:
            try:
                self._connection.execute("INSTALL json")
                self._connection.execute("LOAD json")
            except duckdb.Error:
                pass  # json is built in on recent DuckDB releases
            self._connection.execute(SCHEMA_SQL)
        except duckdb.Error as e:
            raise DatabaseError(f"Failed to initialize schema: {e}")

    def init_database(self):
        """Open the connection and make sure the schema exists"""
        with self._lock:
            self.connection
            logger.info("Database ready at %s", self.db_path)

    def close(self):
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        Transaction context manager

        Holds the manager lock for the whole block, so concurrent callers are
        serialized. Application errors raised inside the block roll back and
        propagate unchanged; driver errors are wrapped in DatabaseError (or
        ConcurrencyError for write conflicts).
        """
        with self._lock:
            conn = self.connection
            if self._in_transaction:
                raise DatabaseError("Nested transactions are not supported")
            conn.execute("BEGIN TRANSACTION")
            self._in_transaction = True
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception as e:
                try:
                    conn.execute("ROLLBACK")
                except duckdb.Error:
                    logger.warning("Rollback failed", exc_info=True)
                if isinstance(e, BaseApplicationError):
                    raise
                if "conflict" in str(e).lower():
                    raise ConcurrencyError("System busy, please retry") from e
                raise DatabaseError(f"Database operation failed: {e}") from e
            finally:
                self._in_transaction = False

    def execute_query(self, query: str, params: list = None) -> list:
        """Run a query and return all rows"""
        with self._lock:
            try:
                return self.connection.execute(query, params or []).fetchall()
            except duckdb.Error as e:
                raise DatabaseError(f"Query execution failed: {e}")

    def execute_one(self, query: str, params: list = None) -> Optional[tuple]:
        """Run a query and return one row"""
        with self._lock:
            try:
                return self.connection.execute(query, params or []).fetchone()
            except duckdb.Error as e:
                raise DatabaseError(f"Query execution failed: {e}")

    def fetch_dicts(self, query: str, params: list = None) -> List[Dict[str, Any]]:
        """Run a query and return rows as dicts keyed by column name"""
        with self._lock:
            try:
                cursor = self.connection.execute(query, params or [])
                columns = [col[0] for col in cursor.description]
                return [dict(zip(columns, row)) for row in cursor.fetchall()]
            except duckdb.Error as e:
                raise DatabaseError(f"Query execution failed: {e}")

    def fetch_dict(self, query: str, params: list = None) -> Optional[Dict[str, Any]]:
        rows = self.fetch_dicts(query, params)
        return rows[0] if rows else None


# Global database manager
db_manager = DatabaseManager()
