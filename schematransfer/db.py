import logging
import os
import sqlite3
import threading
import time
from contextlib import contextmanager

logger = logging.getLogger("SchemaTransfer")

from .config import load_config
from .constants import SCHEMA_VERSION
from .paths import get_db_path
from .schema import SCHEMA_SQL


class TransferConnection(sqlite3.Connection):
    """Connection carrying the deadline of the operation it serves."""

    deadline = None

    def time_left(self):
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def check_deadline(self):
        left = self.time_left()
        if left is not None and left <= 0:
            raise TimeoutError("transfer operation exceeded its timeout")


class SchemaStore:
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get(cls):
        with cls._lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def __init__(self):
        self.config = load_config()
        self.db_path = get_db_path()
        os.makedirs(os.path.dirname(self.db_path), exist_ok=True)
        self._init_db()

    def _connect(self):
        # Autocommit mode: transactions are opened explicitly by transaction().
        conn = sqlite3.connect(self.db_path, isolation_level=None, factory=TransferConnection)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute(f"PRAGMA busy_timeout = {int(self.config['busy_timeout_ms'])}")
        return conn

    def _init_db(self):
        conn = self._connect()
        try:
            conn.executescript(SCHEMA_SQL)
            conn.execute("BEGIN IMMEDIATE")
            self._migrate_db(conn)
            conn.execute(
                "INSERT OR REPLACE INTO meta(key,value) VALUES('schema_version', ?)",
                (SCHEMA_VERSION,),
            )
            conn.execute("COMMIT")
        finally:
            conn.close()

    def _migrate_db(self, conn):
        # Databases created before these columns existed.
        added = (
            ("open_form", "relation_index_open", "INTEGER NOT NULL DEFAULT 0"),
            ("open_form", "pop_up_type", "TEXT"),
            ("login_setting", "bool_as_icon", "INTEGER NOT NULL DEFAULT 1"),
            ("login_setting", "shadows_inputs", "INTEGER NOT NULL DEFAULT 1"),
        )
        for table, column, decl in added:
            cols = {row["name"] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}
            if column not in cols:
                logger.info("Adding column %s.%s", table, column)
                conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {decl}")

    def get_schema_version(self):
        conn = self._connect()
        try:
            row = conn.execute("SELECT value FROM meta WHERE key = 'schema_version'").fetchone()
            return row["value"] if row else ""
        finally:
            conn.close()

    @contextmanager
    def transaction(self, write=False, timeout=None):
        """Yield a connection inside one transaction; commit on success, roll back on any error.

        Write transactions start with BEGIN IMMEDIATE so the database write lock is
        held from the first existence check until commit. A timeout (seconds) interrupts
        running statements once exceeded and surfaces as TimeoutError.
        """
        conn = self._connect()
        if timeout is not None:
            conn.deadline = time.monotonic() + float(timeout)
            conn.set_progress_handler(lambda: 1 if conn.time_left() <= 0 else 0, 1000)
        try:
            try:
                conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
                yield conn
                conn.check_deadline()
                conn.execute("COMMIT")
            except BaseException as exc:
                conn.set_progress_handler(None, 0)
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                if isinstance(exc, sqlite3.OperationalError) and conn.time_left() is not None and conn.time_left() <= 0:
                    raise TimeoutError("transfer operation exceeded its timeout") from exc
                raise
        finally:
            conn.close()
