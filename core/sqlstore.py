"""
core/sqlstore.py
SqlStore — the dashd database as used by the admin commands.

Only the sqlite3 backend is supported. init() opens the database, bootstraps
the user and data_source tables and seeds the admin user on an empty
database. One store per invocation; nothing is pooled or shared.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator, Optional

from core.crypto import encode_password, random_string
from core.errors import StoreInitError

if TYPE_CHECKING:
    from core.bus import Bus
    from core.settings import Cfg

logger = logging.getLogger(__name__)

ADMIN_USER_ID = 1
SUPPORTED_TYPES = ("sqlite3",)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS user (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        login TEXT NOT NULL UNIQUE,
        email TEXT NOT NULL DEFAULT '',
        name TEXT NOT NULL DEFAULT '',
        password TEXT NOT NULL DEFAULT '',
        salt TEXT NOT NULL DEFAULT '',
        rands TEXT NOT NULL DEFAULT '',
        is_admin INTEGER NOT NULL DEFAULT 0,
        created REAL,
        updated REAL
    );

    CREATE TABLE IF NOT EXISTS data_source (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        type TEXT NOT NULL DEFAULT '',
        url TEXT NOT NULL DEFAULT '',
        password TEXT NOT NULL DEFAULT '',
        basic_auth_password TEXT NOT NULL DEFAULT '',
        secure_json_data TEXT NOT NULL DEFAULT '{}',
        created REAL,
        updated REAL
    );
"""


class SqlStore:
    """Per-invocation handle on the dashd database."""

    def __init__(self, cfg: Optional["Cfg"] = None, bus: Optional["Bus"] = None):
        self.cfg = cfg
        self.bus = bus
        self.conn: sqlite3.Connection | None = None
        self.db_path = ""

    def init(self):
        """Open and bootstrap the database. Raises StoreInitError."""
        if self.cfg is None:
            raise StoreInitError("sqlstore has no configuration")
        db_type = self.cfg.database.get("type", "sqlite3")
        if db_type not in SUPPORTED_TYPES:
            raise StoreInitError(f"unsupported database type: {db_type}")

        self.db_path = self.cfg.database.get("path", "")
        if not self.db_path:
            raise StoreInitError("database path is not configured")

        try:
            if self.db_path != ":memory:":
                os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
            self.conn = sqlite3.connect(self.db_path, isolation_level=None)
            self.conn.row_factory = sqlite3.Row
            self.conn.executescript(_SCHEMA)
            self._ensure_admin_user()
        except (OSError, sqlite3.Error) as e:
            raise StoreInitError(f"failed to initialize database {self.db_path}: {e}") from e

        logger.info("Connected to database: %s", self.db_path)
        if self.bus is not None:
            self.bus.publish("sqlstore.initialized", path=self.db_path)

    def close(self):
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """All statements inside commit together or not at all."""
        conn = self._require_conn()
        conn.execute("BEGIN")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    # ── Users ─────────────────────────────────────────────────────────────

    def get_user_by_id(self, user_id: int) -> dict | None:
        row = self._require_conn().execute(
            "SELECT * FROM user WHERE id = ?", (user_id,)).fetchone()
        return dict(row) if row else None

    def create_user(self, login: str, password: str, *, email: str = "",
                    is_admin: bool = False) -> int:
        salt = random_string(10)
        now = time.time()
        cur = self._require_conn().execute(
            "INSERT INTO user (login, email, name, password, salt, rands, is_admin, created, updated) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (login, email or login, login, encode_password(password, salt), salt,
             random_string(10), int(is_admin), now, now),
        )
        return cur.lastrowid

    def update_user_password(self, user_id: int, password_hash: str):
        cur = self._require_conn().execute(
            "UPDATE user SET password = ?, updated = ? WHERE id = ?",
            (password_hash, time.time(), user_id),
        )
        if cur.rowcount == 0:
            raise LookupError(f"user {user_id} not found")
        if self.bus is not None:
            self.bus.publish("user.password_changed", user_id=user_id)

    # ── Data sources ──────────────────────────────────────────────────────

    def add_data_source(self, name: str, ds_type: str = "", url: str = "", *,
                        password: str = "", basic_auth_password: str = "",
                        secure_json_data: dict | None = None) -> int:
        now = time.time()
        cur = self._require_conn().execute(
            "INSERT INTO data_source (name, type, url, password, basic_auth_password, "
            "secure_json_data, created, updated) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (name, ds_type, url, password, basic_auth_password,
             json.dumps(secure_json_data or {}), now, now),
        )
        return cur.lastrowid

    def get_data_source(self, ds_id: int) -> dict | None:
        row = self._require_conn().execute(
            "SELECT * FROM data_source WHERE id = ?", (ds_id,)).fetchone()
        if not row:
            return None
        ds = dict(row)
        ds["secure_json_data"] = json.loads(ds["secure_json_data"] or "{}")
        return ds

    def data_sources_with_plaintext_secrets(self) -> list[dict]:
        rows = self._require_conn().execute(
            "SELECT * FROM data_source WHERE password != '' OR basic_auth_password != '' "
            "ORDER BY id").fetchall()
        result = []
        for row in rows:
            ds = dict(row)
            ds["secure_json_data"] = json.loads(ds["secure_json_data"] or "{}")
            result.append(ds)
        return result

    def update_data_source_secrets(self, ds_id: int, secure_json_data: dict, *,
                                   clear_password: bool = False,
                                   clear_basic_auth_password: bool = False):
        sets = ["secure_json_data = ?", "updated = ?"]
        params: list = [json.dumps(secure_json_data), time.time()]
        if clear_password:
            sets.append("password = ''")
        if clear_basic_auth_password:
            sets.append("basic_auth_password = ''")
        params.append(ds_id)
        self._require_conn().execute(
            f"UPDATE data_source SET {', '.join(sets)} WHERE id = ?", params)

    # ── Internal ──────────────────────────────────────────────────────────

    def _require_conn(self) -> sqlite3.Connection:
        if self.conn is None:
            raise RuntimeError("sqlstore is not initialized")
        return self.conn

    def _ensure_admin_user(self):
        (count,) = self.conn.execute("SELECT COUNT(*) FROM user").fetchone()
        if count:
            return
        login = self.cfg.admin_user or "admin"
        self.create_user(login, self.cfg.admin_password or "admin",
                         email=f"{login}@localhost", is_admin=True)
        logger.info("Created default admin user: %s", login)
