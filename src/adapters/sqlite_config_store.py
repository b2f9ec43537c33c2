"""SQLite config store adapter.

Implements the core ConfigStorePort using a simple SQLite database with one
JSON document per tenant.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from adapters.config_codec import config_from_dict, config_to_dict
from core.errors import ConfigLoadFailure, ConfigPersistFailure
from core.models import TenantWatchConfig


class SQLiteConfigStore:
    """Thin SQLite wrapper that satisfies the ConfigStorePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - tenant_configs: the watch config and message records per tenant
        """

        with self._connect() as conn:
            # Fields:
            # - tenant_id: guild snowflake (PRIMARY KEY)
            # - payload: JSON document (see adapters.config_codec)
            # - updated_at: timestamp of the last write, for debugging
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tenant_configs (
                    tenant_id TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
                """
            )

    def get(self, tenant_id: str) -> Optional[TenantWatchConfig]:
        """Return the stored config for a tenant, or None if never written."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload FROM tenant_configs WHERE tenant_id = ?",
                (tenant_id,),
            ).fetchone()
        if row is None:
            return None
        try:
            raw = json.loads(row["payload"])
        except json.JSONDecodeError as exc:
            raise ConfigLoadFailure(f"Config for tenant {tenant_id} is not valid JSON") from exc
        return config_from_dict(raw)

    def set(self, tenant_id: str, config: TenantWatchConfig) -> None:
        """Upsert the config for a tenant."""

        payload = json.dumps(config_to_dict(config), ensure_ascii=False, sort_keys=True)
        now = datetime.now(timezone.utc)
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO tenant_configs (tenant_id, payload, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(tenant_id) DO UPDATE SET
                        payload = excluded.payload,
                        updated_at = excluded.updated_at
                    """,
                    (tenant_id, payload, now.isoformat()),
                )
        except sqlite3.Error as exc:
            raise ConfigPersistFailure(f"Could not write config for tenant {tenant_id}") from exc

    def list_tenants(self) -> set[str]:
        """Return all tenant ids that have a stored config."""

        with self._connect() as conn:
            rows = conn.execute("SELECT tenant_id FROM tenant_configs").fetchall()
        return {row["tenant_id"] for row in rows}
