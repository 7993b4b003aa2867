# src/met24_router/core/store.py

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

from met24_router.core.errors import ConfigUnavailable
from met24_router.models import OptimizationConfig, OptimizationLevel

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS optimization_config (
    owner_id TEXT PRIMARY KEY,
    optimization_level TEXT NOT NULL,
    fallback_to_local INTEGER NOT NULL,
    last_updated TEXT
);
"""

_FIELDS = ("optimization_level", "fallback_to_local")


class ConfigStore:
    """
    SQLite-backed persistence for the user's OptimizationConfig.

    - get_config()
    - set_optimization_level(level) / set_fallback_to_local(flag)
    - update_config(**changes)
    - reset()

    One row per owner. Every write stamps last_updated. If the database cannot
    be opened or written, the store keeps serving from memory and logs a
    warning, so routing never stalls on persistence.
    """

    def __init__(self, db_path: Union[str, Path, None] = None, owner_id: str = "default") -> None:
        self.db_path = str(db_path) if db_path else ":memory:"
        self.owner_id = owner_id
        self._cached = OptimizationConfig()
        # ":memory:" databases vanish with their connection, keep one open and
        # let FastAPI worker threads share it
        self._shared: Optional[sqlite3.Connection] = None
        if self.db_path == ":memory:":
            self._shared = sqlite3.connect(self.db_path, check_same_thread=False)
        try:
            self._ensure_schema()
            self._cached = self._load()
        except ConfigUnavailable as ex:
            logger.warning("Config store unavailable, using defaults in memory: %s", ex)

    # --- Connection -----------------------------------------------------

    def _conn(self) -> sqlite3.Connection:
        if self._shared is not None:
            return self._shared
        return sqlite3.connect(self.db_path)

    def _release(self, conn: sqlite3.Connection) -> None:
        if conn is not self._shared:
            conn.close()

    def _ensure_schema(self) -> None:
        try:
            conn = self._conn()
            try:
                conn.executescript(SCHEMA_SQL)
                conn.commit()
            finally:
                self._release(conn)
        except sqlite3.Error as ex:
            raise ConfigUnavailable(f"cannot initialise {self.db_path}: {ex}") from ex

    def _load(self) -> OptimizationConfig:
        try:
            conn = self._conn()
            try:
                row = conn.execute(
                    """
                    SELECT optimization_level, fallback_to_local, last_updated
                    FROM optimization_config
                    WHERE owner_id = ?
                    """,
                    (self.owner_id,),
                ).fetchone()
            finally:
                self._release(conn)
        except sqlite3.Error as ex:
            raise ConfigUnavailable(f"cannot read {self.db_path}: {ex}") from ex

        if row is None:
            return OptimizationConfig()

        level, fallback, updated = row
        try:
            return OptimizationConfig(
                optimization_level=OptimizationLevel(level),
                fallback_to_local=bool(fallback),
                last_updated=datetime.fromisoformat(updated) if updated else None,
            )
        except ValueError:
            logger.warning("Ignoring unreadable config row for owner %s: %r", self.owner_id, row)
            return OptimizationConfig()

    def _save(self, config: OptimizationConfig) -> None:
        try:
            conn = self._conn()
            try:
                conn.execute(
                    """
                    INSERT INTO optimization_config
                        (owner_id, optimization_level, fallback_to_local, last_updated)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(owner_id) DO UPDATE SET
                        optimization_level = excluded.optimization_level,
                        fallback_to_local = excluded.fallback_to_local,
                        last_updated = excluded.last_updated
                    """,
                    (
                        self.owner_id,
                        config.optimization_level.value,
                        int(config.fallback_to_local),
                        config.last_updated.isoformat() if config.last_updated else None,
                    ),
                )
                conn.commit()
            finally:
                self._release(conn)
        except sqlite3.Error as ex:
            raise ConfigUnavailable(f"cannot write {self.db_path}: {ex}") from ex

    # --- Public API ---------------------------------------------------------

    def get_config(self) -> OptimizationConfig:
        try:
            self._cached = self._load()
        except ConfigUnavailable as ex:
            logger.warning("Serving cached optimization config: %s", ex)
        return self._cached.model_copy()

    def update_config(self, **changes: Any) -> OptimizationConfig:
        """
        Apply a partial update. Unknown fields raise ValueError, values are
        validated by OptimizationConfig.
        """
        unknown = set(changes) - set(_FIELDS)
        if unknown:
            raise ValueError(f"unknown config field(s): {sorted(unknown)}")

        merged = self.get_config().model_dump()
        merged.update({k: v for k, v in changes.items() if v is not None})
        merged["last_updated"] = datetime.now(timezone.utc)
        config = OptimizationConfig.model_validate(merged)

        self._cached = config
        try:
            self._save(config)
        except ConfigUnavailable as ex:
            logger.warning("Optimization config kept in memory only: %s", ex)
        logger.info(
            "Optimization config: level=%s fallback_to_local=%s",
            config.optimization_level.value,
            config.fallback_to_local,
        )
        return config.model_copy()

    def set_optimization_level(self, level: Union[OptimizationLevel, str]) -> OptimizationConfig:
        return self.update_config(optimization_level=OptimizationLevel(level))

    def set_fallback_to_local(self, enabled: bool) -> OptimizationConfig:
        return self.update_config(fallback_to_local=bool(enabled))

    def reset(self) -> OptimizationConfig:
        """Back to balanced + local fallback."""
        defaults = OptimizationConfig()
        return self.update_config(
            optimization_level=defaults.optimization_level,
            fallback_to_local=defaults.fallback_to_local,
        )

    def close(self) -> None:
        if self._shared is not None:
            self._shared.close()
            self._shared = None
