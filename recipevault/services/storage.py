"""
Legacy local storage.
Key-value slots backed by SQLite (default), Redis (when REDIS_URL is set),
or memory (tests). LegacyRecipeStore layers the pre-account recipe list and
the migration bookkeeping keys on top of any of them.
"""

import json
import logging
import sqlite3
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from recipevault.core.abstractions import KeyValueStore
from recipevault.models import LegacyRecipe

logger = logging.getLogger(__name__)

RECIPES_KEY = "flavourvault_recipes"
MIGRATION_KEY = "flavourvault_migration_completed"
MIGRATION_ATTEMPTS_KEY = "flavourvault_migration_attempts"


def _init_schema(conn: sqlite3.Connection) -> None:
    """Create key-value table if not exists."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS kv_store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
    """)
    conn.commit()


class SqliteKeyValueStore:
    """Single-file SQLite table of string slots."""

    def __init__(self, db_path: Optional[str] = None) -> None:
        self._db_path = db_path or ":memory:"
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        _init_schema(self._conn)

    def get(self, key: str) -> Optional[str]:
        cur = self._conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
        row = cur.fetchone()
        return None if row is None else row[0]

    def set(self, key: str, value: str) -> None:
        self._conn.execute(
            "INSERT INTO kv_store (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )
        self._conn.commit()

    def remove(self, key: str) -> None:
        self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()


class RedisKeyValueStore:
    """String slots in Redis."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def get(self, key: str) -> Optional[str]:
        return self._client.get(key)

    def set(self, key: str, value: str) -> None:
        self._client.set(key, value)

    def remove(self, key: str) -> None:
        self._client.delete(key)


class InMemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


def _get_redis_client(url: str):  # type: ignore
    """Create Redis client from url, or None if not configured or unreachable."""
    if not url or url.lower() in ("", "false", "none", "0"):
        return None
    try:
        import redis

        client = redis.from_url(url, decode_responses=True)
        client.ping()
        return client
    except Exception as e:
        logger.warning("Redis unavailable, falling back to SQLite: %s", e)
        return None


def create_key_value_store(redis_url: str = "", db_path: Optional[str] = None) -> KeyValueStore:
    """Pick Redis when reachable, SQLite otherwise."""
    client = _get_redis_client(redis_url)
    if client is not None:
        return RedisKeyValueStore(client)
    return SqliteKeyValueStore(db_path)


class LegacyRecipeStore:
    """Pre-account recipe list plus the migration flag and attempt counter."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def load_raw(self) -> List[Any]:
        """
        Raw records as stored. A missing or unparseable payload reads as empty
        so a corrupt slot never blocks the app.
        """
        data = self._store.get(RECIPES_KEY)
        if not data:
            return []
        try:
            records = json.loads(data)
        except json.JSONDecodeError as e:
            logger.warning("Legacy recipes are not valid JSON, ignoring: %s", e)
            return []
        if not isinstance(records, list):
            logger.warning("Legacy recipes payload is not a list, ignoring")
            return []
        return records

    def load_recipes(self) -> List[LegacyRecipe]:
        """Parsed records; malformed entries are skipped with a warning."""
        recipes: List[LegacyRecipe] = []
        for record in self.load_raw():
            try:
                recipes.append(LegacyRecipe.model_validate(record))
            except ValidationError as e:
                logger.warning("Skipping malformed legacy recipe: %s", e)
        return recipes

    def save_recipes(self, recipes: List[LegacyRecipe]) -> None:
        payload = [r.model_dump(mode="json", by_alias=True) for r in recipes]
        self._store.set(RECIPES_KEY, json.dumps(payload))

    def clear_recipes(self) -> None:
        self._store.remove(RECIPES_KEY)

    def is_migration_completed(self) -> bool:
        return self._store.get(MIGRATION_KEY) == "true"

    def mark_migration_completed(self) -> None:
        self._store.set(MIGRATION_KEY, "true")
        self._store.remove(MIGRATION_ATTEMPTS_KEY)

    def reset_migration(self) -> None:
        self._store.remove(MIGRATION_KEY)
        self._store.remove(MIGRATION_ATTEMPTS_KEY)

    def failed_attempts(self) -> int:
        raw = self._store.get(MIGRATION_ATTEMPTS_KEY)
        try:
            return int(raw) if raw else 0
        except ValueError:
            return 0

    def record_failed_attempt(self) -> int:
        attempts = self.failed_attempts() + 1
        self._store.set(MIGRATION_ATTEMPTS_KEY, str(attempts))
        return attempts
