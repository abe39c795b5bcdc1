"""Store selection from configuration."""

from copilot.config import Config
from copilot.store.base import InMemoryStore, KeyValueStore
from copilot.store.sqlite_store import SqliteStore


def build_store(config: Config) -> KeyValueStore:
    if config.store_backend == "sqlite":
        return SqliteStore(config.store_db_path)
    return InMemoryStore()
