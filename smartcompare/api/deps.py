"""FastAPI dependencies."""

from typing import Optional

from smartcompare.history.store import PriceHistoryStore

_history_store: Optional[PriceHistoryStore] = None


def get_history_store() -> PriceHistoryStore:
    """Dependency for the process-wide price history store."""
    global _history_store
    if _history_store is None:
        _history_store = PriceHistoryStore()
    return _history_store


def close_history_store() -> None:
    global _history_store
    if _history_store is not None:
        _history_store.close()
        _history_store = None
