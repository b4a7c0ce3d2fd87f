# storage/manager.py
from __future__ import annotations
from typing import Any

from storage.sqlite_backend import SQLiteSnapshotStore


def get_storage(backend: str, **opts: Any) -> SQLiteSnapshotStore:
    """
    Factory for snapshot stores. Accepts flexible option names.
      - sqlite: db_path | sqlite_path | path
      - memory: throwaway in-process database
    """
    b = (backend or "").lower()
    if b == "sqlite":
        db_path = opts.get("db_path") or opts.get("sqlite_path") or opts.get("path") or "data/holder_stats.db"
        return SQLiteSnapshotStore(db_path)
    elif b == "memory":
        return SQLiteSnapshotStore(":memory:")
    else:
        raise ValueError(f"Unknown storage backend: {backend!r}")
