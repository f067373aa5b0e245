"""
Relational store contract shared by the SQLite and Supabase adapters.
"""

from typing import Optional, Protocol, Sequence


class RelationalStore(Protocol):
    """
    Keyed upserts plus the two reads the sync layer needs.

    upsert() merges: columns present in ``record`` overwrite, columns
    absent from it keep their stored value. Upserting the same record twice
    leaves exactly one row.
    """

    async def upsert(self, table: str, record: dict, conflict_keys: Sequence[str]) -> None:
        ...

    async def count(self, table: str, filters: Optional[dict] = None) -> int:
        ...

    async def select_one(self, table: str, filters: dict) -> Optional[dict]:
        ...

    async def aclose(self) -> None:
        ...


def conflict_values(table: str, record: dict, conflict_keys: Sequence[str]) -> list:
    """
    Extract the natural-key values of a record.

    Raises:
        ValueError: If a conflict key is missing or None
    """
    if not conflict_keys:
        raise ValueError(f"No conflict keys given for {table}")
    missing = [key for key in conflict_keys if record.get(key) is None]
    if missing:
        raise ValueError(f"Record for {table} is missing conflict key(s): {', '.join(missing)}")
    return [record[key] for key in conflict_keys]
