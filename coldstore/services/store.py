"""Thin wrapper over the Supabase table API.

All reads and writes go through :class:`SupabaseStore` so that failures
surface as :class:`~coldstore.exceptions.StoreError` regardless of whether
PostgREST rejected the query or the network call itself failed.
"""

import logging
from typing import Any, Dict, List, Sequence, Union

import httpx
from postgrest.exceptions import APIError
from supabase import SupabaseException

from coldstore.exceptions import StoreError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

_STORE_ERRORS = (APIError, SupabaseException, httpx.HTTPError)


class SupabaseStore:
    """Select/insert/update/delete against named tables."""

    def __init__(self, client):
        self.client = client

    def fetch_all(self, table: str) -> List[Row]:
        try:
            resp = self.client.table(table).select("*").execute()
        except _STORE_ERRORS as exc:
            logger.exception("Failed to fetch %s", table)
            raise StoreError(f"Failed to load {table}: {exc}") from exc
        return list(resp.data or [])

    def insert(self, table: str, rows: Union[Row, Sequence[Row]]) -> List[Row]:
        payload = [rows] if isinstance(rows, dict) else list(rows)
        if not payload:
            return []
        try:
            resp = self.client.table(table).insert(payload).execute()
        except _STORE_ERRORS as exc:
            logger.exception("Failed to insert %d row(s) into %s", len(payload), table)
            raise StoreError(f"Failed to save to {table}: {exc}") from exc
        logger.debug("Inserted %d row(s) into %s", len(payload), table)
        return list(resp.data or [])

    def update(self, table: str, values: Row, key: str, value: Any) -> List[Row]:
        try:
            resp = self.client.table(table).update(values).eq(key, value).execute()
        except _STORE_ERRORS as exc:
            logger.exception("Failed to update %s %s=%s", table, key, value)
            raise StoreError(f"Failed to update {table}: {exc}") from exc
        return list(resp.data or [])

    def delete(self, table: str, key: str, value: Any) -> List[Row]:
        try:
            resp = self.client.table(table).delete().eq(key, value).execute()
        except _STORE_ERRORS as exc:
            logger.exception("Failed to delete from %s %s=%s", table, key, value)
            raise StoreError(f"Failed to delete from {table}: {exc}") from exc
        return list(resp.data or [])
