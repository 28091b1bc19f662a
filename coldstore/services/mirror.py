"""Local mirror of the Supabase tables.

The mirror is a single reducer over row changes. Writes made by this process
are applied immediately through :meth:`StoreMirror.apply_local`; change
notifications pushed by the realtime channel are queued with
:meth:`StoreMirror.enqueue` (from any thread) and applied in delivery order by
:meth:`StoreMirror.drain`.

Applying a change is idempotent: an insert of a key that is already present
replaces the row, a delete of an absent key does nothing. In addition every
local change leaves a fingerprint behind while a realtime listener is
attached, and the matching echo from the channel is consumed without being
re-applied. This keeps a late echo of an older local update from overwriting a
newer one. Fingerprints expire after ``ECHO_TTL_SECONDS`` and at most
``MAX_PENDING_ECHOES`` are kept, so echoes that never arrive do not pile up.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional, Tuple

from coldstore.core.constants import (
    EVENT_DELETE,
    EVENT_INSERT,
    EVENT_UPDATE,
    TABLE_ITEM_CODES,
    TABLE_KEYS,
    TABLE_PENDING,
    TABLE_STOCK,
    TABLE_TRANSACTIONS,
    TABLE_USERS,
)
from coldstore.models import PendingRequest, StockItem, Transaction, User
from coldstore.services.seed_data import seed_if_empty

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

ECHO_TTL_SECONDS = 120.0
MAX_PENDING_ECHOES = 1000


@dataclass(frozen=True)
class ChangeEvent:
    """One row-level change: ``{eventType, new, old}`` for a table."""

    table: str
    event_type: str
    new: Optional[Row] = None
    old: Optional[Row] = None

    @property
    def key(self) -> Any:
        key_col = TABLE_KEYS[self.table]
        for row in (self.new, self.old):
            if row and row.get(key_col) is not None:
                return row[key_col]
        return None

    @classmethod
    def insert(cls, table: str, row: Row) -> "ChangeEvent":
        return cls(table, EVENT_INSERT, new=dict(row))

    @classmethod
    def update(cls, table: str, row: Row) -> "ChangeEvent":
        return cls(table, EVENT_UPDATE, new=dict(row))

    @classmethod
    def delete(cls, table: str, key: Any) -> "ChangeEvent":
        return cls(table, EVENT_DELETE, old={TABLE_KEYS[table]: key})


def _canonical(value: Any) -> Any:
    if isinstance(value, bool) or value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, dict):
        return {k: _canonical(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return str(value)


def fingerprint(event: ChangeEvent) -> str:
    body = None if event.event_type == EVENT_DELETE else _canonical(event.new)
    return json.dumps(
        [event.table, event.event_type, str(event.key), body], sort_keys=True
    )


class StoreMirror:
    """In-memory copy of every table, keyed by each table's row key."""

    def __init__(self, track_echoes: bool = False) -> None:
        self._rows: Dict[str, Dict[Any, Row]] = {t: {} for t in TABLE_KEYS}
        self._inbox: Deque[ChangeEvent] = deque()
        self._inbox_lock = threading.Lock()
        self._lock = threading.RLock()
        self._local_changes: Deque[Tuple[float, str]] = deque(maxlen=MAX_PENDING_ECHOES)
        self.track_echoes = track_echoes
        self.loaded = False

    # ── loading ───────────────────────────────────────────
    def load(self, store) -> None:
        """Replace all state with a full fetch from ``store``.

        Empty ``item_codes`` and ``users`` tables are seeded with defaults.
        Pending inbox events are discarded since the fetch supersedes them.
        """
        fetched: Dict[str, List[Row]] = {}
        for table in (TABLE_STOCK, TABLE_TRANSACTIONS, TABLE_PENDING):
            fetched[table] = store.fetch_all(table)
        for table in (TABLE_ITEM_CODES, TABLE_USERS):
            fetched[table] = seed_if_empty(store, table, store.fetch_all(table))

        with self._lock:
            for table, rows in fetched.items():
                key_col = TABLE_KEYS[table]
                self._rows[table] = {r[key_col]: dict(r) for r in rows if key_col in r}
            self._local_changes.clear()
            self.loaded = True
        with self._inbox_lock:
            self._inbox.clear()
        logger.info(
            "Loaded %d lot(s), %d transaction(s), %d pending request(s)",
            len(fetched[TABLE_STOCK]),
            len(fetched[TABLE_TRANSACTIONS]),
            len(fetched[TABLE_PENDING]),
        )

    # ── change application ────────────────────────────────
    def enqueue(self, event: ChangeEvent) -> None:
        """Queue a remote change; safe to call from the realtime thread."""
        with self._inbox_lock:
            self._inbox.append(event)

    def drain(self) -> int:
        """Apply queued remote changes in order; return how many changed state."""
        with self._inbox_lock:
            events = list(self._inbox)
            self._inbox.clear()
        return sum(1 for event in events if self.apply_remote(event))

    def apply_local(self, event: ChangeEvent) -> bool:
        with self._lock:
            if self.track_echoes:
                self._expire_echoes()
                self._local_changes.append((time.time(), fingerprint(event)))
            return self._apply(event)

    def apply_remote(self, event: ChangeEvent) -> bool:
        with self._lock:
            self._expire_echoes()
            fp = fingerprint(event)
            for entry in self._local_changes:
                if entry[1] == fp:
                    self._local_changes.remove(entry)
                    logger.debug("Skipping echo of local change on %s", event.table)
                    return False
            return self._apply(event)

    def _expire_echoes(self) -> None:
        cutoff = time.time() - ECHO_TTL_SECONDS
        while self._local_changes and self._local_changes[0][0] < cutoff:
            self._local_changes.popleft()

    def _apply(self, event: ChangeEvent) -> bool:
        if event.table not in self._rows:
            logger.warning("Ignoring change for unknown table %s", event.table)
            return False
        rows = self._rows[event.table]
        key = event.key
        if key is None:
            logger.warning("Ignoring %s on %s without a key", event.event_type, event.table)
            return False

        if event.table == TABLE_TRANSACTIONS and event.event_type != EVENT_INSERT:
            logger.warning("Ignoring %s on append-only transactions", event.event_type)
            return False

        if event.event_type == EVENT_INSERT:
            if rows.get(key) == event.new:
                return False
            rows[key] = dict(event.new)
            return True
        if event.event_type == EVENT_UPDATE:
            if key not in rows:
                return False
            rows[key] = {**rows[key], **event.new}
            return True
        if event.event_type == EVENT_DELETE:
            return rows.pop(key, None) is not None

        logger.warning("Ignoring unknown event type %s", event.event_type)
        return False

    # ── typed views ───────────────────────────────────────
    def rows(self, table: str) -> List[Row]:
        with self._lock:
            return [dict(r) for r in self._rows[table].values()]

    def stock(self) -> List[StockItem]:
        return [StockItem.from_row(r) for r in self.rows(TABLE_STOCK)]

    def stock_by_id(self) -> Dict[str, StockItem]:
        return {lot.id: lot for lot in self.stock()}

    def lot(self, lot_id: str) -> Optional[StockItem]:
        with self._lock:
            row = self._rows[TABLE_STOCK].get(lot_id)
        return StockItem.from_row(row) if row else None

    def transactions(self) -> List[Transaction]:
        return [Transaction.from_row(r) for r in self.rows(TABLE_TRANSACTIONS)]

    def pending_requests(self) -> List[PendingRequest]:
        return [PendingRequest.from_row(r) for r in self.rows(TABLE_PENDING)]

    def users(self) -> List[User]:
        return [User.from_row(r) for r in self.rows(TABLE_USERS)]

    def item_codes(self) -> List[str]:
        with self._lock:
            return sorted(str(code) for code in self._rows[TABLE_ITEM_CODES])
