"""Delivery of Supabase row-change notifications into a :class:`StoreMirror`.

The realtime channel is only available on the async Supabase client, so the
listener runs its own event loop in a daemon thread. The callback does no
work beyond normalizing the payload and queueing it on the mirror; the
mirror applies queued events on the Streamlit script thread.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Dict, Iterable, Optional

from supabase import acreate_client

from coldstore.core.constants import TABLE_KEYS
from coldstore.services.mirror import ChangeEvent, StoreMirror

logger = logging.getLogger(__name__)

CHANNEL_NAME = "db-changes"


def normalize_payload(payload: Dict[str, Any]) -> Optional[ChangeEvent]:
    """Turn a postgres_changes payload into a :class:`ChangeEvent`.

    Accepts both the flat ``{table, eventType, new, old}`` layout and the
    nested ``{"data": {table, type, record, old_record}}`` layout.
    """
    data = payload.get("data", payload)
    table = data.get("table")
    event_type = data.get("eventType") or data.get("type")
    new = data.get("new", data.get("record")) or None
    old = data.get("old", data.get("old_record")) or None
    if table not in TABLE_KEYS or not event_type:
        logger.debug("Dropping realtime payload for %s", table)
        return None
    return ChangeEvent(table=table, event_type=str(event_type).upper(), new=new, old=old)


class RealtimeListener:
    """Subscribe to changes on ``tables`` and feed them to ``mirror``."""

    def __init__(
        self,
        url: str,
        key: str,
        mirror: StoreMirror,
        tables: Iterable[str] = tuple(TABLE_KEYS),
    ):
        self.url = url
        self.key = key
        self.mirror = mirror
        self.tables = list(tables)
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._thread = threading.Thread(
            target=self._run, name="coldstore-realtime", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        if self._loop is not None and self._stop is not None:
            self._loop.call_soon_threadsafe(self._stop.set)

    def on_change(self, payload: Dict[str, Any]) -> None:
        event = normalize_payload(payload)
        if event is not None:
            self.mirror.enqueue(event)

    def _run(self) -> None:  # pragma: no cover - network interaction
        try:
            asyncio.run(self._listen())
        except Exception:
            logger.exception("Realtime listener stopped")

    async def _listen(self) -> None:  # pragma: no cover - network interaction
        self._loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        client = await acreate_client(self.url, self.key)
        if not client.realtime.is_connected:
            await client.realtime.connect()
        channel = client.channel(CHANNEL_NAME)
        for table in self.tables:
            channel.on_postgres_changes(
                "*", schema="public", table=table, callback=self.on_change
            )
        await channel.subscribe()
        logger.info("Subscribed to realtime changes on %s", ", ".join(self.tables))
        await self._stop.wait()
        await client.remove_channel(channel)
