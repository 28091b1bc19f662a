"""Domain records exchanged with the Supabase tables.

Each record converts to and from the camelCase row layout used by the store
(``itemCode``, ``expiryDate``, ``fromLocation`` ...). Conversions are
tolerant of missing optional columns so that rows written by older clients
still load.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from coldstore.core.constants import (
    LOT_AVAILABLE,
    REQUEST_IN,
    REQUEST_OUT,
    REQUEST_STATUS_PENDING,
    ROLE_USER,
)


def new_id(prefix: str, index: Optional[int] = None) -> str:
    """Return an identifier such as ``STK-1718000000000-0-3fa2c1``."""
    millis = int(time.time() * 1000)
    suffix = uuid.uuid4().hex[:6]
    if index is None:
        return f"{prefix}-{millis}-{suffix}"
    return f"{prefix}-{millis}-{index}-{suffix}"


def utc_now_iso() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp; naive values are taken as UTC."""
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value: Union[str, date, None]) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` (or the date part of a timestamp) as a calendar date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def _opt(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class StockItem:
    """A lot: one item code at one slot with its own dates."""

    id: str
    item_code: str
    pcs: int
    kgs: float
    expiry_date: str
    location: str
    entry_date: str
    production_date: Optional[str] = None
    status: str = LOT_AVAILABLE
    hold_reason: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "StockItem":
        return cls(
            id=str(row["id"]),
            item_code=str(row.get("itemCode") or ""),
            pcs=int(float(row.get("pcs") or 0)),
            kgs=float(row.get("kgs") or 0),
            expiry_date=str(row.get("expiryDate") or ""),
            location=str(row.get("location") or ""),
            entry_date=str(row.get("entryDate") or ""),
            production_date=_opt(row.get("productionDate")),
            status=row.get("status") or LOT_AVAILABLE,
            hold_reason=_opt(row.get("holdReason")),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "itemCode": self.item_code,
            "pcs": self.pcs,
            "kgs": self.kgs,
            "productionDate": self.production_date,
            "expiryDate": self.expiry_date,
            "location": self.location,
            "entryDate": self.entry_date,
            "status": self.status,
            "holdReason": self.hold_reason,
        }

    def with_quantities(self, pcs: int, kgs: float) -> "StockItem":
        return replace(self, pcs=pcs, kgs=kgs)


@dataclass(frozen=True)
class Transaction:
    """An immutable ledger entry with a snapshot of the affected quantities."""

    id: str
    type: str
    item: StockItem
    timestamp: str
    username: str
    from_location: Optional[str] = None
    to_location: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Transaction":
        return cls(
            id=str(row["id"]),
            type=str(row["type"]),
            item=StockItem.from_row(row.get("item") or {"id": ""}),
            timestamp=str(row["timestamp"]),
            username=str(row.get("username") or ""),
            from_location=_opt(row.get("fromLocation")),
            to_location=_opt(row.get("toLocation")),
            notes=_opt(row.get("notes")),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "item": self.item.to_row(),
            "timestamp": self.timestamp,
            "fromLocation": self.from_location,
            "toLocation": self.to_location,
            "username": self.username,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class User:
    username: str
    password: str
    role: str = ROLE_USER

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "User":
        return cls(
            username=str(row["username"]),
            password=str(row.get("password") or ""),
            role=str(row.get("role") or ROLE_USER),
        )

    def to_row(self) -> Dict[str, Any]:
        return {"username": self.username, "password": self.password, "role": self.role}


@dataclass(frozen=True)
class RemovalInstruction:
    """Take ``pcs``/``kgs`` out of lot ``stock_id``."""

    stock_id: str
    pcs: int
    kgs: float

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RemovalInstruction":
        return cls(
            stock_id=str(row["stockId"]),
            pcs=int(float(row.get("pcs") or 0)),
            kgs=float(row.get("kgs") or 0),
        )

    def to_row(self) -> Dict[str, Any]:
        return {"stockId": self.stock_id, "pcs": self.pcs, "kgs": self.kgs}


@dataclass(frozen=True)
class MoveInstruction:
    """Shift ``pcs``/``kgs`` of lot ``stock_id`` to ``new_location``."""

    stock_id: str
    new_location: str
    pcs: int
    kgs: float


@dataclass(frozen=True)
class PendingIn:
    lots: List[StockItem] = field(default_factory=list)

    kind = REQUEST_IN

    def to_data(self) -> List[Dict[str, Any]]:
        return [lot.to_row() for lot in self.lots]


@dataclass(frozen=True)
class PendingOut:
    instructions: List[RemovalInstruction] = field(default_factory=list)

    kind = REQUEST_OUT

    def to_data(self) -> List[Dict[str, Any]]:
        return [ins.to_row() for ins in self.instructions]


PendingPayload = Union[PendingIn, PendingOut]


def payload_from_data(kind: str, data: Any) -> PendingPayload:
    """Build the tagged payload for a ``pending_requests.data`` column."""
    rows = list(data or [])
    if kind == REQUEST_IN:
        return PendingIn([StockItem.from_row(r) for r in rows])
    if kind == REQUEST_OUT:
        return PendingOut([RemovalInstruction.from_row(r) for r in rows])
    raise ValueError(f"Unknown pending request type: {kind!r}")


@dataclass(frozen=True)
class PendingRequest:
    id: str
    payload: PendingPayload
    requester: str
    timestamp: str
    status: str = REQUEST_STATUS_PENDING

    @property
    def kind(self) -> str:
        return self.payload.kind

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PendingRequest":
        return cls(
            id=str(row["id"]),
            payload=payload_from_data(str(row["type"]), row.get("data")),
            requester=str(row.get("requester") or "unknown"),
            timestamp=str(row.get("timestamp") or ""),
            status=str(row.get("status") or REQUEST_STATUS_PENDING),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind,
            "data": self.payload.to_data(),
            "requester": self.requester,
            "timestamp": self.timestamp,
            "status": self.status,
        }
