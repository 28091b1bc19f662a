"""Read-side aggregation over loaded stock and the transaction ledger.

Nothing in this module touches the store; every function works on lists
already held by the mirror so reports can be recomputed on each render.
"""

from __future__ import annotations

import io
from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from coldstore.core.constants import (
    EXPIRY_EXPIRED,
    EXPIRY_NORMAL,
    EXPIRY_SOON,
    EXPIRY_WARNING_DAYS,
    STORAGE_LOCATIONS,
    TX_IN,
    TX_OUT,
    TX_SHIFT,
    TX_STATUS_CHANGE,
)
from coldstore.exceptions import ReportWindowError
from coldstore.models import StockItem, Transaction, parse_date, parse_timestamp


# ─────────────────────────────────────────────────────────
# ENDING STOCK
# ─────────────────────────────────────────────────────────
@dataclass
class EndingStockRow:
    item_code: str
    pcs: int = 0
    kgs: float = 0.0


def ending_stock(lots: Iterable[StockItem]) -> List[EndingStockRow]:
    """Total pcs/kgs per item code over the current lots, sorted by code."""
    totals: Dict[str, EndingStockRow] = {}
    for lot in lots:
        row = totals.setdefault(lot.item_code, EndingStockRow(lot.item_code))
        row.pcs += lot.pcs
        row.kgs += lot.kgs
    return [totals[code] for code in sorted(totals)]


# ─────────────────────────────────────────────────────────
# MOVEMENT REPORT
# ─────────────────────────────────────────────────────────
@dataclass
class MovementRow:
    item_code: str
    opening_pcs: int = 0
    opening_kgs: float = 0.0
    in_pcs: int = 0
    in_kgs: float = 0.0
    out_pcs: int = 0
    out_kgs: float = 0.0
    ending_pcs: int = 0
    ending_kgs: float = 0.0


def report_window(
    start: Optional[date], end: Optional[date], tz: tzinfo = timezone.utc
) -> tuple[datetime, datetime]:
    """Return the aware ``[start 00:00, end 23:59:59.999999]`` window.

    Raises :class:`ReportWindowError` if a bound is missing or ``start`` is
    after ``end``.
    """
    if start is None or end is None:
        raise ReportWindowError("Please select both a start and end date.")
    if start > end:
        raise ReportWindowError("Start date cannot be after end date.")
    return (
        datetime.combine(start, time.min, tzinfo=tz),
        datetime.combine(end, time.max, tzinfo=tz),
    )


def movement_report(
    transactions: Sequence[Transaction],
    start: Optional[date],
    end: Optional[date],
    tz: tzinfo = timezone.utc,
) -> List[MovementRow]:
    """Opening / in / out / ending balances per item code for a date window.

    Opening is the net of ``IN`` minus ``OUT`` strictly before the window;
    in and out are summed inside the window inclusively. ``SHIFT`` and
    ``STATUS_CHANGE`` entries do not change balances.
    """
    window_start, window_end = report_window(start, end, tz)

    rows: Dict[str, MovementRow] = OrderedDict()
    for code in sorted({tx.item.item_code for tx in transactions}):
        rows[code] = MovementRow(code)

    for tx in transactions:
        if tx.type not in (TX_IN, TX_OUT):
            continue
        row = rows[tx.item.item_code]
        sign = 1 if tx.type == TX_IN else -1
        when = parse_timestamp(tx.timestamp)
        if when < window_start:
            row.opening_pcs += sign * tx.item.pcs
            row.opening_kgs += sign * tx.item.kgs
        elif when <= window_end:
            if tx.type == TX_IN:
                row.in_pcs += tx.item.pcs
                row.in_kgs += tx.item.kgs
            else:
                row.out_pcs += tx.item.pcs
                row.out_kgs += tx.item.kgs

    for row in rows.values():
        row.ending_pcs = row.opening_pcs + row.in_pcs - row.out_pcs
        row.ending_kgs = row.opening_kgs + row.in_kgs - row.out_kgs
    return list(rows.values())


# ─────────────────────────────────────────────────────────
# EXPIRY
# ─────────────────────────────────────────────────────────
def classify_expiry(expiry_date, today: Optional[date] = None) -> str:
    """Return ``EXPIRED``, ``EXPIRING_SOON`` (within 30 days inclusive) or ``NORMAL``.

    The expiry is compared as a calendar date so that a lot expiring today is
    never reported as expired because of a timezone offset.
    """
    today = today or date.today()
    expiry = parse_date(expiry_date)
    if expiry is None:
        return EXPIRY_NORMAL
    if expiry < today:
        return EXPIRY_EXPIRED
    if expiry <= today + timedelta(days=EXPIRY_WARNING_DAYS):
        return EXPIRY_SOON
    return EXPIRY_NORMAL


@dataclass
class ExpiryReport:
    expired: List[StockItem] = field(default_factory=list)
    expiring_soon: List[StockItem] = field(default_factory=list)


def expiry_report(lots: Iterable[StockItem], today: Optional[date] = None) -> ExpiryReport:
    report = ExpiryReport()
    for lot in sorted(lots, key=lambda l: l.expiry_date):
        status = classify_expiry(lot.expiry_date, today)
        if status == EXPIRY_EXPIRED:
            report.expired.append(lot)
        elif status == EXPIRY_SOON:
            report.expiring_soon.append(lot)
    return report


# ─────────────────────────────────────────────────────────
# DASHBOARD
# ─────────────────────────────────────────────────────────
@dataclass
class DashboardStats:
    total_pcs: int
    total_kgs: float
    lot_count: int
    expired_count: int
    expiring_soon_count: int


def dashboard_stats(lots: Sequence[StockItem], today: Optional[date] = None) -> DashboardStats:
    report = expiry_report(lots, today)
    return DashboardStats(
        total_pcs=sum(lot.pcs for lot in lots),
        total_kgs=sum(lot.kgs for lot in lots),
        lot_count=len(lots),
        expired_count=len(report.expired),
        expiring_soon_count=len(report.expiring_soon),
    )


def search_stock(lots: Iterable[StockItem], term: str) -> List[StockItem]:
    """Lots whose item code or location contains ``term`` (case-insensitive)."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(lots)
    return [
        lot
        for lot in lots
        if needle in lot.item_code.lower() or needle in lot.location.lower()
    ]


# ─────────────────────────────────────────────────────────
# LOCATIONS
# ─────────────────────────────────────────────────────────
@dataclass
class SlotOccupancy:
    slot: str
    lots: List[StockItem]

    @property
    def label(self) -> str:
        count = len(self.lots)
        return "Empty" if count == 0 else f"{count} item(s)"

    @property
    def level(self) -> str:
        count = len(self.lots)
        if count == 0:
            return "empty"
        if count <= 2:
            return "low"
        if count <= 5:
            return "medium"
        return "high"


def rack_of(slot: str) -> str:
    return slot.split("-")[0][:1] or "?"


def location_occupancy(
    lots: Iterable[StockItem], slots: Sequence[str] = STORAGE_LOCATIONS
) -> Dict[str, List[SlotOccupancy]]:
    """Slots grouped by rack letter with the lots stored in each.

    Slots that hold stock but are missing from ``slots`` are still listed
    under their rack.
    """
    by_slot: Dict[str, List[StockItem]] = {}
    for lot in lots:
        by_slot.setdefault(lot.location, []).append(lot)

    all_slots = list(slots) + sorted(s for s in by_slot if s not in set(slots))
    racks: Dict[str, List[SlotOccupancy]] = {}
    for slot in all_slots:
        racks.setdefault(rack_of(slot), []).append(
            SlotOccupancy(slot, by_slot.get(slot, []))
        )
    return {rack: racks[rack] for rack in sorted(racks)}


# ─────────────────────────────────────────────────────────
# TRANSACTION HISTORY
# ─────────────────────────────────────────────────────────
def describe_location(tx: Transaction) -> str:
    if tx.type == TX_IN:
        return f"To: {tx.to_location}"
    if tx.type == TX_OUT:
        return f"From: {tx.from_location}"
    if tx.type == TX_SHIFT:
        return f"From: {tx.from_location} -> To: {tx.to_location}"
    if tx.type == TX_STATUS_CHANGE:
        return f"Status Update (@{tx.item.location})"
    return ""


def transaction_history_rows(transactions: Iterable[Transaction]) -> List[Dict[str, object]]:
    """CSV-ready rows, newest first."""
    ordered = sorted(transactions, key=lambda t: parse_timestamp(t.timestamp), reverse=True)
    return [
        {
            "Type": tx.type,
            "Item Code": tx.item.item_code,
            "PCS": tx.item.pcs,
            "KGS": f"{tx.item.kgs:.2f}",
            "Prod. Date": tx.item.production_date or "",
            "Expiry Date": tx.item.expiry_date,
            "Location Info": describe_location(tx),
            "User": tx.username,
            "Timestamp": parse_timestamp(tx.timestamp).strftime("%Y-%m-%d %H:%M:%S"),
            "Notes": tx.notes or "",
        }
        for tx in ordered
    ]


# ─────────────────────────────────────────────────────────
# DATAFRAME / CSV EXPORT
# ─────────────────────────────────────────────────────────
def ending_stock_frame(rows: Sequence[EndingStockRow]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"Item Code": r.item_code, "Total PCS": r.pcs, "Total KGS": f"{r.kgs:.2f}"}
            for r in rows
        ],
        columns=["Item Code", "Total PCS", "Total KGS"],
    )


def movement_report_frame(rows: Sequence[MovementRow]) -> pd.DataFrame:
    columns = [
        "Item Code",
        "Opening PCS",
        "Opening KGS",
        "In PCS",
        "In KGS",
        "Out PCS",
        "Out KGS",
        "Ending PCS",
        "Ending KGS",
    ]
    return pd.DataFrame(
        [
            {
                "Item Code": r.item_code,
                "Opening PCS": r.opening_pcs,
                "Opening KGS": f"{r.opening_kgs:.2f}",
                "In PCS": r.in_pcs,
                "In KGS": f"{r.in_kgs:.2f}",
                "Out PCS": r.out_pcs,
                "Out KGS": f"{r.out_kgs:.2f}",
                "Ending PCS": r.ending_pcs,
                "Ending KGS": f"{r.ending_kgs:.2f}",
            }
            for r in rows
        ],
        columns=columns,
    )


def stock_frame(lots: Sequence[StockItem], today: Optional[date] = None) -> pd.DataFrame:
    """Lot table for display, with an ``expiry_status`` column for highlighting."""
    columns = [
        "id",
        "item_code",
        "pcs",
        "kgs",
        "production_date",
        "expiry_date",
        "location",
        "status",
        "hold_reason",
        "expiry_status",
    ]
    records = []
    for lot in lots:
        record = asdict(lot)
        record["expiry_status"] = classify_expiry(lot.expiry_date, today)
        records.append(record)
    return pd.DataFrame(records, columns=columns)


def to_csv_bytes(df: pd.DataFrame) -> bytes:
    buffer = io.StringIO()
    df.to_csv(buffer, index=False)
    return buffer.getvalue().encode("utf-8")
