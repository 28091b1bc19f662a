"""Goods-in, goods-out, pallet shift and QC hold on stock lots.

Planning functions (``plan_removal``, ``plan_move``) are pure: they check an
instruction against current lots and raise on the first problem. The
``receive_stock`` / ``remove_stock`` / ``move_stock`` / ``set_lot_status``
operations then write to the store one row at a time and patch the mirror
after each successful write. A multi-lot operation that fails part-way is not
rolled back; the error reports how far it got.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from coldstore.core.constants import (
    ALL_LOT_STATUSES,
    EPSILON,
    LOT_AVAILABLE,
    LOT_HOLD,
    MAX_FORM_ROWS,
    TABLE_STOCK,
    TABLE_TRANSACTIONS,
    TX_IN,
    TX_OUT,
    TX_SHIFT,
    TX_STATUS_CHANGE,
)
from coldstore.exceptions import (
    InsufficientStockError,
    LotNotFoundError,
    LotOnHoldError,
    StoreError,
    ValidationError,
)
from coldstore.models import (
    MoveInstruction,
    RemovalInstruction,
    StockItem,
    Transaction,
    new_id,
    parse_date,
    utc_now_iso,
)
from coldstore.services import sheet_logger
from coldstore.services.mirror import ChangeEvent, StoreMirror

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────
# FORM PARSING & VALIDATION
# ─────────────────────────────────────────────────────────
def parse_pcs(value: Any) -> Optional[int]:
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError):
        return None


def parse_kgs(value: Any) -> Optional[float]:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


def _check_row_count(rows: Sequence[Any]) -> None:
    if not rows:
        raise ValidationError("At least one item is required.", {None: "At least one item is required."})
    if len(rows) > MAX_FORM_ROWS:
        msg = f"A submission may contain at most {MAX_FORM_ROWS} items."
        raise ValidationError(msg, {None: msg})


def _lot_field_error(item_code, pcs, kgs, expiry_date, location) -> Optional[str]:
    if not item_code:
        return "Item Code is required."
    if pcs is None or pcs <= 0:
        return "PCS must be a positive number."
    if kgs is None or kgs <= 0:
        return "KGS must be a positive number."
    if not expiry_date:
        return "Expiry Date is required."
    if parse_date(expiry_date) is None:
        return "Expiry Date is invalid."
    if not location:
        return "A storage location must be selected."
    return None


def validate_goods_in_rows(rows: Sequence[Mapping[str, Any]]) -> Dict[Optional[int], str]:
    """Per-row error messages for raw goods-in form rows (empty when valid)."""
    try:
        _check_row_count(rows)
    except ValidationError as exc:
        return exc.errors
    errors: Dict[Optional[int], str] = {}
    for idx, row in enumerate(rows):
        try:
            error = _lot_field_error(
                str(row.get("itemCode") or "").strip(),
                parse_pcs(row.get("pcs")),
                parse_kgs(row.get("kgs")),
                row.get("expiryDate"),
                str(row.get("location") or "").strip(),
            )
        except ValueError:
            error = "Expiry Date is invalid."
        if error:
            errors[idx] = error
    return errors


def validate_lots(lots: Sequence[StockItem]) -> Dict[Optional[int], str]:
    """Same checks as :func:`validate_goods_in_rows` for already-built lots."""
    try:
        _check_row_count(lots)
    except ValidationError as exc:
        return exc.errors
    errors: Dict[Optional[int], str] = {}
    for idx, lot in enumerate(lots):
        try:
            error = _lot_field_error(
                lot.item_code, lot.pcs, lot.kgs, lot.expiry_date, lot.location
            )
        except ValueError:
            error = "Expiry Date is invalid."
        if error:
            errors[idx] = error
    return errors


def expired_rows(rows: Sequence[Mapping[str, Any]], today: Optional[date] = None) -> List[int]:
    """Indices of goods-in rows whose expiry date is already in the past."""
    today = today or date.today()
    expired = []
    for idx, row in enumerate(rows):
        try:
            expiry = parse_date(row.get("expiryDate"))
        except ValueError:
            continue
        if expiry is not None and expiry < today:
            expired.append(idx)
    return expired


def expiry_from_months(base: Optional[date], months: int) -> date:
    """``base`` (or today) plus ``months`` calendar months, clamped to month end."""
    base = base or date.today()
    month_index = base.month - 1 + months
    year = base.year + month_index // 12
    month = month_index % 12 + 1
    for day in (base.day, 30, 29, 28):
        try:
            return date(year, month, day)
        except ValueError:
            continue
    raise ValueError(f"Cannot add {months} months to {base}")


def build_lots(rows: Sequence[Mapping[str, Any]], entry_date: Optional[str] = None) -> List[StockItem]:
    """Turn validated goods-in rows into new lots, each with its own id."""
    entry_date = entry_date or utc_now_iso()
    lots = []
    for idx, row in enumerate(rows):
        production = str(row.get("productionDate") or "").strip() or None
        lots.append(
            StockItem(
                id=new_id("STK", idx),
                item_code=str(row["itemCode"]).strip(),
                pcs=parse_pcs(row["pcs"]),
                kgs=parse_kgs(row["kgs"]),
                production_date=production,
                expiry_date=str(row["expiryDate"]).strip(),
                location=str(row["location"]).strip(),
                entry_date=entry_date,
                status=LOT_AVAILABLE,
            )
        )
    return lots


def validate_goods_out_rows(
    rows: Sequence[Mapping[str, Any]], stock_by_id: Mapping[str, StockItem]
) -> Dict[Optional[int], str]:
    """Per-row errors for raw goods-out rows; key ``None`` holds form errors."""
    try:
        _check_row_count(rows)
    except ValidationError as exc:
        return exc.errors
    errors: Dict[Optional[int], str] = {}
    for idx, row in enumerate(rows):
        stock_id = str(row.get("stockId") or "")
        lot = stock_by_id.get(stock_id)
        pcs = parse_pcs(row.get("pcs"))
        kgs = parse_kgs(row.get("kgs"))
        if not stock_id or lot is None:
            errors[idx] = "Please select a stock item."
        elif lot.status == LOT_HOLD:
            errors[idx] = "This item is on QC HOLD and cannot be moved out."
        elif pcs is None or pcs <= 0:
            errors[idx] = "PCS must be a positive number."
        elif kgs is None or kgs <= 0:
            errors[idx] = "KGS must be a positive number."
        elif pcs > lot.pcs:
            errors[idx] = f"Cannot take out more than the available {lot.pcs} PCS."
        elif kgs > lot.kgs:
            errors[idx] = f"Cannot take out more than the available {lot.kgs} KGS."

    selected = [str(r.get("stockId")) for r in rows if r.get("stockId")]
    if len(set(selected)) != len(selected):
        errors[None] = "Each stock item can only be selected once per transaction."
    elif errors:
        errors[None] = "Please fix the errors highlighted below."
    return errors


def selectable_for_goods_out(lots: Sequence[StockItem]) -> List[StockItem]:
    """Lots that may be picked for goods out; anything on hold is excluded."""
    return [lot for lot in lots if lot.status != LOT_HOLD]


def validate_pallet_shift(
    instruction: MoveInstruction, stock_by_id: Mapping[str, StockItem]
) -> Optional[str]:
    lot = stock_by_id.get(instruction.stock_id)
    if not instruction.stock_id or lot is None:
        return "Please select an item to move."
    if not instruction.new_location:
        return "Please select a new destination location."
    if lot.location == instruction.new_location:
        return "The new location must be different from the current location."
    if instruction.pcs is None or instruction.pcs <= 0:
        return "PCS to move must be a positive number."
    if instruction.kgs is None or instruction.kgs <= 0:
        return "KGS to move must be a positive number."
    if instruction.pcs > lot.pcs:
        return f"Cannot move more than the available {lot.pcs} PCS."
    if instruction.kgs > lot.kgs:
        return f"Cannot move more than the available {lot.kgs} KGS."
    return None


# ─────────────────────────────────────────────────────────
# PLANNING
# ─────────────────────────────────────────────────────────
def remaining_after(lot: StockItem, pcs: int, kgs: float) -> Optional[StockItem]:
    """The lot after taking ``pcs``/``kgs`` out, or ``None`` if it is used up.

    Either measure at or below ``EPSILON`` counts as used up.
    """
    remaining_pcs = lot.pcs - pcs
    remaining_kgs = lot.kgs - kgs
    if remaining_pcs <= EPSILON or remaining_kgs <= EPSILON:
        return None
    return lot.with_quantities(remaining_pcs, remaining_kgs)


def plan_removal(
    stock_by_id: Mapping[str, StockItem], instructions: Sequence[RemovalInstruction]
) -> List[Tuple[StockItem, Optional[StockItem]]]:
    """Check every instruction and return ``(lot, remaining_or_None)`` pairs."""
    _check_row_count(instructions)
    seen = set()
    plan = []
    for ins in instructions:
        if ins.stock_id in seen:
            raise ValidationError(
                "Each stock item can only be selected once per transaction."
            )
        seen.add(ins.stock_id)
        lot = stock_by_id.get(ins.stock_id)
        if lot is None:
            raise LotNotFoundError(f"Stock for {ins.stock_id} is missing.")
        if lot.status == LOT_HOLD:
            raise LotOnHoldError(f"{lot.item_code} @ {lot.location} is on QC HOLD.")
        if ins.pcs <= 0 or ins.kgs <= 0:
            raise ValidationError("PCS and KGS must be positive numbers.")
        if ins.pcs > lot.pcs or ins.kgs > lot.kgs:
            raise InsufficientStockError(
                f"Stock for {ins.stock_id} is insufficient "
                f"({lot.pcs} PCS / {lot.kgs} KGS available)."
            )
        plan.append((lot, remaining_after(lot, ins.pcs, ins.kgs)))
    return plan


@dataclass(frozen=True)
class MovePlan:
    original: StockItem
    updated_original: StockItem
    new_lot: Optional[StockItem]

    @property
    def is_full_move(self) -> bool:
        return self.new_lot is None


def plan_move(stock_by_id: Mapping[str, StockItem], instruction: MoveInstruction) -> MovePlan:
    """Full move keeps the lot id and changes its slot; partial move splits it.

    As with removal, a move that would leave either measure at or below
    ``EPSILON`` behind counts as full.
    """
    error = validate_pallet_shift(instruction, stock_by_id)
    if error:
        if instruction.stock_id not in stock_by_id:
            raise LotNotFoundError(error)
        if "more than the available" in error:
            raise InsufficientStockError(error)
        raise ValidationError(error)

    lot = stock_by_id[instruction.stock_id]
    remaining_pcs = lot.pcs - instruction.pcs
    remaining_kgs = lot.kgs - instruction.kgs
    if remaining_pcs <= EPSILON or remaining_kgs <= EPSILON:
        return MovePlan(lot, replace(lot, location=instruction.new_location), None)

    new_lot = replace(
        lot,
        id=new_id("STK"),
        location=instruction.new_location,
        pcs=instruction.pcs,
        kgs=instruction.kgs,
    )
    return MovePlan(lot, lot.with_quantities(remaining_pcs, remaining_kgs), new_lot)


# ─────────────────────────────────────────────────────────
# TRANSACTION BUILDERS
# ─────────────────────────────────────────────────────────
def build_in_transactions(
    lots: Sequence[StockItem], username: str, timestamp: Optional[str] = None
) -> List[Transaction]:
    timestamp = timestamp or utc_now_iso()
    return [
        Transaction(
            id=new_id("TRN", idx),
            type=TX_IN,
            item=lot,
            timestamp=timestamp,
            to_location=lot.location,
            username=username,
        )
        for idx, lot in enumerate(lots)
    ]


def build_out_transactions(
    stock_by_id: Mapping[str, StockItem],
    instructions: Sequence[RemovalInstruction],
    username: str,
    timestamp: Optional[str] = None,
) -> List[Transaction]:
    """One ``OUT`` per instruction carrying a snapshot of what left."""
    timestamp = timestamp or utc_now_iso()
    transactions = []
    for idx, ins in enumerate(instructions):
        lot = stock_by_id.get(ins.stock_id)
        if lot is None:
            raise LotNotFoundError(f"Stock for {ins.stock_id} is missing.")
        transactions.append(
            Transaction(
                id=new_id("TRN", idx),
                type=TX_OUT,
                item=lot.with_quantities(ins.pcs, ins.kgs),
                timestamp=timestamp,
                from_location=lot.location,
                username=username,
            )
        )
    return transactions


def build_shift_transaction(
    lot: StockItem, instruction: MoveInstruction, username: str
) -> Transaction:
    return Transaction(
        id=new_id("TRN"),
        type=TX_SHIFT,
        item=lot.with_quantities(instruction.pcs, instruction.kgs),
        timestamp=utc_now_iso(),
        from_location=lot.location,
        to_location=instruction.new_location,
        username=username,
    )


def build_status_transaction(lot: StockItem, username: str, notes: Optional[str]) -> Transaction:
    return Transaction(
        id=new_id("TRN"),
        type=TX_STATUS_CHANGE,
        item=lot,
        timestamp=utc_now_iso(),
        username=username,
        notes=notes,
    )


# ─────────────────────────────────────────────────────────
# STORE-APPLIED OPERATIONS
# ─────────────────────────────────────────────────────────
def _record_transactions(store, mirror: StoreMirror, transactions: Sequence[Transaction]) -> None:
    if not transactions:
        return
    rows = [tx.to_row() for tx in transactions]
    store.insert(TABLE_TRANSACTIONS, rows)
    for row in rows:
        mirror.apply_local(ChangeEvent.insert(TABLE_TRANSACTIONS, row))
    sheet_logger.log_transactions(transactions)


def receive_stock(
    store, mirror: StoreMirror, new_lots: Sequence[StockItem], new_transactions: Sequence[Transaction]
) -> None:
    """Insert every new lot (never merged) and then its ``IN`` transactions."""
    rows = [lot.to_row() for lot in new_lots]
    store.insert(TABLE_STOCK, rows)
    for row in rows:
        mirror.apply_local(ChangeEvent.insert(TABLE_STOCK, row))
    logger.info("Received %d lot(s)", len(rows))
    try:
        _record_transactions(store, mirror, new_transactions)
    except StoreError:
        logger.error("Lots saved but %d IN transaction(s) were not recorded", len(new_transactions))
        raise


def remove_stock(
    store,
    mirror: StoreMirror,
    instructions: Sequence[RemovalInstruction],
    new_transactions: Sequence[Transaction],
) -> None:
    """Subtract each instruction from its lot, deleting lots that are used up.

    Every instruction is checked before anything is written. If a store write
    fails part-way, the ``OUT`` transactions of the lots already changed are
    still recorded and :class:`StoreError` is raised.
    """
    plan = plan_removal(mirror.stock_by_id(), instructions)
    applied: List[str] = []
    failure: Optional[StoreError] = None
    for lot, remaining in plan:
        try:
            if remaining is None:
                store.delete(TABLE_STOCK, "id", lot.id)
                mirror.apply_local(ChangeEvent.delete(TABLE_STOCK, lot.id))
            else:
                store.update(
                    TABLE_STOCK, {"pcs": remaining.pcs, "kgs": remaining.kgs}, "id", lot.id
                )
                mirror.apply_local(ChangeEvent.update(TABLE_STOCK, remaining.to_row()))
        except StoreError as exc:
            failure = exc
            break
        applied.append(lot.id)

    done = set(applied)
    _record_transactions(store, mirror, [tx for tx in new_transactions if tx.item.id in done])
    if failure is not None:
        logger.error("Goods out stopped after %d of %d lot(s)", len(applied), len(plan))
        raise StoreError(
            f"{failure} ({len(applied)} of {len(plan)} item(s) were already removed)"
        ) from failure
    logger.info("Removed stock from %d lot(s)", len(applied))


def move_stock(
    store, mirror: StoreMirror, move_instruction: MoveInstruction, transaction: Transaction
) -> MovePlan:
    """Apply a pallet shift and record its ``SHIFT`` transaction."""
    plan = plan_move(mirror.stock_by_id(), move_instruction)
    lot = plan.original
    if plan.is_full_move:
        store.update(TABLE_STOCK, {"location": move_instruction.new_location}, "id", lot.id)
        mirror.apply_local(ChangeEvent.update(TABLE_STOCK, plan.updated_original.to_row()))
    else:
        store.update(
            TABLE_STOCK,
            {"pcs": plan.updated_original.pcs, "kgs": plan.updated_original.kgs},
            "id",
            lot.id,
        )
        mirror.apply_local(ChangeEvent.update(TABLE_STOCK, plan.updated_original.to_row()))
        new_row = plan.new_lot.to_row()
        store.insert(TABLE_STOCK, new_row)
        mirror.apply_local(ChangeEvent.insert(TABLE_STOCK, new_row))
    _record_transactions(store, mirror, [transaction])
    logger.info(
        "Shifted %s from %s to %s (%s)",
        lot.id,
        lot.location,
        move_instruction.new_location,
        "full" if plan.is_full_move else "partial",
    )
    return plan


def set_lot_status(
    store,
    mirror: StoreMirror,
    lot_id: str,
    status: str,
    reason: Optional[str],
    username: str,
) -> StockItem:
    """Put a lot on QC hold or release it, recording a ``STATUS_CHANGE``."""
    if status not in ALL_LOT_STATUSES:
        raise ValidationError(f"Unknown status {status!r}.")
    lot = mirror.lot(lot_id)
    if lot is None:
        raise LotNotFoundError(f"Stock for {lot_id} is missing.")
    reason = (reason or "").strip() or None
    if status == LOT_HOLD and not reason:
        raise ValidationError("A reason is required to place a lot on hold.")
    if lot.status == status:
        raise ValidationError(f"Lot is already {status}.")

    updated = replace(lot, status=status, hold_reason=reason if status == LOT_HOLD else None)
    store.update(
        TABLE_STOCK, {"status": updated.status, "holdReason": updated.hold_reason}, "id", lot.id
    )
    mirror.apply_local(ChangeEvent.update(TABLE_STOCK, updated.to_row()))
    notes = f"{lot.status} -> {status}" + (f": {reason}" if reason else "")
    _record_transactions(store, mirror, [build_status_transaction(updated, username, notes)])
    return updated
