"""Role-based routing of stock submissions and resolution of pending requests.

Administrators write goods in/out straight to stock. Regular users file a
pending request instead, which an administrator later approves (optionally
after editing it) or rejects. Approval and rejection both delete the pending
row; only an approval leaves a trace, in the transactions it produces.

Every entry point returns ``(success, message)`` for display.
"""

import logging
from dataclasses import replace
from typing import Any, Optional, Sequence, Tuple

from coldstore.auth.session import Session
from coldstore.core.constants import (
    REQUEST_IN,
    ROLE_ADMIN,
    ROLE_USER,
    TABLE_PENDING,
)
from coldstore.exceptions import (
    ColdStoreError,
    InsufficientStockError,
    LotNotFoundError,
    LotOnHoldError,
    StoreError,
    ValidationError,
)
from coldstore.models import (
    MoveInstruction,
    PendingIn,
    PendingOut,
    PendingPayload,
    PendingRequest,
    RemovalInstruction,
    StockItem,
    new_id,
    utc_now_iso,
)
from coldstore.services import stock_service
from coldstore.services.mirror import ChangeEvent, StoreMirror

logger = logging.getLogger(__name__)

MSG_VIEWER_DENIED = "Viewers cannot submit stock movements."
MSG_ADMIN_ONLY = "Only administrators can resolve pending requests."


def _file_request(
    session: Session, store, mirror: StoreMirror, payload: PendingPayload
) -> Tuple[bool, str]:
    request = PendingRequest(
        id=new_id(f"REQ-{payload.kind}"),
        payload=payload,
        requester=session.username or "unknown",
        timestamp=utc_now_iso(),
    )
    row = request.to_row()
    try:
        store.insert(TABLE_PENDING, row)
    except StoreError:
        logger.error("Error creating %s request for %s", payload.kind, session.username)
        return False, "Failed to submit request."
    mirror.apply_local(ChangeEvent.insert(TABLE_PENDING, row))
    logger.info("Filed %s for approval by %s", request.id, session.username)
    label = "Goods In" if payload.kind == REQUEST_IN else "Goods Out"
    return True, f"{label} request submitted for Admin approval."


# ─────────────────────────────────────────────────────────
# SUBMISSION
# ─────────────────────────────────────────────────────────
def submit_goods_in(
    session: Session, store, mirror: StoreMirror, lots: Sequence[StockItem]
) -> Tuple[bool, str]:
    if not session.can_submit:
        return False, MSG_VIEWER_DENIED
    errors = stock_service.validate_lots(lots)
    if errors:
        return False, "Please fix the errors highlighted below."

    if session.role == ROLE_USER:
        return _file_request(session, store, mirror, PendingIn(list(lots)))

    transactions = stock_service.build_in_transactions(lots, session.username)
    try:
        stock_service.receive_stock(store, mirror, lots, transactions)
    except StoreError as exc:
        return False, f"Failed to save stock to database. {exc}"
    return True, f"Goods In recorded for {len(lots)} item(s)."


def submit_goods_out(
    session: Session,
    store,
    mirror: StoreMirror,
    instructions: Sequence[RemovalInstruction],
) -> Tuple[bool, str]:
    if not session.can_submit:
        return False, MSG_VIEWER_DENIED
    stock_by_id = mirror.stock_by_id()
    try:
        stock_service.plan_removal(stock_by_id, instructions)
    except ColdStoreError as exc:
        return False, str(exc)

    if session.role == ROLE_USER:
        return _file_request(session, store, mirror, PendingOut(list(instructions)))

    transactions = stock_service.build_out_transactions(
        stock_by_id, instructions, session.username
    )
    try:
        stock_service.remove_stock(store, mirror, instructions, transactions)
    except ColdStoreError as exc:
        return False, f"Failed to update stock. {exc}"
    return True, f"Goods Out recorded for {len(instructions)} item(s)."


def submit_pallet_shift(
    session: Session, store, mirror: StoreMirror, instruction: MoveInstruction
) -> Tuple[bool, str]:
    """Pallet shifts are applied directly for every role that may submit."""
    if not session.can_submit:
        return False, MSG_VIEWER_DENIED
    stock_by_id = mirror.stock_by_id()
    error = stock_service.validate_pallet_shift(instruction, stock_by_id)
    if error:
        return False, error
    lot = stock_by_id[instruction.stock_id]
    transaction = stock_service.build_shift_transaction(lot, instruction, session.username)
    try:
        plan = stock_service.move_stock(store, mirror, instruction, transaction)
    except ColdStoreError as exc:
        return False, f"Failed to move stock. {exc}"
    kind = "Moved" if plan.is_full_move else "Split and moved"
    return True, f"{kind} {lot.item_code} from {lot.location} to {instruction.new_location}."


def change_lot_status(
    session: Session,
    store,
    mirror: StoreMirror,
    lot_id: str,
    status: str,
    reason: Optional[str] = None,
) -> Tuple[bool, str]:
    """Place or release a QC hold; administrators only."""
    if session.role != ROLE_ADMIN:
        return False, "Only administrators can change a lot's status."
    try:
        lot = stock_service.set_lot_status(store, mirror, lot_id, status, reason, session.username)
    except ColdStoreError as exc:
        return False, str(exc)
    return True, f"{lot.item_code} @ {lot.location} is now {lot.status}."


# ─────────────────────────────────────────────────────────
# EDITING PENDING PAYLOADS
# ─────────────────────────────────────────────────────────
_EDITABLE_LOT_FIELDS = {"item_code", "pcs", "kgs", "production_date", "expiry_date", "location"}


def revise_lot(payload: PendingIn, index: int, **changes: Any) -> PendingIn:
    """Copy of ``payload`` with fields of lot ``index`` replaced."""
    unknown = set(changes) - _EDITABLE_LOT_FIELDS
    if unknown:
        raise ValueError(f"Cannot edit {', '.join(sorted(unknown))}")
    lots = list(payload.lots)
    lots[index] = replace(lots[index], **changes)
    return PendingIn(lots)


def revise_instruction(
    payload: PendingOut, index: int, pcs: Optional[int] = None, kgs: Optional[float] = None
) -> PendingOut:
    instructions = list(payload.instructions)
    current = instructions[index]
    instructions[index] = replace(
        current,
        pcs=current.pcs if pcs is None else pcs,
        kgs=current.kgs if kgs is None else kgs,
    )
    return PendingOut(instructions)


# ─────────────────────────────────────────────────────────
# RESOLUTION
# ─────────────────────────────────────────────────────────
def approve_request(
    session: Session,
    store,
    mirror: StoreMirror,
    request: PendingRequest,
    edited_payload: Optional[PendingPayload] = None,
) -> Tuple[bool, str]:
    """Apply a pending request as its requester, then drop it from the queue.

    An ``OUT`` request is re-checked against current stock first; if any lot is
    gone, on hold or short, nothing is written and the request stays pending.
    """
    if session.role != ROLE_ADMIN:
        return False, MSG_ADMIN_ONLY
    payload = edited_payload if edited_payload is not None else request.payload
    if payload.kind != request.kind:
        return False, "Edited data does not match the request type."

    try:
        if payload.kind == REQUEST_IN:
            errors = stock_service.validate_lots(payload.lots)
            if errors:
                first = next(iter(errors.values()))
                return False, f"Cannot approve. {first}"
            transactions = stock_service.build_in_transactions(payload.lots, request.requester)
            stock_service.receive_stock(store, mirror, payload.lots, transactions)
        else:
            stock_by_id = mirror.stock_by_id()
            try:
                stock_service.plan_removal(stock_by_id, payload.instructions)
            except (LotNotFoundError, LotOnHoldError, InsufficientStockError, ValidationError) as exc:
                logger.info("Approval of %s refused: %s", request.id, exc)
                return False, f"Cannot approve. {exc}"
            transactions = stock_service.build_out_transactions(
                stock_by_id, payload.instructions, request.requester
            )
            stock_service.remove_stock(store, mirror, payload.instructions, transactions)
    except StoreError as exc:
        return False, f"Failed to process approval: {exc}"

    try:
        store.delete(TABLE_PENDING, "id", request.id)
    except StoreError as exc:
        return False, f"Request applied but could not be cleared from the queue: {exc}"
    mirror.apply_local(ChangeEvent.delete(TABLE_PENDING, request.id))
    logger.info("%s approved by %s", request.id, session.username)
    return True, f"Request {request.id} approved."


def reject_request(
    session: Session,
    store,
    mirror: StoreMirror,
    request: PendingRequest,
    confirmed: bool = False,
) -> Tuple[bool, str]:
    """Discard a pending request; nothing about it is kept."""
    if session.role != ROLE_ADMIN:
        return False, MSG_ADMIN_ONLY
    if not confirmed:
        return False, "Please confirm the rejection."
    try:
        store.delete(TABLE_PENDING, "id", request.id)
    except StoreError as exc:
        return False, f"Failed to reject request: {exc}"
    mirror.apply_local(ChangeEvent.delete(TABLE_PENDING, request.id))
    logger.info("%s rejected by %s", request.id, session.username)
    return True, f"Request {request.id} rejected."
