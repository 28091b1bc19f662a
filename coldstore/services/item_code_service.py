import logging
from typing import Tuple

from coldstore.core.constants import TABLE_ITEM_CODES
from coldstore.exceptions import StoreError
from coldstore.services.mirror import ChangeEvent, StoreMirror

logger = logging.getLogger(__name__)


def normalize_item_code(code: str) -> str:
    return (code or "").strip().upper()


def add_item_code(store, mirror: StoreMirror, code: str) -> Tuple[bool, str]:
    """Add ``code`` to the catalog; codes are stored upper-case and unique."""
    code = normalize_item_code(code)
    if not code:
        return False, "Item code cannot be empty."
    if code in mirror.item_codes():
        return False, f"Item code '{code}' already exists."
    row = {"code": code}
    try:
        store.insert(TABLE_ITEM_CODES, row)
    except StoreError:
        return False, "Failed to add item code."
    mirror.apply_local(ChangeEvent.insert(TABLE_ITEM_CODES, row))
    logger.info("Added item code %s", code)
    return True, f"Item code '{code}' added."


def delete_item_code(
    store, mirror: StoreMirror, code: str, confirmed: bool = False
) -> Tuple[bool, str]:
    # Existing lots keep their code; only new entries lose the option.
    if not confirmed:
        return False, f"Please confirm deleting item code '{code}'."
    if code not in mirror.item_codes():
        return False, f"Item code '{code}' not found."
    try:
        store.delete(TABLE_ITEM_CODES, "code", code)
    except StoreError:
        return False, "Failed to delete item code."
    mirror.apply_local(ChangeEvent.delete(TABLE_ITEM_CODES, code))
    logger.info("Deleted item code %s", code)
    return True, f"Item code '{code}' deleted."
