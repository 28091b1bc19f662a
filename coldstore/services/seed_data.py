"""Default rows inserted when a catalog table is found empty at startup."""

import logging
from typing import Any, Dict, List

from coldstore.core.constants import ROLE_ADMIN, TABLE_ITEM_CODES, TABLE_USERS
from coldstore.exceptions import StoreError

logger = logging.getLogger(__name__)

INITIAL_ITEM_CODES: List[str] = [
    "BEEF-BRISKET",
    "BEEF-MINCE",
    "BEEF-TENDERLOIN",
    "CHICKEN-BREAST",
    "CHICKEN-THIGH",
    "CHICKEN-WHOLE",
    "CHICKEN-WINGS",
    "DUCK-WHOLE",
    "FISH-COD-FILLET",
    "FISH-MACKEREL",
    "FISH-SALMON-FILLET",
    "FISH-TUNA-LOIN",
    "LAMB-LEG",
    "LAMB-RACK",
    "PORK-BELLY",
    "PORK-LOIN",
    "SHRIMP-PEELED",
    "SQUID-RINGS",
    "VEG-MIXED-FROZEN",
    "VEG-PEAS-FROZEN",
]

INITIAL_USERS: List[Dict[str, Any]] = [
    {"username": "admin", "password": "admin123", "role": ROLE_ADMIN},
]


def seed_if_empty(store, table: str, existing: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Insert the default rows for ``table`` when ``existing`` is empty.

    Returns the rows the caller should treat as loaded. A failed seed is
    logged and leaves the table empty.
    """
    if existing:
        return existing
    if table == TABLE_ITEM_CODES:
        rows = [{"code": code} for code in sorted(INITIAL_ITEM_CODES)]
    elif table == TABLE_USERS:
        rows = [dict(u) for u in INITIAL_USERS]
    else:
        return existing

    logger.info("Seeding default %s...", table)
    try:
        store.insert(table, rows)
    except StoreError:
        logger.error("Error seeding %s", table)
        return []
    return rows
