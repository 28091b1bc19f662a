"""Fire-and-forget transaction logging to a spreadsheet webhook.

Each transaction is POSTed form-encoded to the Apps Script endpoint configured
as ``SHEET_LOGGER_URL``. The request runs on a small background executor;
failures are only logged and never reach the caller.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import timezone
from typing import Dict, Iterable, List, Optional

import requests

from coldstore.config import load_settings
from coldstore.models import Transaction, parse_timestamp
from coldstore.services.report_service import describe_location

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="sheet-logger")

REQUEST_TIMEOUT = 10


def _format_number(value) -> str:
    """Whole numbers without a trailing ``.0``, others at shortest precision."""
    value = float(value)
    return str(int(value)) if value.is_integer() else repr(value)


def build_payload(tx: Transaction) -> Dict[str, str]:
    timestamp = parse_timestamp(tx.timestamp).astimezone(timezone.utc)
    return {
        "type": tx.type,
        "itemCode": tx.item.item_code,
        "pcs": _format_number(tx.item.pcs),
        "kgs": _format_number(tx.item.kgs),
        "locationInfo": describe_location(tx),
        "user": tx.username,
        "timestamp": timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "notes": tx.notes or "",
    }


def post_transaction(url: str, tx: Transaction) -> bool:
    """Send one transaction; return whether the endpoint accepted it."""
    try:
        resp = requests.post(url, data=build_payload(tx), timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        logger.warning("Error sending transaction %s to sheet: %s", tx.id, exc)
        return False
    if not resp.ok:
        logger.warning(
            "Failed to log transaction %s to sheet. Status: %s %s. Body: %s",
            tx.id,
            resp.status_code,
            resp.reason,
            resp.text[:500],
        )
        return False
    return True


def log_transaction(tx: Transaction) -> Optional[Future]:
    url = load_settings().sheet_logger_url
    if not url:
        logger.debug("Sheet logging disabled; skipping %s", tx.id)
        return None
    return _executor.submit(post_transaction, url, tx)


def log_transactions(transactions: Iterable[Transaction]) -> List[Future]:
    futures = [log_transaction(tx) for tx in transactions]
    return [f for f in futures if f is not None]
