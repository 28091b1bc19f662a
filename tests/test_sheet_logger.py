import requests

from coldstore.core.constants import TX_IN, TX_SHIFT
from coldstore.models import Transaction
from coldstore.services import sheet_logger

from conftest import make_lot


class DummyResponse:
    def __init__(self, ok=True, status_code=200):
        self.ok = ok
        self.status_code = status_code
        self.reason = "OK" if ok else "Server Error"
        self.text = "done" if ok else "boom"


def _shift():
    return Transaction(
        id="TRN-1",
        type=TX_SHIFT,
        item=make_lot("L1", pcs=4, kgs=2.5),
        timestamp="2024-03-01T10:15:00.123Z",
        username="alice",
        from_location="A1-01",
        to_location="B2-02",
    )


def test_build_payload_fields():
    payload = sheet_logger.build_payload(_shift())
    assert payload == {
        "type": "SHIFT",
        "itemCode": "BEEF-MINCE",
        "pcs": "4",
        "kgs": "2.5",
        "locationInfo": "From: A1-01 -> To: B2-02",
        "user": "alice",
        "timestamp": "2024-03-01T10:15:00.123Z",
        "notes": "",
    }


def test_post_transaction_form_encodes(monkeypatch):
    calls = {}

    def fake_post(url, data=None, timeout=None):
        calls.update(url=url, data=data, timeout=timeout)
        return DummyResponse()

    monkeypatch.setattr(sheet_logger.requests, "post", fake_post)
    assert sheet_logger.post_transaction("https://hook", _shift())
    assert calls["url"] == "https://hook"
    assert calls["data"]["type"] == "SHIFT"
    assert calls["timeout"] == sheet_logger.REQUEST_TIMEOUT


def test_post_transaction_failures_are_swallowed(monkeypatch, caplog):
    monkeypatch.setattr(sheet_logger.requests, "post", lambda *a, **k: DummyResponse(False, 500))
    assert not sheet_logger.post_transaction("https://hook", _shift())

    def raise_error(*args, **kwargs):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(sheet_logger.requests, "post", raise_error)
    assert not sheet_logger.post_transaction("https://hook", _shift())
    assert "Error sending transaction TRN-1" in caplog.text


def test_log_transaction_disabled_without_url():
    assert sheet_logger.log_transaction(_shift()) is None
    assert sheet_logger.log_transactions([_shift(), _shift()]) == []


def test_log_transaction_runs_in_background(monkeypatch):
    monkeypatch.setenv("SHEET_LOGGER_URL", "https://hook")
    monkeypatch.setattr(sheet_logger.requests, "post", lambda *a, **k: DummyResponse())
    futures = sheet_logger.log_transactions([_shift()])
    assert len(futures) == 1
    assert futures[0].result(timeout=5) is True


def test_build_payload_drops_trailing_zero_from_whole_quantities():
    tx = Transaction(
        id="TRN-2",
        type=TX_IN,
        item=make_lot("L1", pcs=100, kgs=50.0),
        timestamp="2024-03-01T10:15:00.000Z",
        username="alice",
    )
    payload = sheet_logger.build_payload(tx)
    assert (payload["pcs"], payload["kgs"]) == ("100", "50")
