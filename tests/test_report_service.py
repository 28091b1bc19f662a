from datetime import date, timedelta
from zoneinfo import ZoneInfo

import pytest

from coldstore.core.constants import (
    EXPIRY_EXPIRED,
    EXPIRY_NORMAL,
    EXPIRY_SOON,
    TX_IN,
    TX_OUT,
    TX_SHIFT,
    TX_STATUS_CHANGE,
)
from coldstore.exceptions import ReportWindowError
from coldstore.models import Transaction
from coldstore.services import report_service

from conftest import make_lot


def _tx(tx_type, when, code="BEEF-MINCE", pcs=10, kgs=5.0, tx_id=None, **extra):
    return Transaction(
        id=tx_id or f"T-{tx_type}-{when}",
        type=tx_type,
        item=make_lot("L1", code, pcs, kgs),
        timestamp=when,
        username="admin",
        **extra,
    )


LEDGER = [
    _tx(TX_IN, "2024-03-01T08:00:00.000Z", pcs=100, kgs=50.0),
    _tx(TX_OUT, "2024-03-05T12:00:00.000Z", pcs=20, kgs=10.25),
    _tx(TX_SHIFT, "2024-03-06T09:00:00.000Z", pcs=30, kgs=15.0),
    _tx(TX_IN, "2024-03-10T00:00:00.000Z", pcs=40, kgs=20.5),
    _tx(TX_OUT, "2024-03-10T23:59:59.999Z", pcs=5, kgs=2.5),
    _tx(TX_OUT, "2024-03-11T00:00:00.000Z", pcs=1, kgs=0.5),
    _tx(TX_IN, "2024-03-08T10:00:00.000Z", code="CHICKEN-BREAST", pcs=7, kgs=3.75),
    _tx(TX_STATUS_CHANGE, "2024-03-09T10:00:00.000Z", code="DUCK-WHOLE", pcs=1, kgs=1.0),
]


# ─── ending stock ─────────────────────────────────────────────────────
def test_ending_stock_groups_by_item_code():
    lots = [
        make_lot("A", "PORK-LOIN", 5, 2.5),
        make_lot("B", "BEEF-MINCE", 10, 4.0),
        make_lot("C", "PORK-LOIN", 3, 1.25),
    ]
    rows = report_service.ending_stock(lots)
    assert [(r.item_code, r.pcs, r.kgs) for r in rows] == [
        ("BEEF-MINCE", 10, 4.0),
        ("PORK-LOIN", 8, 3.75),
    ]
    df = report_service.ending_stock_frame(rows)
    assert list(df.columns) == ["Item Code", "Total PCS", "Total KGS"]
    assert df.iloc[1]["Total KGS"] == "3.75"


# ─── movement report ──────────────────────────────────────────────────
def test_report_window_validation():
    with pytest.raises(ReportWindowError, match="both a start and end"):
        report_service.report_window(None, date(2024, 3, 1))
    with pytest.raises(ReportWindowError, match="cannot be after"):
        report_service.report_window(date(2024, 3, 2), date(2024, 3, 1))
    start, end = report_service.report_window(date(2024, 3, 1), date(2024, 3, 1))
    assert end - start == timedelta(days=1) - timedelta(microseconds=1)


def test_movement_report_balances():
    rows = {
        r.item_code: r
        for r in report_service.movement_report(LEDGER, date(2024, 3, 6), date(2024, 3, 10))
    }
    beef = rows["BEEF-MINCE"]
    assert (beef.opening_pcs, beef.opening_kgs) == (80, 39.75)
    assert (beef.in_pcs, beef.in_kgs) == (40, 20.5)
    # end of day is inclusive; the next midnight is not
    assert (beef.out_pcs, beef.out_kgs) == (5, 2.5)
    assert (beef.ending_pcs, beef.ending_kgs) == (115, 57.75)

    chicken = rows["CHICKEN-BREAST"]
    assert (chicken.opening_pcs, chicken.in_pcs, chicken.ending_pcs) == (0, 7, 7)

    # items seen only in non-balance entries still get a zero row
    duck = rows["DUCK-WHOLE"]
    assert (duck.opening_pcs, duck.in_pcs, duck.out_pcs, duck.ending_pcs) == (0, 0, 0, 0)
    assert list(rows) == sorted(rows)


def test_movement_report_identity_holds_for_every_row():
    for start, end in [
        (date(2024, 1, 1), date(2024, 12, 31)),
        (date(2024, 3, 5), date(2024, 3, 5)),
        (date(2024, 3, 11), date(2024, 3, 20)),
    ]:
        for row in report_service.movement_report(LEDGER, start, end):
            assert row.ending_pcs == row.opening_pcs + row.in_pcs - row.out_pcs
            assert row.ending_kgs == row.opening_kgs + row.in_kgs - row.out_kgs


def test_opening_equals_previous_ending():
    start = date(2024, 3, 10)
    later = {r.item_code: r for r in report_service.movement_report(LEDGER, start, date(2024, 3, 31))}
    earlier = {
        r.item_code: r
        for r in report_service.movement_report(LEDGER, date(2000, 1, 1), start - timedelta(days=1))
    }
    for code, row in later.items():
        assert row.opening_pcs == earlier[code].ending_pcs
        assert row.opening_kgs == earlier[code].ending_kgs


def test_movement_report_uses_timezone_for_day_bounds():
    ledger = [_tx(TX_IN, "2024-03-09T23:30:00.000Z", pcs=3, kgs=1.5)]
    tz = ZoneInfo("Asia/Dubai")  # UTC+4, so this is already 10 March locally
    (row,) = report_service.movement_report(ledger, date(2024, 3, 10), date(2024, 3, 10), tz)
    assert (row.opening_pcs, row.in_pcs) == (0, 3)
    (row,) = report_service.movement_report(ledger, date(2024, 3, 10), date(2024, 3, 10))
    assert (row.opening_pcs, row.in_pcs) == (3, 0)


def test_movement_report_frame_headings():
    rows = report_service.movement_report(LEDGER, date(2024, 3, 6), date(2024, 3, 10))
    df = report_service.movement_report_frame(rows)
    assert list(df.columns) == [
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
    csv = report_service.to_csv_bytes(df).decode("utf-8")
    assert csv.splitlines()[1].startswith("BEEF-MINCE,80,39.75,40,20.50,5,2.50,115,57.75")


# ─── expiry ───────────────────────────────────────────────────────────
def test_classify_expiry_boundaries():
    today = date(2024, 6, 15)
    assert report_service.classify_expiry("2024-06-14", today) == EXPIRY_EXPIRED
    assert report_service.classify_expiry("2024-06-15", today) == EXPIRY_SOON
    assert report_service.classify_expiry("2024-07-15", today) == EXPIRY_SOON
    assert report_service.classify_expiry("2024-07-16", today) == EXPIRY_NORMAL
    assert report_service.classify_expiry("2024-06-14T23:00:00-05:00", today) == EXPIRY_EXPIRED


def test_classify_expiry_relative_to_real_today():
    today = date.today()
    assert report_service.classify_expiry((today + timedelta(days=30)).isoformat()) == EXPIRY_SOON
    assert report_service.classify_expiry((today - timedelta(days=1)).isoformat()) == EXPIRY_EXPIRED


def test_expiry_report_and_dashboard_stats():
    today = date(2024, 6, 15)
    lots = [
        make_lot("A", pcs=1, kgs=1.0, expiry_date="2024-06-01"),
        make_lot("B", pcs=2, kgs=2.5, expiry_date="2024-06-20"),
        make_lot("C", pcs=3, kgs=3.0, expiry_date="2025-01-01"),
    ]
    report = report_service.expiry_report(lots, today)
    assert [lot.id for lot in report.expired] == ["A"]
    assert [lot.id for lot in report.expiring_soon] == ["B"]

    stats = report_service.dashboard_stats(lots, today)
    assert (stats.lot_count, stats.total_pcs, stats.total_kgs) == (3, 6, 6.5)
    assert (stats.expired_count, stats.expiring_soon_count) == (1, 1)


def test_stock_frame_includes_expiry_status():
    today = date(2024, 6, 15)
    df = report_service.stock_frame([make_lot("A", expiry_date="2024-06-01")], today)
    assert df.iloc[0]["expiry_status"] == EXPIRY_EXPIRED


# ─── search & locations ───────────────────────────────────────────────
def test_search_stock_matches_code_or_location():
    lots = [make_lot("A", "BEEF-MINCE", location="A1-01"), make_lot("B", "LAMB-LEG", location="B2-02")]
    assert [l.id for l in report_service.search_stock(lots, "lamb")] == ["B"]
    assert [l.id for l in report_service.search_stock(lots, "a1-")] == ["A"]
    assert len(report_service.search_stock(lots, "  ")) == 2


def test_location_occupancy_levels():
    lots = [make_lot(str(i), location="A1-01") for i in range(3)] + [
        make_lot("x", location="Z9-99")
    ]
    racks = report_service.location_occupancy(lots, ["A1-01", "A1-02", "B1-01"])
    assert list(racks) == ["A", "B", "Z"]
    a1, a2 = racks["A"]
    assert (a1.slot, a1.level, a1.label) == ("A1-01", "medium", "3 item(s)")
    assert (a2.level, a2.label) == ("empty", "Empty")
    assert racks["Z"][0].level == "low"


# ─── history ──────────────────────────────────────────────────────────
def test_describe_location():
    assert report_service.describe_location(_tx(TX_IN, "2024-01-01T00:00:00Z", to_location="A1-01")) == "To: A1-01"
    assert report_service.describe_location(_tx(TX_OUT, "2024-01-01T00:00:00Z", from_location="A1-01")) == "From: A1-01"
    shift = _tx(TX_SHIFT, "2024-01-01T00:00:00Z", from_location="A1-01", to_location="B1-01")
    assert report_service.describe_location(shift) == "From: A1-01 -> To: B1-01"
    status = _tx(TX_STATUS_CHANGE, "2024-01-01T00:00:00Z")
    assert report_service.describe_location(status) == "Status Update (@A1-01)"


def test_transaction_history_rows_newest_first():
    rows = report_service.transaction_history_rows(LEDGER)
    assert rows[0]["Timestamp"] == "2024-03-11 00:00:00"
    assert rows[-1]["Timestamp"] == "2024-03-01 08:00:00"
    assert rows[0]["KGS"] == "0.50"
