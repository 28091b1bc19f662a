from coldstore.core.constants import TABLE_ITEM_CODES
from coldstore.services import item_code_service


def test_add_item_code_normalizes(client, store, mirror):
    ok, msg = item_code_service.add_item_code(store, mirror, "  prawn-tiger ")
    assert ok
    assert msg == "Item code 'PRAWN-TIGER' added."
    assert "PRAWN-TIGER" in mirror.item_codes()
    assert {"code": "PRAWN-TIGER"} in client.tables[TABLE_ITEM_CODES]


def test_add_item_code_rejects_duplicates_and_blank(store, mirror):
    assert not item_code_service.add_item_code(store, mirror, "beef-mince")[0]
    assert not item_code_service.add_item_code(store, mirror, "   ")[0]


def test_delete_item_code_requires_confirmation(client, store, mirror):
    ok, msg = item_code_service.delete_item_code(store, mirror, "BEEF-MINCE")
    assert not ok
    assert msg == "Please confirm deleting item code 'BEEF-MINCE'."
    assert "BEEF-MINCE" in mirror.item_codes()
    assert {"code": "BEEF-MINCE"} in client.tables[TABLE_ITEM_CODES]


def test_delete_item_code(client, store, mirror):
    ok, _ = item_code_service.delete_item_code(store, mirror, "BEEF-MINCE", confirmed=True)
    assert ok
    assert "BEEF-MINCE" not in mirror.item_codes()
    assert {"code": "BEEF-MINCE"} not in client.tables[TABLE_ITEM_CODES]
    assert not item_code_service.delete_item_code(store, mirror, "BEEF-MINCE", confirmed=True)[0]


def test_store_failure_is_reported(client, store, mirror):
    client.fail(TABLE_ITEM_CODES, "insert")
    ok, msg = item_code_service.add_item_code(store, mirror, "NEW")
    assert not ok
    assert msg == "Failed to add item code."
    assert "NEW" not in mirror.item_codes()
