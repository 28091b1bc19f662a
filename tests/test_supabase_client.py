import pytest

from coldstore.exceptions import StoreError
from coldstore.services import supabase_client
from coldstore.services.store import SupabaseStore


@pytest.fixture(autouse=True)
def fresh_client():
    supabase_client.reset_client()
    yield
    supabase_client.reset_client()


def test_missing_configuration_returns_none():
    assert supabase_client.get_supabase_client() is None


def test_client_is_created_once(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "url")
    monkeypatch.setenv("SUPABASE_KEY", "key")
    created = []
    monkeypatch.setattr(
        supabase_client, "create_client", lambda url, key: created.append((url, key)) or object()
    )
    first = supabase_client.get_supabase_client()
    assert supabase_client.get_supabase_client() is first
    assert created == [("url", "key")]


def test_client_creation_failure(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "url")
    monkeypatch.setenv("SUPABASE_KEY", "key")

    def bad_client(url, key):
        raise supabase_client.SupabaseException("bad key")

    monkeypatch.setattr(supabase_client, "create_client", bad_client)
    assert supabase_client.get_supabase_client() is None


def test_store_wraps_api_errors(client):
    client.fail("stock", "select")
    with pytest.raises(StoreError, match="Failed to load stock"):
        SupabaseStore(client).fetch_all("stock")


def test_store_insert_empty_list_is_noop(client):
    assert SupabaseStore(client).insert("stock", []) == []
    assert client.calls[("stock", "insert")] == 0
