import json

import httpx
import pytest

from gasforms.core.config import Settings
from gasforms.core.errors import NetworkError, RemoteStoreError
from gasforms.services.remote_store import MemoryStore, PostgrestStore


@pytest.fixture
def settings():
    return Settings(supabase_url="https://db.example.test/", supabase_anon_key="anon-key")


def make_store(settings, handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PostgrestStore(settings, client=client, **kwargs)


# =============================================================================
# REST BACKEND
# =============================================================================

async def test_select_sends_filters_and_auth_headers(settings):
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(200, json=[{"id": "c1"}])

    store = make_store(settings, handler, access_token="user-token")
    rows = await store.select("clients", {"user_id": "u1", "archived": False, "deleted_at": None},
                              order="name")

    request = seen["request"]
    assert rows == [{"id": "c1"}]
    assert request.url.path == "/rest/v1/clients"
    assert request.url.params["user_id"] == "eq.u1"
    assert request.url.params["archived"] == "eq.false"
    assert request.url.params["deleted_at"] == "is.null"
    assert request.url.params["order"] == "name.asc"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["authorization"] == "Bearer user-token"


async def test_select_one_returns_none_for_empty_result(settings):
    store = make_store(settings, lambda request: httpx.Response(200, json=[]))
    assert await store.select_one("form_drafts", {"user_id": "u1"}) is None


async def test_upsert_sends_conflict_target_and_merge_preference(settings):
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(201, json=[json.loads(request.content)])

    store = make_store(settings, handler)
    row = {"user_id": "u1", "form_type": "invoice", "form_data": {"a": 1}}
    assert await store.upsert("form_drafts", row, ("user_id", "form_type")) == row

    request = seen["request"]
    assert request.method == "POST"
    assert request.url.params["on_conflict"] == "user_id,form_type"
    assert "resolution=merge-duplicates" in request.headers["prefer"]


async def test_update_with_no_matching_row_is_not_found(settings):
    store = make_store(settings, lambda request: httpx.Response(200, json=[]))

    with pytest.raises(RemoteStoreError) as exc_info:
        await store.update("clients", "c1", {"name": "X"}, owner_filter={"user_id": "u1"})
    assert exc_info.value.is_not_found


async def test_error_response_is_parsed(settings):
    body = {"message": "duplicate key value", "code": "23505", "details": "Key exists"}
    store = make_store(settings, lambda request: httpx.Response(409, json=body))

    with pytest.raises(RemoteStoreError) as exc_info:
        await store.insert("clients", {"name": "X"})

    error = exc_info.value
    assert str(error) == "duplicate key value"
    assert (error.status, error.code, error.details) == (409, "23505", "Key exists")


async def test_transport_failure_becomes_network_error(settings):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    store = make_store(settings, handler)
    with pytest.raises(NetworkError):
        await store.select("clients")


async def test_delete_where_requires_filters(settings):
    store = make_store(settings, lambda request: httpx.Response(204))
    with pytest.raises(ValueError):
        await store.delete_where("form_drafts", {})
    await store.delete_where("form_drafts", {"user_id": "u1"})


# =============================================================================
# IN-MEMORY BACKEND
# =============================================================================

async def test_memory_store_assigns_ids_and_timestamps():
    store = MemoryStore()
    row = await store.insert("clients", {"name": "Alpha", "id": None})

    assert row["id"]
    assert row["created_at"] == row["updated_at"]


async def test_memory_store_returns_copies():
    store = MemoryStore()
    row = await store.insert("clients", {"name": "Alpha", "tags": []})
    row["tags"].append("mutated")

    assert store.rows("clients")[0]["tags"] == []


async def test_memory_store_update_scoped_by_owner():
    store = MemoryStore()
    row = await store.insert("clients", {"name": "Alpha", "user_id": "u1"})

    with pytest.raises(RemoteStoreError):
        await store.update("clients", row["id"], {"name": "X"}, owner_filter={"user_id": "u2"})

    updated = await store.update("clients", row["id"], {"name": "A"}, owner_filter={"user_id": "u1"})
    assert updated["name"] == "A"


async def test_memory_store_ordering_and_projection():
    store = MemoryStore()
    for name in ("Bravo", "Alpha", "Charlie"):
        await store.insert("clients", {"name": name, "user_id": "u1"})

    rows = await store.select("clients", {"user_id": "u1"}, columns="name", order="name.desc")
    assert rows == [{"name": "Charlie"}, {"name": "Bravo"}, {"name": "Alpha"}]


async def test_memory_store_upsert_merges_on_conflict_keys():
    store = MemoryStore()
    key = ("user_id", "form_type")
    first = await store.upsert("form_drafts", {"user_id": "u1", "form_type": "invoice",
                                               "form_data": {"a": 1}}, key)
    second = await store.upsert("form_drafts", {"user_id": "u1", "form_type": "invoice",
                                                "form_data": {"a": 2}}, key)

    assert first["id"] == second["id"]
    assert second["form_data"] == {"a": 2}
    assert len(store.rows("form_drafts")) == 1
