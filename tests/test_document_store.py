import pytest

from document_store import DocumentNotFound, DocumentStore, get_path, set_path


def test_set_path_creates_nested_maps():
    data = {"subscription": "legacy"}
    set_path(data, "subscription.plan", "month")
    set_path(data, "limits.max.users", 3)

    assert data == {"subscription": {"plan": "month"}, "limits": {"max": {"users": 3}}}
    assert get_path(data, "limits.max.users") == 3
    assert get_path(data, "limits.missing", "n/a") == "n/a"


async def test_add_and_get(db):
    store = DocumentStore(db)
    doc_id = await store.add("businesses", {"businessName": "Kigali Fresh"})

    doc = await store.get("businesses", doc_id)
    assert doc == {"id": doc_id, "businessName": "Kigali Fresh"}
    assert await store.get("businesses", "missing") is None
    assert await store.get("businesses", None) is None


async def test_set_overwrites_wholesale(db):
    store = DocumentStore(db)
    await store.set("config", "appSettings", {"enableFreePlan": True, "maintenanceMode": True})
    await store.set("config", "appSettings", {"enableFreePlan": False})

    assert await store.get("config", "appSettings") == {"id": "appSettings", "enableFreePlan": False}


async def test_update_merges_dotted_paths(db):
    store = DocumentStore(db)
    await store.set("businesses", "b1", {
        "businessName": "Kigali Fresh",
        "subscription": {"plan": "free", "endDate": "2024-01-01"},
    })

    updated = await store.update("businesses", "b1", {
        "subscription.plan": "month",
        "subscription.status": "active",
    })

    assert updated["subscription"] == {"plan": "month", "endDate": "2024-01-01", "status": "active"}
    stored = await store.get("businesses", "b1")
    assert stored["subscription"]["plan"] == "month"
    assert stored["businessName"] == "Kigali Fresh"


async def test_update_missing_document_raises(db):
    store = DocumentStore(db)
    with pytest.raises(DocumentNotFound):
        await store.update("payments", "nope", {"status": "approved"})


async def test_delete(db):
    store = DocumentStore(db)
    await store.set("branches", "br1", {"branchName": "Main"})

    assert await store.delete("branches", "br1") is True
    assert await store.delete("branches", "br1") is False
    assert await store.count("branches") == 0


async def test_collections_are_isolated(db):
    store = DocumentStore(db)
    await store.set("users", "same-id", {"role": "staff"})
    await store.set("branches", "same-id", {"branchName": "Main"})

    assert (await store.get("users", "same-id"))["role"] == "staff"
    assert len(await store.list("users")) == 1


async def test_query_filters_and_orders(db):
    store = DocumentStore(db)
    await store.set("payments", "p1", {"businessId": "b1", "createdAt": "2024-01-01T00:00:00Z"})
    await store.set("payments", "p2", {"businessId": "b1", "createdAt": "2024-03-01T00:00:00Z"})
    await store.set("payments", "p3", {"businessId": "b2", "createdAt": "2024-02-01T00:00:00Z"})
    await store.set("payments", "p4", {"businessId": "b1"})

    scoped = await store.query("payments", where={"businessId": "b1"})
    assert sorted(doc["id"] for doc in scoped) == ["p1", "p2", "p4"]

    # Ordering drops documents without the field
    ordered = await store.query("payments", order_by="createdAt", descending=True)
    assert [doc["id"] for doc in ordered] == ["p2", "p3", "p1"]
