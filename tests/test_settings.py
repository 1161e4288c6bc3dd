DEFAULTS = {
    "pricing": {"month": 0, "year": 0, "forever": 0},
    "enableFreePlan": True,
    "limits": {"maxProducts": 50, "maxUsers": 2, "maxBranches": 1},
    "maintenanceMode": False,
}


async def test_defaults_when_settings_document_is_absent(client, admin_headers):
    response = await client.get("/api/admin/settings", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == DEFAULTS


async def test_save_overwrites_and_round_trips(client, admin_headers, read_doc):
    new_settings = {
        "pricing": {"month": 15000, "year": 150000, "forever": 500000},
        "enableFreePlan": False,
        "limits": {"maxProducts": 200, "maxUsers": 5, "maxBranches": 3},
        "maintenanceMode": True,
    }

    response = await client.put("/api/admin/settings", json=new_settings, headers=admin_headers)
    assert response.status_code == 200

    response = await client.get("/api/admin/settings", headers=admin_headers)
    assert response.json() == new_settings

    stored = await read_doc("config", "appSettings")
    assert stored["limits"]["maxUsers"] == 5


async def test_partially_stored_settings_fall_back_to_defaults(client, admin_headers, seed):
    await seed("config", "appSettings", {"maintenanceMode": True})

    response = await client.get("/api/admin/settings", headers=admin_headers)
    body = response.json()
    assert body["maintenanceMode"] is True
    assert body["limits"] == DEFAULTS["limits"]


async def test_saving_settings_is_audited(client, admin_headers):
    await client.put("/api/admin/settings", json=DEFAULTS, headers=admin_headers)

    response = await client.get("/api/admin/activity-logs", headers=admin_headers)
    items = response.json()["items"]
    assert [item["action"] for item in items] == ["update_settings"]
    assert items[0]["targetType"] == "settings"
