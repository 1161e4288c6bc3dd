PASSWORD = "secret123"


async def login(client, email, password=PASSWORD):
    return await client.post("/api/admin/auth/login", json={"email": email, "password": password})


async def test_super_admin_login_and_dashboard(client, super_admin):
    response = await login(client, "root@smartstock.rw")
    assert response.status_code == 200
    token = response.json()["access_token"]

    dashboard = await client.get("/api/admin/dashboard", headers={"Authorization": f"Bearer {token}"})
    assert dashboard.status_code == 200
    assert dashboard.json()["userStats"]["total"] == 1


async def test_login_is_case_insensitive_on_email(client, super_admin):
    response = await login(client, "Root@SmartStock.rw")
    assert response.status_code == 200


async def test_wrong_password_is_rejected(client, super_admin):
    response = await login(client, "root@smartstock.rw", "wrong-password")
    assert response.status_code == 401


async def test_unknown_email_is_rejected(client):
    response = await login(client, "nobody@smartstock.rw")
    assert response.status_code == 401


async def test_inactive_account_cannot_sign_in(client, create_account):
    await create_account("former@smartstock.rw", role="super_admin", is_active=False)
    response = await login(client, "former@smartstock.rw")
    assert response.status_code == 400


async def test_protected_routes_require_a_token(client):
    response = await client.get("/api/admin/businesses")
    assert response.status_code == 401

    response = await client.get("/api/admin/businesses", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_non_super_admin_is_signed_out(client, create_account, headers_for):
    """A staff member gets 403 once, and the same token is dead afterwards."""
    staff = await create_account("staff@kigalifresh.rw", role="staff")
    headers = headers_for(staff)

    response = await client.get("/api/admin/dashboard", headers=headers)
    assert response.status_code == 403

    response = await client.get("/api/admin/auth/me", headers=headers)
    assert response.status_code == 401


async def test_account_without_profile_is_treated_as_user(client, create_account, headers_for):
    orphan = await create_account("orphan@smartstock.rw")
    headers = headers_for(orphan)

    me = await client.get("/api/admin/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json() == {"uid": orphan.uid, "email": "orphan@smartstock.rw", "role": "user"}

    response = await client.get("/api/admin/settings", headers=headers)
    assert response.status_code == 403


async def test_session_user_merges_profile(client, super_admin, admin_headers):
    me = await client.get("/api/admin/auth/me", headers=admin_headers)
    body = me.json()

    assert body["uid"] == super_admin.uid
    assert body["role"] == "super_admin"
    assert body["fullName"] == "Root Admin"


async def test_logout_invalidates_issued_tokens(client, super_admin, admin_headers):
    response = await client.post("/api/admin/auth/logout", headers=admin_headers)
    assert response.status_code == 200

    response = await client.get("/api/admin/dashboard", headers=admin_headers)
    assert response.status_code == 401


async def test_browser_routes_redirect_to_login(client):
    response = await client.get("/")
    assert response.status_code == 307
    assert response.headers["location"].endswith("/login")

    response = await client.get("/accounts")
    assert response.status_code == 307

    response = await client.get("/api/unknown")
    assert response.status_code == 404
