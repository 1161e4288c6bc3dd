import httpx
import pytest

from federated_auth import (
    FederatedAuthError,
    GoogleIdentityVerifier,
    IdentityProviderUnavailable,
    get_identity_verifier,
)
from main import app

CLIENT_ID = "smartdash-web.apps.googleusercontent.com"


def google_claims(**overrides):
    claims = {
        "iss": "https://accounts.google.com",
        "aud": CLIENT_ID,
        "sub": "google-subject-1",
        "email": "root@smartstock.rw",
        "email_verified": "true",
    }
    claims.update(overrides)
    return claims


def verifier_returning(status_code, payload=None):
    def handler(request):
        assert request.url.path == "/tokeninfo"
        return httpx.Response(status_code, json=payload or {})

    return GoogleIdentityVerifier(client_id=CLIENT_ID, transport=httpx.MockTransport(handler))


@pytest.fixture
def google():
    """Override the verifier for endpoint tests: google(claims) or google(status=401)."""

    def _install(claims=None, status=200):
        app.dependency_overrides[get_identity_verifier] = lambda: verifier_returning(status, claims)

    yield _install
    app.dependency_overrides.pop(get_identity_verifier, None)


async def test_verify_accepts_valid_token():
    claims = await verifier_returning(200, google_claims()).verify("token")
    assert claims["sub"] == "google-subject-1"


@pytest.mark.parametrize(
    "overrides",
    [
        {"aud": "someone-else"},
        {"iss": "https://evil.example"},
        {"email_verified": "false"},
        {"sub": ""},
    ],
)
async def test_verify_rejects_bad_claims(overrides):
    with pytest.raises(FederatedAuthError):
        await verifier_returning(200, google_claims(**overrides)).verify("token")


async def test_verify_refuses_without_client_id():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=google_claims(aud="some-other-app.apps.googleusercontent.com"))

    verifier = GoogleIdentityVerifier(client_id="", transport=httpx.MockTransport(handler))
    with pytest.raises(FederatedAuthError, match="not configured"):
        await verifier.verify("token")
    assert calls == []


async def test_google_login_unconfigured(client, super_admin):
    app.dependency_overrides[get_identity_verifier] = lambda: GoogleIdentityVerifier(client_id="")
    try:
        response = await client.post("/api/admin/auth/google", json={"id_token": "token"})
    finally:
        app.dependency_overrides.pop(get_identity_verifier, None)

    assert response.status_code == 401


async def test_verify_rejects_invalid_token():
    with pytest.raises(FederatedAuthError):
        await verifier_returning(400, {"error": "invalid_token"}).verify("token")


async def test_verify_reports_unreachable_provider():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    verifier = GoogleIdentityVerifier(client_id=CLIENT_ID, transport=httpx.MockTransport(handler))
    with pytest.raises(IdentityProviderUnavailable):
        await verifier.verify("token")


async def test_google_login_links_existing_account(client, super_admin, google):
    google(google_claims())

    response = await client.post("/api/admin/auth/google", json={"id_token": "token"})
    assert response.status_code == 200
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}

    me = await client.get("/api/admin/auth/me", headers=headers)
    assert me.json()["uid"] == super_admin.uid
    assert me.json()["role"] == "super_admin"


async def test_google_login_creates_account_without_admin_rights(client, google):
    google(google_claims(email="visitor@gmail.com", sub="google-subject-2"))

    response = await client.post("/api/admin/auth/google", json={"id_token": "token"})
    assert response.status_code == 200
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}

    me = await client.get("/api/admin/auth/me", headers=headers)
    assert me.json()["role"] == "user"

    response = await client.get("/api/admin/dashboard", headers=headers)
    assert response.status_code == 403


async def test_google_login_rejected_token(client, google):
    google({"error": "invalid_token"}, status=400)

    response = await client.post("/api/admin/auth/google", json={"id_token": "token"})
    assert response.status_code == 401
