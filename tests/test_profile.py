import httpx
import pytest

from cloudinary_service import (
    CloudinaryService,
    InvalidImageError,
    UploadError,
    get_cloudinary_service,
    validate_image,
)
from main import app

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def cloudinary_with(handler):
    return CloudinaryService(cloud_name="smartstock-demo", transport=httpx.MockTransport(handler))


@pytest.fixture
def uploads():
    """Route profile uploads to a mocked CDN; yields the list of captured requests."""
    captured = []

    def handler(request):
        captured.append(request)
        return httpx.Response(200, json={"secure_url": "https://res.cloudinary.com/smartstock-demo/image/upload/avatar.png"})

    app.dependency_overrides[get_cloudinary_service] = lambda: cloudinary_with(handler)
    yield captured
    app.dependency_overrides.pop(get_cloudinary_service, None)


def test_validate_image():
    validate_image("avatar.PNG", "image/png", 1024)

    with pytest.raises(InvalidImageError):
        validate_image("avatar.exe", "image/png", 1024)
    with pytest.raises(InvalidImageError):
        validate_image("avatar.png", "application/octet-stream", 1024)
    with pytest.raises(InvalidImageError):
        validate_image("avatar.png", "image/png", 6 * 1024 * 1024)


async def test_upload_posts_unsigned_preset():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = request.content
        return httpx.Response(200, json={"secure_url": "https://cdn.example/avatar.png"})

    url = await cloudinary_with(handler).upload_image(PNG_BYTES, "avatar.png", "image/png")

    assert url == "https://cdn.example/avatar.png"
    assert seen["url"] == "https://api.cloudinary.com/v1_1/smartstock-demo/image/upload"
    assert b'name="upload_preset"' in seen["body"]
    assert b"smartstock/users" in seen["body"]


async def test_upload_errors():
    def rejecting(request):
        return httpx.Response(400, json={"error": {"message": "Upload preset not found"}})

    with pytest.raises(UploadError, match="Upload preset not found"):
        await cloudinary_with(rejecting).upload_image(PNG_BYTES, "avatar.png", "image/png")

    with pytest.raises(UploadError):
        await CloudinaryService(cloud_name="").upload_image(PNG_BYTES, "avatar.png", "image/png")


async def test_profile_includes_platform_summary(client, admin_headers, super_admin):
    response = await client.get("/api/admin/profile", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()

    assert body["user"]["uid"] == super_admin.uid
    assert body["user"]["fullName"] == "Root Admin"
    assert body["summary"]["userStats"]["total"] == 1


async def test_profile_image_upload(client, admin_headers, super_admin, uploads, read_doc):
    response = await client.post(
        "/api/admin/profile/image",
        files={"file": ("avatar.png", PNG_BYTES, "image/png")},
        headers=admin_headers,
    )
    assert response.status_code == 200
    image_url = "https://res.cloudinary.com/smartstock-demo/image/upload/avatar.png"
    assert response.json()["profileImage"] == image_url
    assert len(uploads) == 1

    profile = await read_doc("users", super_admin.uid)
    assert profile["profileImage"] == image_url


async def test_profile_image_rejects_non_images(client, admin_headers, uploads):
    response = await client.post(
        "/api/admin/profile/image",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert uploads == []


async def test_profile_image_cdn_failure(client, admin_headers):
    def failing(request):
        return httpx.Response(500, json={"error": {"message": "Internal error"}})

    app.dependency_overrides[get_cloudinary_service] = lambda: cloudinary_with(failing)
    try:
        response = await client.post(
            "/api/admin/profile/image",
            files={"file": ("avatar.png", PNG_BYTES, "image/png")},
            headers=admin_headers,
        )
    finally:
        app.dependency_overrides.pop(get_cloudinary_service, None)

    assert response.status_code == 502


async def test_password_change(client, admin_headers):
    response = await client.post(
        "/api/admin/profile/password",
        json={"new_password": "newsecret", "confirm_password": "different"},
        headers=admin_headers,
    )
    assert response.status_code == 400

    response = await client.post(
        "/api/admin/profile/password",
        json={"new_password": "short", "confirm_password": "short"},
        headers=admin_headers,
    )
    assert response.status_code == 400

    response = await client.post(
        "/api/admin/profile/password",
        json={"new_password": "newsecret", "confirm_password": "newsecret"},
        headers=admin_headers,
    )
    assert response.status_code == 200

    response = await client.post(
        "/api/admin/auth/login", json={"email": "root@smartstock.rw", "password": "newsecret"}
    )
    assert response.status_code == 200

    response = await client.post(
        "/api/admin/auth/login", json={"email": "root@smartstock.rw", "password": "secret123"}
    )
    assert response.status_code == 401
