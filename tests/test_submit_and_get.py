import io

import pytest
from PIL import Image

from smartcity import lifecycle
from smartcity.errors import Internal
from smartcity.models import Role

from helpers import auth_headers, file_case


def _image_bytes(fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (32, 32), color=(200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


def _png_bytes() -> bytes:
    return _image_bytes("PNG")


VALID_FORM = {"title": "t", "description": "d", "category": "c", "latitude": "1", "longitude": "2"}


@pytest.mark.asyncio
async def test_citizen_files_pending_case_and_reads_it_back(client, make_user):
    citizen, token = await make_user("reporter")

    created = await file_case(client, token, location="")
    assert created["userId"] == citizen.id
    assert created["status"] == "pending"
    assert created["assignedTo"] is None
    assert created["assignedBy"] is None
    assert created["resolvedAt"] is None
    assert created["version"] == 1
    # Location falls back to the coordinates
    assert created["location"] == "23.0225, 72.5714"

    r = await client.get(f"/api/v1/cases/{created['id']}", headers=auth_headers(token))
    assert r.status_code == 200
    assert r.json()["title"] == "Pothole on ring road"
    assert r.json()["priority"] == "high"


@pytest.mark.asyncio
async def test_filing_a_case_awards_points(client, make_user):
    _, token = await make_user("pointy")
    await file_case(client, token)
    await file_case(client, token)

    me = await client.get("/api/v1/user/me", headers=auth_headers(token))
    assert me.json()["points"] == 20


@pytest.mark.asyncio
async def test_missing_required_fields_are_listed(client, make_user):
    _, token = await make_user("sloppy")
    r = await client.post(
        "/api/v1/cases",
        data={"title": "  ", "description": "something", "category": "roads"},
        headers=auth_headers(token),
    )
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "invalid_request"
    assert set(body["errors"]["missingFields"]) == {"title", "latitude", "longitude"}


@pytest.mark.asyncio
async def test_invalid_priority_and_coordinates(client, make_user):
    _, token = await make_user("badinput")
    base = {"title": "t", "description": "d", "category": "c", "latitude": "23.0", "longitude": "72.5"}

    r = await client.post("/api/v1/cases", data=dict(base, priority="whenever"), headers=auth_headers(token))
    assert r.status_code == 400

    r = await client.post("/api/v1/cases", data=dict(base, latitude="north"), headers=auth_headers(token))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_only_citizens_file_cases(client, make_user):
    admin, admin_token = await make_user("cityadmin", role=Role.ADMIN)
    _, emp_token = await make_user("fieldworker", role=Role.EMPLOYEE, admin=admin)

    for token in (admin_token, emp_token):
        r = await client.post(
            "/api/v1/cases",
            data={"title": "t", "description": "d", "category": "c", "latitude": "1", "longitude": "2"},
            headers=auth_headers(token),
        )
        assert r.status_code == 403
        assert r.json()["error"] == "forbidden"


@pytest.mark.asyncio
async def test_case_with_image_is_stored_and_served(client, make_user, settings):
    _, token = await make_user("photographer")
    r = await client.post(
        "/api/v1/cases",
        data={"title": "Broken light", "description": "Street light out", "category": "lighting",
              "latitude": "23.03", "longitude": "72.58"},
        files={"image": ("light.png", _png_bytes(), "image/png")},
        headers=auth_headers(token),
    )
    assert r.status_code == 201, r.text
    image_url = r.json()["imageUrl"]
    assert image_url.startswith("/uploads/") and image_url.endswith(".png")

    stored = settings.upload_dir / image_url.rsplit("/", 1)[1]
    assert stored.exists()

    served = await client.get(image_url)
    assert served.status_code == 200


@pytest.mark.asyncio
async def test_non_image_upload_is_rejected(client, make_user):
    _, token = await make_user("trickster")
    r = await client.post(
        "/api/v1/cases",
        data={"title": "t", "description": "d", "category": "c", "latitude": "1", "longitude": "2"},
        files={"image": ("notes.png", b"definitely not a png", "image/png")},
        headers=auth_headers(token),
    )
    assert r.status_code == 400

    listing = await client.get("/api/v1/cases", headers=auth_headers(token))
    assert listing.json()["total"] == 0


@pytest.mark.asyncio
async def test_listing_filters_and_search(client, make_user):
    _, token = await make_user("filterer")
    await file_case(client, token, title="Garbage pile", category="sanitation", priority="low")
    await file_case(client, token, title="Water leak", category="water", priority="urgent",
                    description="Pipe burst near school")
    await file_case(client, token, title="Pothole", category="roads")

    headers = auth_headers(token)
    r = await client.get("/api/v1/cases", params={"category": "WATER"}, headers=headers)
    assert [c["title"] for c in r.json()["items"]] == ["Water leak"]

    r = await client.get("/api/v1/cases", params={"priority": "low"}, headers=headers)
    assert r.json()["total"] == 1

    r = await client.get("/api/v1/cases", params={"q": "school"}, headers=headers)
    assert [c["title"] for c in r.json()["items"]] == ["Water leak"]

    r = await client.get("/api/v1/cases", params={"status": "pending", "pageSize": 2}, headers=headers)
    body = r.json()
    assert body["total"] == 3
    assert len(body["items"]) == 2
    assert body["totalPages"] == 2

    r = await client.get("/api/v1/cases", params={"status": "closed"}, headers=headers)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_map_markers(client, make_user):
    _, token = await make_user("mapper")
    created = await file_case(client, token)

    r = await client.get("/api/v1/cases/map", headers=auth_headers(token))
    assert r.status_code == 200
    markers = r.json()
    assert markers == [
        {
            "id": created["id"],
            "title": created["title"],
            "category": created["category"],
            "status": "pending",
            "priority": "high",
            "latitude": "23.0225",
            "longitude": "72.5714",
        }
    ]


@pytest.mark.asyncio
async def test_invalid_form_does_not_store_the_image(client, make_user, settings):
    _, token = await make_user("halfdone")
    r = await client.post(
        "/api/v1/cases",
        data=dict(VALID_FORM, title=""),
        files={"image": ("photo.png", _png_bytes(), "image/png")},
        headers=auth_headers(token),
    )
    assert r.status_code == 400
    assert list(settings.upload_dir.iterdir()) == []

    r = await client.post(
        "/api/v1/cases",
        data=dict(VALID_FORM, priority="whenever"),
        files={"image": ("photo.png", _png_bytes(), "image/png")},
        headers=auth_headers(token),
    )
    assert r.status_code == 400
    assert list(settings.upload_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_image_is_removed_when_filing_fails(client, make_user, settings, monkeypatch):
    _, token = await make_user("unlucky")

    async def broken_file_case(*args, **kwargs):
        raise Internal("database unavailable")

    monkeypatch.setattr(lifecycle, "file_case", broken_file_case)
    r = await client.post(
        "/api/v1/cases",
        data=VALID_FORM,
        files={"image": ("photo.png", _png_bytes(), "image/png")},
        headers=auth_headers(token),
    )
    assert r.status_code == 500
    assert r.json()["error"] == "internal"
    assert list(settings.upload_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_oversize_image_is_rejected(client, make_user, settings):
    _, token = await make_user("bigfile")
    oversize = _png_bytes() + b"\0" * settings.max_upload_bytes
    r = await client.post(
        "/api/v1/cases",
        data=VALID_FORM,
        files={"image": ("huge.png", oversize, "image/png")},
        headers=auth_headers(token),
    )
    assert r.status_code == 400
    assert "exceeds" in r.json()["detail"]
    assert list(settings.upload_dir.iterdir()) == []

    listing = await client.get("/api/v1/cases", headers=auth_headers(token))
    assert listing.json()["total"] == 0


@pytest.mark.asyncio
async def test_disallowed_image_format_is_rejected(client, make_user, settings):
    _, token = await make_user("bitmap")
    r = await client.post(
        "/api/v1/cases",
        data=VALID_FORM,
        files={"image": ("scan.bmp", _image_bytes("BMP"), "image/bmp")},
        headers=auth_headers(token),
    )
    assert r.status_code == 400
    assert "not allowed" in r.json()["detail"]
    assert list(settings.upload_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_list_and_map_validate_filters(client, make_user):
    _, token = await make_user("strict")
    headers = auth_headers(token)
    await file_case(client, token, priority="low")

    for path in ("/api/v1/cases", "/api/v1/cases/map"):
        r = await client.get(path, params={"status": "closed"}, headers=headers)
        assert r.status_code == 400, path
        r = await client.get(path, params={"priority": "whenever"}, headers=headers)
        assert r.status_code == 400, path

    r = await client.get("/api/v1/cases/map", params={"priority": "high"}, headers=headers)
    assert r.json() == []
    r = await client.get("/api/v1/cases/map", params={"priority": "low"}, headers=headers)
    assert len(r.json()) == 1
