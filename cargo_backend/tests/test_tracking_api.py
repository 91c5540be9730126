"""
Integration tests for the tracking HTTP API.

Exercises the endpoints end to end through the ASGI app: bearer tokens,
error envelopes, routing of the static paths and the upload flow.
"""

from io import BytesIO

import pytest
from openpyxl import Workbook

from cargo_backend.app.core.config import settings

BASE = "/v1/tracking"


def xlsx(codes) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["Tracking code"])
    for code in codes:
        sheet.append([code])
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


async def register(client, auth_headers, code, owner="customer", description="Parcel"):
    response = await client.post(
        f"{BASE}/", json={"tracking_code": code, "description": description}, headers=auth_headers(owner)
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health_and_root(client):
    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    assert health.json()["redis"] == "up"
    assert "X-Correlation-ID" in health.headers

    root = await client.get("/")
    assert root.json()["docs"] == "/docs"


@pytest.mark.asyncio
async def test_invalid_token_rejected(client, users):
    response = await client.get(f"{BASE}/my", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_AUTH_001"


@pytest.mark.asyncio
async def test_register_and_duplicate(client, auth_headers):
    item = await register(client, auth_headers, "KH-7001")
    assert item["current_status"] == "REGISTERED"
    assert item["is_notified"] is False

    duplicate = await client.post(
        f"{BASE}/", json={"tracking_code": "KH-7001", "description": "again"}, headers=auth_headers("other_customer")
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["error_code"] == "ERR_CONFLICT_001"


@pytest.mark.asyncio
async def test_register_validation_error(client, auth_headers):
    response = await client.post(f"{BASE}/", json={"tracking_code": ""}, headers=auth_headers("customer"))
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_register_blank_code_rejected(client, auth_headers):
    response = await client.post(
        f"{BASE}/", json={"tracking_code": "   ", "description": "Parcel"}, headers=auth_headers("customer")
    )
    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_BAD_REQUEST_001"

    mine = await client.get(f"{BASE}/my", headers=auth_headers("customer"))
    assert mine.json()["total"] == 0


@pytest.mark.asyncio
async def test_status_update_flow(client, auth_headers):
    item = await register(client, auth_headers, "KH-7002")

    forbidden = await client.patch(
        f"{BASE}/{item['id']}/status", json={"status": "ARRIVED_BRANCH"}, headers=auth_headers("admin")
    )
    assert forbidden.status_code == 403
    assert forbidden.json()["error_code"] == "ERR_PERM_001"

    ok = await client.patch(
        f"{BASE}/{item['id']}/status", json={"status": "READY_FOR_PICKUP", "weight": 1.2},
        headers=auth_headers("admin")
    )
    assert ok.status_code == 200
    assert ok.json()["current_status"] == "READY_FOR_PICKUP"
    assert ok.json()["weight"] == 1.2

    backward = await client.patch(
        f"{BASE}/{item['id']}/status", json={"status": "READY_FOR_PICKUP"}, headers=auth_headers("superadmin")
    )
    assert backward.status_code == 400
    assert backward.json()["error_code"] == "ERR_TRANSITION_001"
    assert backward.json()["details"]["current_status"] == "READY_FOR_PICKUP"

    other_branch = await client.get(f"{BASE}/{item['id']}", headers=auth_headers("other_admin"))
    assert other_branch.status_code == 404

    detail = await client.get(f"{BASE}/{item['id']}", headers=auth_headers("admin"))
    assert detail.status_code == 200
    assert [h["new_status"] for h in detail.json()["history"]] == ["REGISTERED", "READY_FOR_PICKUP"]

    history = await client.get(f"{BASE}/{item['id']}/history", headers=auth_headers("superadmin"))
    assert len(history.json()) == 2


@pytest.mark.asyncio
async def test_quick_update_and_dashboard(client, auth_headers):
    await register(client, auth_headers, "KH-7003")

    scanned = await client.patch(
        f"{BASE}/quick-update", json={"tracking_code": "KH-7003", "weight": 0.8}, headers=auth_headers("admin")
    )
    assert scanned.status_code == 200
    assert scanned.json()["current_status"] == "ARRIVED_BRANCH"

    dashboard = await client.get(f"{BASE}/dashboard", headers=auth_headers("admin"))
    assert dashboard.json() == [{"status": "ARRIVED_BRANCH", "count": 1}]

    listing = await client.get(f"{BASE}/", params={"status": "ARRIVED_BRANCH"}, headers=auth_headers("admin"))
    assert listing.json()["total"] == 1

    customer_list = await client.get(f"{BASE}/", headers=auth_headers("customer"))
    assert customer_list.status_code == 403


@pytest.mark.asyncio
async def test_owner_edit_archive_and_search(client, auth_headers):
    item = await register(client, auth_headers, "KH-7004")

    renamed = await client.patch(
        f"{BASE}/{item['id']}", json={"tracking_code": "KH-7005"}, headers=auth_headers("customer")
    )
    assert renamed.json()["tracking_code"] == "KH-7005"

    found = await client.get(f"{BASE}/search", params={"tracking_code": "KH-7005"}, headers=auth_headers("other_customer"))
    assert found.status_code == 200

    not_owner = await client.delete(f"{BASE}/{item['id']}", headers=auth_headers("other_customer"))
    assert not_owner.status_code == 404

    deleted = await client.delete(f"{BASE}/{item['id']}", headers=auth_headers("customer"))
    assert deleted.json()["deleted_at"] is not None

    mine = await client.get(f"{BASE}/my", headers=auth_headers("customer"))
    archive = await client.get(f"{BASE}/my/archive", headers=auth_headers("customer"))
    assert mine.json()["total"] == 0
    assert archive.json()["items"][0]["tracking_code"] == "KH-7005"


@pytest.mark.asyncio
async def test_cancel_requires_superadmin(client, auth_headers):
    item = await register(client, auth_headers, "KH-7006")

    denied = await client.patch(f"{BASE}/{item['id']}/cancel", json={}, headers=auth_headers("admin"))
    assert denied.status_code == 403

    cancelled = await client.patch(
        f"{BASE}/{item['id']}/cancel", json={"note": "duplicate order"}, headers=auth_headers("superadmin")
    )
    assert cancelled.json()["current_status"] == "CANCELLED"


@pytest.mark.asyncio
async def test_spreadsheet_import_flow(client, auth_headers):
    await register(client, auth_headers, "KH-7010")

    denied = await client.post(
        f"{BASE}/import",
        files={"file": ("arrivals.xlsx", xlsx(["KH-7010"]), "application/octet-stream")},
        data={"target_status": "ARRIVED_ORIGIN_WAREHOUSE"},
        headers=auth_headers("admin"),
    )
    assert denied.status_code == 403

    response = await client.post(
        f"{BASE}/import",
        files={"file": ("arrivals.xlsx", xlsx(["KH-7010", "KH-7010", "KH-7011"]), "application/octet-stream")},
        data={"target_status": "ARRIVED_ORIGIN_WAREHOUSE"},
        headers=auth_headers("superadmin"),
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["total_rows"] == 2
    assert body["success"] == ["KH-7010", "KH-7011"]

    logs = await client.get(f"{BASE}/import/logs", headers=auth_headers("superadmin"))
    assert logs.json()["logs"][0]["file_name"] == "arrivals.xlsx"

    manifest = await client.get(f"{BASE}/master/list", headers=auth_headers("admin"))
    assert manifest.json()["total"] == 2

    search = await client.get(f"{BASE}/master/search", params={"tracking_code": "KH-7011"}, headers=auth_headers("admin"))
    assert search.json()[0]["origin_arrival_date"] is not None


@pytest.mark.asyncio
async def test_unreadable_upload_is_bad_request(client, auth_headers):
    response = await client.post(
        f"{BASE}/import",
        files={"file": ("arrivals.xlsx", b"plain text", "application/octet-stream")},
        data={"target_status": "ARRIVED_BRANCH"},
        headers=auth_headers("superadmin"),
    )
    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_BAD_REQUEST_001"


@pytest.mark.asyncio
async def test_master_status_and_sync(client, auth_headers):
    await register(client, auth_headers, "KH-7020")

    updated = await client.post(
        f"{BASE}/master/status", json={"tracking_code": "KH-7020", "status": "PICKED_UP"}, headers=auth_headers("admin")
    )
    assert updated.json() == {"tracking_code": "KH-7020", "items_synced": 1}

    denied = await client.post(f"{BASE}/sync", headers=auth_headers("admin"))
    assert denied.status_code == 403

    synced = await client.post(f"{BASE}/sync", headers=auth_headers("superadmin"))
    assert synced.json()["entries_scanned"] == 1


@pytest.mark.asyncio
async def test_notify_arrivals_endpoint(client, auth_headers, sink, branches, monkeypatch):
    monkeypatch.setattr(settings, "telegram_chat_id", "-100777")
    await register(client, auth_headers, "KH-7030")
    await client.patch(f"{BASE}/quick-update", json={"tracking_code": "KH-7030"}, headers=auth_headers("admin"))

    response = await client.post(f"{BASE}/notify-arrivals", headers=auth_headers("admin"))

    assert response.json() == {"users_notified": 1, "items_notified": 1}
    assert sink.sent[0]["channel_id"] == "-100777"
    assert sink.sent[0]["thread_id"] == branches["almaty"].telegram_thread_id

    superadmin_without_branch = await client.post(f"{BASE}/notify-arrivals", headers=auth_headers("superadmin"))
    assert superadmin_without_branch.status_code == 400

    explicit = await client.post(
        f"{BASE}/notify-arrivals", params={"branch_id": branches["almaty"].id}, headers=auth_headers("superadmin")
    )
    assert explicit.json() == {"users_notified": 0, "items_notified": 0}
