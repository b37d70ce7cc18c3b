"""Integration tests — dashboard and template API round-trips against in-memory database."""

import pytest

pytestmark = pytest.mark.asyncio(loop_scope="session")

TEMPLATE = "maintenance_default"


# -----------------------------------------------------------------------
# Health and auth
# -----------------------------------------------------------------------

async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "autosave" in data and "template_cache" in data


async def test_request_id_echoed(client):
    resp = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"


async def test_dashboard_rejects_unauthenticated(client):
    resp = await client.get(f"/api/v1/dashboard/{TEMPLATE}")
    assert resp.status_code == 401
    assert resp.json()["error"] is True


async def test_dashboard_rejects_bad_token(client):
    resp = await client.get(f"/api/v1/dashboard/{TEMPLATE}", headers={"Authorization": "Bearer junk"})
    assert resp.status_code == 401


# -----------------------------------------------------------------------
# Resolution
# -----------------------------------------------------------------------

async def test_viewer_sees_asset_summary_only(client, auth_headers):
    resp = await client.get(
        f"/api/v1/dashboard/{TEMPLATE}",
        params={"viewport_width": 1400},
        headers=auth_headers("viewer-1", "viewer"),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert [w["id"] for w in data["widgets"]] == ["asset_summary"]
    assert data["breakpoint"] == "lg"
    assert data["templateId"] == TEMPLATE
    assert "permissions" not in data["widgets"][0]


async def test_small_viewport_reflows(client, admin_headers):
    resp = await client.get(
        f"/api/v1/dashboard/{TEMPLATE}",
        params={"viewport_width": 800, "theme": "dark"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["breakpoint"] == "sm"
    assert data["columns"] == 6
    assert data["themeName"] == "dark"
    positions = {w["id"]: w["position"] for w in data["widgets"]}
    assert positions["recent_notifications"] == {"x": 0, "y": 4, "w": 4, "h": 3}


async def test_unknown_template_is_404(client, admin_headers):
    resp = await client.get("/api/v1/dashboard/no_such_board", headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json()["code"] == "TEMPLATE_NOT_FOUND"


# -----------------------------------------------------------------------
# Mutations, flush, reset
# -----------------------------------------------------------------------

async def test_mutation_flush_and_reset(client, auth_headers):
    headers = auth_headers("mgr-1", "maintenance_manager")
    resp = await client.post(
        f"/api/v1/dashboard/{TEMPLATE}/mutations",
        json={"changes": [
            {"widgetId": "metrics_chart", "position": {"x": 0, "y": 20, "w": 6, "h": 4}},
            {"widgetId": "location_status", "visible": False},
        ]},
        headers=headers,
    )
    assert resp.status_code == 202
    status = resp.json()
    assert status["state"] == "pending"
    assert status["pendingWidgets"] == ["location_status", "metrics_chart"]

    resp = await client.post(f"/api/v1/dashboard/{TEMPLATE}/flush", headers=headers)
    assert resp.status_code == 200
    override = resp.json()["override"]
    assert override["overrideVersion"] == 1
    assert override["widgetVisibility"] == {"location_status": False}

    resp = await client.get(f"/api/v1/dashboard/{TEMPLATE}", headers=headers)
    ids = [w["id"] for w in resp.json()["widgets"]]
    assert "location_status" not in ids
    assert ids[-1] == "metrics_chart"

    resp = await client.delete(f"/api/v1/dashboard/{TEMPLATE}/override", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["existed"] is True

    resp = await client.get(f"/api/v1/dashboard/{TEMPLATE}", headers=headers)
    assert "location_status" in [w["id"] for w in resp.json()["widgets"]]
    assert resp.json()["overrideVersion"] == 0


async def test_mutation_unknown_widget(client, admin_headers):
    resp = await client.post(
        f"/api/v1/dashboard/{TEMPLATE}/mutations",
        json={"changes": [{"widgetId": "nonexistent_widget", "visible": False}]},
        headers=admin_headers,
    )
    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "INVALID_OVERRIDE_REFERENCE"
    assert body["widget_ids"] == ["nonexistent_widget"]
    assert body["retryable"] is False


async def test_mutation_out_of_bounds(client, admin_headers):
    resp = await client.post(
        f"/api/v1/dashboard/{TEMPLATE}/mutations",
        json={"changes": [{"widgetId": "asset_summary", "position": {"x": 10, "y": 0, "w": 6, "h": 4}}]},
        headers=admin_headers,
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "OUT_OF_BOUNDS_POSITION"


async def test_mutation_on_forbidden_widget(client, auth_headers):
    resp = await client.post(
        f"/api/v1/dashboard/{TEMPLATE}/mutations",
        json={"changes": [{"widgetId": "metrics_chart", "visible": False}]},
        headers=auth_headers("viewer-2", "viewer"),
    )
    assert resp.status_code == 403
    assert resp.json()["code"] == "WIDGET_MUTATION_NOT_ALLOWED"


async def test_empty_mutation_is_rejected(client, admin_headers):
    resp = await client.post(
        f"/api/v1/dashboard/{TEMPLATE}/mutations", json={"changes": []}, headers=admin_headers
    )
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Validation error"


# -----------------------------------------------------------------------
# Templates
# -----------------------------------------------------------------------

async def test_get_template(client, admin_headers):
    resp = await client.get(f"/api/v1/templates/{TEMPLATE}", headers=admin_headers)
    assert resp.status_code == 200
    doc = resp.json()
    assert doc["id"] == TEMPLATE
    assert doc["rowHeight"] == 60
    assert doc["breakpoints"][-1]["pixelThreshold"] == 0


async def test_publish_requires_manage_dashboards(client, auth_headers):
    resp = await client.put(
        f"/api/v1/templates/{TEMPLATE}", json={"columns": 12}, headers=auth_headers("mgr-2", "maintenance_manager")
    )
    assert resp.status_code == 403


async def test_publish_invalid_template(client, admin_headers):
    doc = (await client.get(f"/api/v1/templates/{TEMPLATE}", headers=admin_headers)).json()
    doc["breakpoints"] = list(reversed(doc["breakpoints"]))
    resp = await client.put(f"/api/v1/templates/{TEMPLATE}", json=doc, headers=admin_headers)
    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "INVALID_TEMPLATE"
    assert body["violations"]


async def test_publish_new_version(client, admin_headers):
    doc = (await client.get(f"/api/v1/templates/{TEMPLATE}", headers=admin_headers)).json()
    before = (await client.get(f"/api/v1/templates/{TEMPLATE}/versions", headers=admin_headers)).json()
    doc["rowHeight"] = 72
    resp = await client.put(f"/api/v1/templates/{TEMPLATE}", json=doc, headers=admin_headers)
    assert resp.status_code == 201
    assert resp.json()["version"] == before["latest"] + 1

    versions = (await client.get(f"/api/v1/templates/{TEMPLATE}/versions", headers=admin_headers)).json()
    assert versions["latest"] == before["latest"] + 1

    resolved = (await client.get(f"/api/v1/dashboard/{TEMPLATE}", headers=admin_headers)).json()
    assert resolved["rowHeight"] == 72
    assert resolved["templateVersion"] == versions["latest"]
