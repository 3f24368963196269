"""
Component Tests for the Admin Service HTTP API

FastAPI TestClient with services wired to the in-memory mocks through
dependency overrides. The lifespan is not run.
"""

import pytest
from fastapi.testclient import TestClient

from microservices.admin_service import main
from microservices.admin_service.protocols import ValidationError
from microservices.admin_service.routes_registry import ROUTES
from microservices.admin_service.settings_service import SYNC_FAILED_WARNING


@pytest.fixture
def client(broadcast_service, settings_service):
    main.app.dependency_overrides[main.get_broadcast_service] = lambda: broadcast_service
    main.app.dependency_overrides[main.get_settings_service] = lambda: settings_service
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


class TestHealthEndpoints:
    """Health checks without an initialized factory"""

    def test_health(self, client, assertions):
        response = client.get("/health")

        assertions.assert_http_success(response)
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "admin_service"

    def test_readiness_without_factory(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["ready"] is False

    def test_liveness(self, client):
        response = client.get("/health/live")

        assert response.json()["alive"] is True

    def test_services_unavailable_without_factory(self):
        response = TestClient(main.app).get("/api/v1/admin/settings")

        assert response.status_code == 503


class TestBroadcastEndpoints:
    """Broadcast create/list/get/send"""

    def test_create_returns_201(self, client, mock_repository, prefs, assertions):
        mock_repository.add_user("u1", role="admin", preferences=prefs(True), tokens=["tok_u1"])

        response = client.post(
            "/api/v1/admin/notifications",
            json={
                "title": "Admins only",
                "body": "Dashboard maintenance tonight",
                "category": "announcement",
                "targetAudience": {"type": "role", "filters": {"role": "admin"}},
            },
            headers={"X-User-ID": "admin_1"},
        )

        assertions.assert_http_success(response, 201)
        data = response.json()
        assertions.assert_has_fields(data, ["success", "notificationId", "status", "stats"])
        assert data["status"] == "sent"
        assert data["stats"]["totalRecipients"] == 1
        assert data["stats"]["delivered"] == 1
        assert mock_repository.broadcasts[data["notificationId"]].sent_by == "admin_1"

    def test_create_reports_draft_when_send_raises(self, client, mock_repository, prefs):
        # Given: In-app record writes fail mid-send
        mock_repository.add_user("u1", preferences=prefs(True), tokens=["tok_u1"])
        mock_repository.fail("commit_notification_records", RuntimeError("write quota exceeded"))

        # When: Creating an immediate broadcast
        response = client.post(
            "/api/v1/admin/notifications",
            json={"title": "t", "body": "b", "category": "promo", "targetAudience": {"type": "all"}},
        )

        # Then: The draft id and counts come back so the draft can be re-sent
        assert response.status_code == 201
        data = response.json()
        assert data["success"] is False
        assert data["status"] == "draft"
        assert data["message"] == "write quota exceeded"
        assert data["stats"]["totalRecipients"] == 1
        assert mock_repository.broadcasts[data["notificationId"]].status.value == "draft"

    def test_create_rejects_missing_title(self, client):
        response = client.post(
            "/api/v1/admin/notifications",
            json={"body": "No title", "category": "promo", "targetAudience": {"type": "all"}},
        )

        assert response.status_code == 422

    def test_create_rejects_unknown_category(self, client):
        response = client.post(
            "/api/v1/admin/notifications",
            json={"title": "t", "body": "b", "category": "spam", "targetAudience": {"type": "all"}},
        )

        assert response.status_code == 422

    def test_list_and_get(self, client):
        created = client.post(
            "/api/v1/admin/notifications",
            json={
                "title": "Later",
                "body": "Scheduled",
                "type": "event",
                "targetAudience": {"type": "all"},
                "scheduledFor": "2026-03-02T09:00:00Z",
            },
        ).json()

        listed = client.get("/api/v1/admin/notifications").json()
        assert [n["broadcastId"] for n in listed["notifications"]] == [created["notificationId"]]

        detail = client.get(f"/api/v1/admin/notifications/{created['notificationId']}")
        assert detail.status_code == 200
        assert detail.json()["notification"]["status"] == "scheduled"
        assert detail.json()["notification"]["category"] == "event"

    def test_get_unknown_returns_404(self, client):
        response = client.get("/api/v1/admin/notifications/bc_missing")

        assert response.status_code == 404
        assert "bc_missing" in response.json()["detail"]

    def test_send_non_draft_returns_409(self, client):
        created = client.post(
            "/api/v1/admin/notifications",
            json={"title": "t", "body": "b", "category": "promo", "targetAudience": {"type": "all"}},
        ).json()

        response = client.post(f"/api/v1/admin/notifications/{created['notificationId']}/send")

        assert response.status_code == 409
        assert response.json()["status"] == "sent"

    def test_process_scheduled(self, client):
        response = client.post("/api/v1/admin/notifications/process-scheduled")

        assert response.status_code == 200
        assert response.json()["processed"] == 0

    def test_list_limit_bounds(self, client):
        assert client.get("/api/v1/admin/notifications?limit=0").status_code == 422
        assert client.get("/api/v1/admin/notifications?limit=101").status_code == 422


class TestSettingsEndpoints:
    """Settings read/update"""

    def test_get_defaults(self, client):
        response = client.get("/api/v1/admin/settings")

        assert response.status_code == 200
        settings = response.json()["settings"]
        assert settings["maintenanceMode"] is False
        assert settings["featureFlags"] == {}

    def test_update_and_sync(self, client, mock_remote_config):
        response = client.post(
            "/api/v1/admin/settings",
            json={"maintenanceMode": True},
            headers={"X-User-ID": "admin_1"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["settings"]["maintenanceMode"] is True
        assert data["settings"]["updatedBy"] == "admin_1"
        assert "warning" not in data
        assert "remoteConfigError" not in data
        assert mock_remote_config.template.parameters["maintenanceMode"].default_value == {"value": "true"}

    def test_update_with_sync_failure(self, client, mock_remote_config):
        mock_remote_config.validate_errors = [
            ValidationError("Remote Config validation failed: nope", code="remote-config/invalid-argument", status=400)
        ]

        response = client.post("/api/v1/admin/settings", json={"featureFlags": {"storiesEnabled": True}})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["settings"]["featureFlags"] == {"storiesEnabled": True}
        assert data["warning"] == SYNC_FAILED_WARNING
        assert data["remoteConfigError"]["code"] == "remote-config/invalid-argument"
        assert data["remoteConfigError"]["status"] == 400


class TestRoutesRegistry:
    """Registry matches the application"""

    def test_registered_routes_exist(self):
        app_paths = {route.path for route in main.app.routes}

        for route in ROUTES:
            assert route["path"] in app_paths, f"{route['path']} not served"
