"""
HTTP API tests against an app wired to the mock asset server.
"""

import base64

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import AssetServer, FakeFactory, make_settings
from skincheck.main import create_app
from skincheck.services.model_lifecycle import ModelLifecycleManager, ModelState
from skincheck.services.scan_repository import ScanRepository


def build_client(asset_server: AssetServer | None = None, **overrides) -> TestClient:
    settings = make_settings(**overrides)
    transport = httpx.MockTransport(asset_server or AssetServer())
    manager = ModelLifecycleManager(
        settings,
        client=httpx.AsyncClient(transport=transport),
        resource_factory=FakeFactory(),
    )
    app = create_app(settings, model_manager=manager, repository=ScanRepository())
    return TestClient(app)


@pytest.fixture
def client():
    with build_client() as test_client:
        yield test_client


@pytest.fixture
def png_base64(png_bytes) -> str:
    return base64.b64encode(png_bytes).decode("ascii")


class TestHealth:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["name"] == "SkinCheck"
        assert "X-Request-ID" in response.headers

    def test_degraded_until_model_loaded(self, client):
        body = client.get("/health").json()
        assert body["status"] == "degraded"
        assert body["checks"]["model_ready"] is False
        assert body["classifier_state"] == "unloaded"

        load = client.post("/api/v1/model/load")
        assert load.status_code == 200
        assert load.json() == {"success": True, "error": None, "error_code": None}

        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["classifier_state"] == "ready"
        assert body["classifier_error"] is None

    def test_load_failure_is_reported(self):
        with build_client(model_base_url="") as client:
            load = client.post("/api/v1/model/load").json()
            assert load["success"] is False
            assert load["error_code"] == "CONFIGURATION_ERROR"

            body = client.get("/health").json()
            assert body["status"] == "degraded"
            assert body["classifier_state"] == "failed"
            assert "MODEL_BASE_URL" in body["classifier_error"]


class TestLifespan:

    def test_preload_shares_the_explicit_load(self):
        server = AssetServer()
        with build_client(server, preload_model=True) as client:
            assert client.post("/api/v1/model/load").json()["success"] is True
            assert client.get("/health").json()["status"] == "healthy"

        assert server.model_requests == 1
        assert client.app.state.model_manager.state == ModelState.UNLOADED

    def test_shutdown_during_preload_stops_the_load(self):
        server = AssetServer(delay=0.05)
        client = build_client(server, preload_model=True)
        with client:
            pass

        manager = client.app.state.model_manager
        assert manager.state == ModelState.UNLOADED
        assert manager.resource is None
        assert server.metadata_requests == 0


class TestAssessments:

    def test_assessment_with_loaded_model(self, client, png_base64):
        client.post("/api/v1/model/load")

        response = client.post(
            "/api/v1/assessments",
            json={"image": png_base64, "symptoms": {"itch": False, "bleed": False, "growth": False}},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["scan_id"].startswith("scan_")
        assert body["inference"]["succeeded"] is True
        assert body["inference"]["top_label"] == "4_Malignant"
        assert body["assessment"]["tier"] == "CAUTION"
        assert body["status"]["color"] == "#FBC02D"
        assert body["status"]["color_value"] == 0xFBC02D
        assert body["advice"]["action"] == "Visit a clinic within 2 weeks"

    def test_assessment_without_model_uses_fallback(self, client, png_data_url):
        response = client.post(
            "/api/v1/assessments",
            json={"image": png_data_url, "symptoms": {"bleed": True}},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["inference"]["succeeded"] is False
        assert body["inference"]["base_risk"] == pytest.approx(0.1)
        assert body["assessment"]["override_applied"] is True
        assert body["assessment"]["final_score"] == pytest.approx(0.75)
        assert body["status"]["tier"] == "DANGER"
        assert body["status"]["label"] == "Danger - See Specialist Urgently"
        assert body["symptoms"] == ["Bleeding/Crusting"]

    def test_symptoms_default_to_absent(self, client, png_base64):
        body = client.post("/api/v1/assessments", json={"image": png_base64}).json()
        assert body["assessment"]["final_score"] == pytest.approx(0.07)
        assert body["status"]["tier"] == "SAFE"

    def test_undecodable_image_still_assessed(self, client):
        client.post("/api/v1/model/load")

        response = client.post("/api/v1/assessments", json={"image": "bm90IGFuIGltYWdl"})

        assert response.status_code == 200
        body = response.json()
        assert body["inference"]["succeeded"] is False
        assert "Failed to load image" in body["inference"]["error"]

    @pytest.mark.parametrize("image", ["", "   "])
    def test_empty_image_rejected(self, client, image):
        response = client.post("/api/v1/assessments", json={"image": image})
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["details"]["errors"][0]["loc"] == ["body", "image"]

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_oversized_image_rejected(self):
        with build_client(max_image_bytes=100) as client:
            response = client.post("/api/v1/assessments", json={"image": "A" * 400})
            assert response.status_code == 413
            assert response.json()["error"] == "HTTP_413"


class TestScans:

    def test_list_and_get(self, client, png_base64):
        first = client.post("/api/v1/assessments", json={"image": png_base64}).json()
        second = client.post(
            "/api/v1/assessments",
            json={"image": png_base64, "image_ref": "uploads/spot.jpg"},
        ).json()

        listing = client.get("/api/v1/scans").json()
        assert listing["count"] == 2
        assert {s["id"] for s in listing["scans"]} == {first["scan_id"], second["scan_id"]}

        record = client.get(f"/api/v1/scans/{second['scan_id']}").json()
        assert record["image_ref"] == "uploads/spot.jpg"
        assert record["symptoms"] == {"itch_val": False, "bleed_val": False, "growth_val": False}
        assert record["status"] == "completed"
        assert record["status_color"] == "#388E3C"

    def test_unknown_scan(self, client):
        response = client.get("/api/v1/scans/scan_missing")
        assert response.status_code == 404
        assert response.json()["message"] == "Scan not found"
