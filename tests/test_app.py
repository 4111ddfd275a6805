import pytest

from app import create_app
from conftest import BRAND_COLOR, FakeBackgroundRemover, FakeRemoteVectorizer
from logo_pipeline import LogoPipeline
from pipeline_errors import QuotaExceededError, UpstreamError
from png_to_svg_converter import PotraceTracer
from utils import Settings


def make_client(settings=None, remover=None, remote=None):
    pipeline = LogoPipeline(
        remover or FakeBackgroundRemover(),
        remote or FakeRemoteVectorizer(),
        PotraceTracer(),
        BRAND_COLOR,
    )
    app = create_app(settings=settings or Settings(removebg_api_key="rb_test_key"), pipeline=pipeline)
    app.config['TESTING'] = True
    return app.test_client()


def test_health(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"


def test_preflight_returns_empty_200(client):
    response = client.options('/api/process-logo', headers={
        "Origin": "https://example.com",
        "Access-Control-Request-Method": "POST",
    })
    assert response.status_code == 200
    assert response.data == b""
    assert response.headers["Access-Control-Allow-Origin"] in ("*", "https://example.com")


def test_get_is_method_not_allowed(client):
    response = client.get('/api/process-logo')
    assert response.status_code == 405
    assert response.get_json() == {"success": False, "error": "Method not allowed"}


def test_process_logo_success(client, square_data_uri):
    response = client.post('/api/process-logo', json={"image": square_data_uri, "mode": "simple"})
    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["mode"] == "simple"
    assert body["vector"] is True
    assert body["svg"].startswith("<svg")
    assert 'width="50"' in body["svg"]


def test_default_mode_comes_from_settings(square_data_uri):
    client = make_client(Settings(removebg_api_key="k", default_mode="classic"))
    response = client.post('/api/process-logo', json={"image": square_data_uri})
    assert response.get_json()["mode"] == "classic"


@pytest.mark.parametrize("route, mode", [
    ('/api/process-logo-simple', "raster-embed"),
    ('/api/process-logo-color', "color-embed"),
    ('/api/process-logo-enhanced', "enhanced"),
    ('/api/process-logo-hq', "high-quality"),
    ('/api/process-logo-potrace', "classic"),
    ('/api/process-logo-vectorizer', "vector-service"),
])
def test_legacy_routes_pin_their_mode(client, square_data_uri, route, mode):
    response = client.post(route, json={"image": square_data_uri})
    assert response.status_code == 200
    assert response.get_json()["mode"] == mode


def test_request_mode_overrides_legacy_default(client, square_data_uri):
    response = client.post('/api/process-logo-simple', json={"image": square_data_uri, "mode": "simple"})
    assert response.get_json()["mode"] == "simple"


def test_enhanced_route_keeps_its_own_simple_mode(client, square_data_uri):
    response = client.post('/api/process-logo-enhanced', json={"image": square_data_uri, "mode": "simple"})
    assert response.status_code == 200
    assert response.get_json()["mode"] == "inverted"


def test_generic_route_simple_mode_is_plain_simple(client, square_data_uri):
    response = client.post('/api/process-logo', json={"image": square_data_uri, "mode": "simple"})
    assert response.get_json()["mode"] == "simple"


def test_missing_image(client):
    response = client.post('/api/process-logo', json={"mode": "simple"})
    assert response.status_code == 500
    assert response.get_json() == {"success": False, "error": "No image provided"}


def test_non_json_body(client):
    response = client.post('/api/process-logo', data="image=abc", content_type="text/plain")
    assert response.status_code == 500
    assert response.get_json()["success"] is False


def test_unknown_mode(client, square_data_uri):
    response = client.post('/api/process-logo', json={"image": square_data_uri, "mode": "oil-paint"})
    assert response.status_code == 500
    assert "Unknown processing mode" in response.get_json()["error"]


def test_missing_removal_key(square_data_uri):
    remover = FakeBackgroundRemover(configured=False)
    response = make_client(remover=remover).post('/api/process-logo', json={"image": square_data_uri})
    assert response.status_code == 500
    assert "Remove.bg API key is not configured" in response.get_json()["error"]
    assert remover.calls == []


def test_quota_exhausted(square_data_uri):
    remover = FakeBackgroundRemover(error=QuotaExceededError(
        "Remove.bg credits exhausted. Please check your account.",
        details={"errors": [{"title": "Insufficient credits"}]},
    ))
    response = make_client(remover=remover).post('/api/process-logo', json={"image": square_data_uri})
    assert response.status_code == 500
    body = response.get_json()
    assert body["success"] is False
    assert "credits" in body["error"]
    assert body["details"] == {"errors": [{"title": "Insufficient credits"}]}


def test_upstream_error_details(square_data_uri):
    remote = FakeRemoteVectorizer(error=UpstreamError(details="connection reset"))
    client = make_client(remote=remote)
    response = client.post('/api/process-logo', json={"image": square_data_uri, "mode": "vector-service"})
    assert response.status_code == 500
    assert response.get_json() == {
        "success": False,
        "error": "Failed to process image.",
        "details": "connection reset",
    }


def test_unexpected_error_is_generic_500(square_data_uri):
    remover = FakeBackgroundRemover(error=RuntimeError("boom"))
    response = make_client(remover=remover).post('/api/process-logo', json={"image": square_data_uri})
    assert response.status_code == 500
    body = response.get_json()
    assert body == {"success": False, "error": "Failed to process image."}
    assert "boom" not in response.get_data(as_text=True)


def test_api_key_report(client):
    response = client.post('/api/test-api')
    body = response.get_json()
    assert body["success"] is True
    assert body["apiKeys"]["removeBgKeySet"] is True
    assert body["apiKeys"]["removeBgKeyPrefix"] == "rb_..."
    assert body["apiKeys"]["vectorizerKeySet"] is True
    assert body["removeBgTest"] == "working - credits: 50"


def test_api_key_report_without_keys():
    response = make_client(Settings()).post('/api/test-api')
    body = response.get_json()
    assert body["apiKeys"]["removeBgKeySet"] is False
    assert body["apiKeys"]["removeBgKeyPrefix"] == "not set"
    assert body["removeBgTest"] == "not tested"


def test_unknown_route_is_json_404(client):
    response = client.get('/api/nothing-here')
    assert response.status_code == 404
    assert response.get_json()["success"] is False
