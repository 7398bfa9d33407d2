def test_health_ok(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["defaultFixup"] in {"none", "default", "create"}
    assert data["maxUploadMb"] > 0


def test_serverless_handler_wraps_the_app():
    from mangum import Mangum

    from acroform_fixup.app import app
    from api.index import handler

    assert isinstance(handler, Mangum)
    assert handler.app is app
