from fastapi.testclient import TestClient

from trackflow.api.main import app


def test_health() -> None:
    # No context manager: lifespan (rules + migrations) is not run
    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "trackflow"}
