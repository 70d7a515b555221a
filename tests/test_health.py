import pytest
from fastapi.testclient import TestClient

from nurushop.main import app


@pytest.fixture
def db():
    """No document store needed for the probe."""
    yield None


def test_health():
    app.state.skip_db_init = True
    with TestClient(app) as c:
        r = c.get("/health")
        assert r.status_code == 200
        assert r.json() == {"status": "ok"}
        assert r.headers["X-Request-ID"]
