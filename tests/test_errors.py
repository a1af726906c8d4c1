from fastapi.testclient import TestClient
from pydantic import BaseModel
import pytest

from sessiontab.core.exceptions import AlreadyRevertedError, NotFoundError, PersistenceError
from sessiontab.main import create_app


@pytest.fixture
def client(services):
    return TestClient(create_app(services))


def test_404_not_found(client):
    response = client.get("/non-existent-route")
    assert response.status_code == 404
    data = response.json()
    assert "error" in data
    assert "code" in data
    assert data["code"] == "HTTP_ERROR"


def test_validation_error_structure(client):
    class Item(BaseModel):
        name: str
        price: int

    @client.app.post("/test-validation")
    def create_item(item: Item):
        return item

    response = client.post("/test-validation", json={"name": "foo", "price": "invalid"})
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert "details" in data
    assert len(data["details"]) > 0


@pytest.mark.parametrize("error, status, code", [
    (NotFoundError(message="Membership not found"), 404, "NOT_FOUND"),
    (AlreadyRevertedError(), 409, "ALREADY_REVERTED"),
    (PersistenceError(), 503, "PERSISTENCE_ERROR"),
])
def test_custom_exception(client, error, status, code):
    @client.app.get("/test-custom-error")
    def trigger_custom_error():
        raise error

    response = client.get("/test-custom-error")
    assert response.status_code == status
    data = response.json()
    assert data["code"] == code
    assert data["error"] == error.message


def test_unhandled_exception_is_wrapped(services):
    app = create_app(services)

    @app.get("/test-crash")
    def crash():
        raise RuntimeError("kaboom")

    client = TestClient(app, raise_server_exceptions=False)
    response = client.get("/test-crash")
    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_ERROR"
