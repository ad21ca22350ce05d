import httpx
import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from local_cache import LocalCache
from schemas import CartItem, Pizza


@pytest.fixture
def db():
    mock_db = mongomock.MongoClient()["p2pizza_test"]
    database.use_db(mock_db)
    yield mock_db
    database.use_db(None)


@pytest.fixture
def api(db):
    from main import app
    return TestClient(app)


@pytest.fixture
def cache(tmp_path):
    return LocalCache(str(tmp_path / "cache.json"))


@pytest.fixture
def margherita():
    return Pizza(id="margherita", name="Margherita", description="Classic", price=150)


@pytest.fixture
def pepperoni():
    return Pizza(id="pepperoni", name="Pepperoni", description="Spicy", price=200, is_promo=True)


@pytest.fixture
def cart_items(margherita, pepperoni):
    return [
        CartItem(**margherita.model_dump(), quantity=2),
        CartItem(**pepperoni.model_dump(), quantity=1),
    ]


def backend_client():
    """Async client that talks to the FastAPI app in-process."""
    from main import app
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


def offline_client():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def status_client(status_code):
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(status_code)))
