from datetime import datetime, timedelta
import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

import main
from auth import authenticate, issue_token, load_admin_credential
from config import get_settings
from orders import OrderStore
from schemas import OrderDraft
from taxonomy import load_taxonomy


class Clock:
    """Hands out strictly increasing creation times, one day apart."""

    def __init__(self, start=datetime(2025, 3, 1, 10, 0), step=timedelta(days=1)):
        self.current = start - step
        self.step = step

    def __call__(self):
        self.current += self.step
        return self.current


def make_draft(**overrides) -> OrderDraft:
    data = {
        "shopName": "Royal Boutique",
        "clientName": "Roshni Sharma",
        "clientNumber": "9876543210",
        "deliveryDate": "2025-03-20",
        "pickupDate": "2025-03-10",
        "category": "shirts",
        "subcategory": "Formal",
        "measurements": {"neck": 15.5, "chest": 40},
    }
    data.update(overrides)
    return OrderDraft.model_validate(data)


@pytest.fixture
def db():
    return AsyncMongoMockClient()["tailoring_test"]


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store(db, clock):
    return OrderStore(db, clock=clock)


@pytest.fixture
def taxonomy():
    return load_taxonomy()


@pytest.fixture
def app(store):
    main.app.dependency_overrides[main.get_store] = lambda: store
    yield main.app
    main.app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def admin_token():
    credential = load_admin_credential()
    principal = authenticate(credential.email, credential.password, credential)
    return issue_token(principal, get_settings())


@pytest.fixture
def auth_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}
