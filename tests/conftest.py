import random

import mongomock
import pytest
from fastapi.testclient import TestClient

from chat import ChatService
from config import Settings
from database import DocumentStore
from main import create_app
from market import MarketPriceService
from tests.helpers import checkerboard, image_bytes, skin_photo

ADMIN_EMAIL = "admin@krishisahay.in"

TOKENS = {
    "alice-token": {"uid": "alice", "email": "alice@example.com", "name": "Alice"},
    "bob-token": {"uid": "bob", "email": "bob@example.com"},
    "admin-token": {"uid": "admin", "email": ADMIN_EMAIL, "name": "Admin"},
}


class FakeVerifier:
    def __init__(self, tokens):
        self.tokens = tokens

    def verify(self, token):
        if token not in self.tokens:
            raise ValueError("token has expired")
        return self.tokens[token]


class FakeProvider:
    name = "fake"

    def __init__(self, reply="Use neem oil spray every 7 days.", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def complete(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def settings():
    return Settings(
        admin_email=ADMIN_EMAIL,
        admin_panel_user="operator",
        admin_panel_pass="s3cret",
    )


@pytest.fixture
def store():
    return DocumentStore(mongomock.MongoClient(tz_aware=True)["krishisahay_test"])


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def app(settings, store, provider):
    return create_app(
        settings=settings,
        store=store,
        verifier=FakeVerifier(dict(TOKENS)),
        chat_service=ChatService(provider),
        market=MarketPriceService(random.Random(42)),
    )


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth():
    def headers(token="alice-token"):
        return {"Authorization": f"Bearer {token}"}
    return headers


@pytest.fixture
def leaf_png():
    return image_bytes(checkerboard())


@pytest.fixture
def selfie_png():
    return image_bytes(skin_photo())
