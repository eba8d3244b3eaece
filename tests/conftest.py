"""Shared fixtures for the authorization server tests."""

import time

import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from oauth.clients import Client, ClientRegistry
from oauth.grant import AuthorizationCodeGrant
from oauth.stores import InMemoryAuthorizationCodeStore
from oauth.tickets import NAME_CLAIM, AuthenticationType, TicketCodec, create_ticket

SECRET = "test-secret-key-for-testing-only-0123456789abcdef"
ISSUER = "http://testserver"

APP_CLIENT = Client("c1", "c1-secret", "https://app.example/cb", "Example App")
OTHER_CLIENT = Client("c2", "c2-secret", "https://other.example/callback")


class FakeClock:
    """Callable clock that starts at the real time and only moves when told."""

    def __init__(self):
        self.now = time.time()

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def codec():
    return TicketCodec(SECRET, issuer=ISSUER)


@pytest.fixture
def registry():
    return ClientRegistry([APP_CLIENT, OTHER_CLIENT])


@pytest.fixture
def store(codec, clock):
    return InMemoryAuthorizationCodeStore(codec, ttl=600, clock=clock)


@pytest.fixture
def grant(registry, store, codec, clock):
    return AuthorizationCodeGrant(registry, store, codec, clock=clock)


@pytest.fixture
def identity():
    return create_ticket(
        subject="alice",
        claims=[(NAME_CLAIM, "alice")],
        authentication_type=AuthenticationType.SESSION,
        lifetime=3600,
    )


@pytest.fixture
def settings():
    return Settings({"ISSUER": ISSUER, "SECRET_KEY": SECRET, "SCOPES_SUPPORTED": "read write"})


@pytest.fixture
def app(settings, registry):
    return create_app(settings, registry)


@pytest.fixture
def http(app):
    with TestClient(app, follow_redirects=False) as client:
        yield client


@pytest.fixture
def app_client():
    return APP_CLIENT


@pytest.fixture
def other_client():
    return OTHER_CLIENT
