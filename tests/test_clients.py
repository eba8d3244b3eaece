"""Tests for the client registry and token endpoint client authentication."""

import base64
import json

import pytest

from oauth.clients import Client, ClientRegistry, load_clients, parse_basic_credentials
from oauth.errors import (
    InvalidClientCredentials,
    InvalidRequest,
    UnknownClient,
)


def _basic(client_id: str, client_secret: str) -> str:
    raw = f"{client_id}:{client_secret}".encode()
    return "Basic " + base64.b64encode(raw).decode()


def test_registered_client_gets_its_redirect_uri(registry):
    assert registry.validate_redirect_uri("c1") == "https://app.example/cb"
    assert registry.validate_redirect_uri("c2") == "https://other.example/callback"


@pytest.mark.parametrize("client_id", ["", None, "c3", "C1", "c1 "])
def test_unregistered_client_is_unknown(registry, client_id):
    with pytest.raises(UnknownClient):
        registry.validate_redirect_uri(client_id)


def test_insecure_redirect_uri_is_refused_at_registration():
    client = Client("dev", "dev-secret", "http://localhost:38500/")

    with pytest.raises(ValueError):
        ClientRegistry([client])

    permissive = ClientRegistry([client], allow_insecure_http=True)
    assert permissive.validate_redirect_uri("dev") == "http://localhost:38500/"


def test_duplicate_client_ids_are_rejected(app_client):
    with pytest.raises(ValueError):
        ClientRegistry([app_client, app_client])


def test_validate_credentials(registry, app_client):
    assert registry.validate_credentials("c1", "c1-secret") == app_client


@pytest.mark.parametrize("client_id, client_secret", [
    ("c1", "wrong"),
    ("c1", ""),
    ("c1", None),
    ("c1", "c2-secret"),
    ("c9", "c1-secret"),
    ("", ""),
])
def test_invalid_credentials(registry, client_id, client_secret):
    with pytest.raises(InvalidClientCredentials):
        registry.validate_credentials(client_id, client_secret)


def test_authenticate_with_basic_header(registry, app_client):
    assert registry.authenticate_client(_basic("c1", "c1-secret")) == app_client


def test_authenticate_with_form_fields(registry, app_client):
    assert registry.authenticate_client(None, "c1", "c1-secret") == app_client


def test_basic_and_form_use_the_same_check(registry):
    with pytest.raises(InvalidClientCredentials):
        registry.authenticate_client(_basic("c1", "nope"))
    with pytest.raises(InvalidClientCredentials):
        registry.authenticate_client(None, "c1", "nope")


def test_basic_header_with_matching_form_client_id(registry, app_client):
    assert registry.authenticate_client(_basic("c1", "c1-secret"), "c1") == app_client


def test_basic_header_with_conflicting_form_client_id(registry):
    with pytest.raises(InvalidRequest):
        registry.authenticate_client(_basic("c1", "c1-secret"), "c2")


def test_two_authentication_methods_are_rejected(registry):
    with pytest.raises(InvalidRequest):
        registry.authenticate_client(_basic("c1", "c1-secret"), "c1", "c1-secret")


@pytest.mark.parametrize("header, form_client_id, form_client_secret", [
    (_basic("c1", "wrong"), "c1", "also-wrong"),
    (_basic("c1", "wrong"), "c2", "c2-secret"),
    (_basic("c1", "wrong"), None, "c1-secret"),
    (_basic("c1", "c1-secret"), "c1", "wrong"),
    (_basic("c9", "c1-secret"), "c1", "c1-secret"),
])
def test_bad_credentials_win_over_mixed_methods(registry, header, form_client_id, form_client_secret):
    with pytest.raises(InvalidClientCredentials):
        registry.authenticate_client(header, form_client_id, form_client_secret)


def test_missing_credentials(registry):
    with pytest.raises(InvalidClientCredentials):
        registry.authenticate_client(None)
    with pytest.raises(InvalidClientCredentials):
        registry.authenticate_client("Bearer something")


@pytest.mark.parametrize("header", [
    "Basic !!!not-base64!!!",
    "Basic " + base64.b64encode(b"no-colon").decode(),
    "Basic " + base64.b64encode(b":secret-only").decode(),
])
def test_malformed_basic_header(header):
    with pytest.raises(InvalidClientCredentials):
        parse_basic_credentials(header)


def test_basic_credentials_are_form_decoded():
    header = _basic("my%20client", "p%3Ass+word")

    assert parse_basic_credentials(header) == ("my client", "p:ss word")


def test_load_clients(tmp_path):
    path = tmp_path / "clients.json"
    path.write_text(json.dumps([
        {"client_id": "c1", "client_secret": "s", "redirect_uri": "https://app.example/cb", "name": "App"},
        {"client_id": "c2", "client_secret": "t", "redirect_uri": "https://b.example/cb"},
    ]))

    clients = load_clients(path)

    assert [c.client_id for c in clients] == ["c1", "c2"]
    assert clients[0].display_name == "App"
    assert clients[1].display_name == "c2"


@pytest.mark.parametrize("content", [
    {"client_id": "c1"},
    [{"client_id": "c1", "redirect_uri": "https://app.example/cb"}],
])
def test_load_clients_rejects_bad_files(tmp_path, content):
    path = tmp_path / "clients.json"
    path.write_text(json.dumps(content))

    with pytest.raises(ValueError):
        load_clients(path)


def test_registry_from_settings(tmp_path):
    from config import Settings

    path = tmp_path / "clients.json"
    path.write_text(json.dumps([
        {"client_id": "c1", "client_secret": "s", "redirect_uri": "http://localhost/cb"},
    ]))

    registry = ClientRegistry.from_settings(Settings({
        "CLIENTS_FILE": str(path),
        "ALLOW_INSECURE_HTTP": "true",
    }))

    assert len(registry) == 1
    assert registry.validate_redirect_uri("c1") == "http://localhost/cb"


def test_registry_from_settings_without_file():
    from config import Settings

    assert len(ClientRegistry.from_settings(Settings())) == 0
