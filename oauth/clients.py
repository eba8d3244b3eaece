"""Registered OAuth clients.

The client set is loaded once at startup from a JSON file and never changes
while the server runs. The registry answers the two questions the grant flow
asks: where may this client be redirected, and are these its credentials.
"""

import base64
import binascii
import hmac
import json
import logging
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import unquote_plus, urlsplit

from oauth.errors import (
    InvalidClientCredentials,
    InvalidRequest,
    UnknownClient,
)

logger = logging.getLogger(__name__)

_UNKNOWN_CLIENT_SECRET = secrets.token_urlsafe(32)


@dataclass(frozen=True)
class Client:
    client_id: str
    client_secret: str
    redirect_uri: str
    name: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.client_id


def load_clients(path: Path) -> list[Client]:
    """Load clients from a JSON list of objects.

    Each object needs client_id, client_secret and redirect_uri; name is
    optional.
    """
    with open(path, "r") as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise ValueError(f"Client file {path} must contain a JSON list")

    clients = []
    for entry in data:
        try:
            clients.append(Client(
                client_id=entry["client_id"],
                client_secret=entry["client_secret"],
                redirect_uri=entry["redirect_uri"],
                name=entry.get("name", ""),
            ))
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid client entry in {path}: {e}") from e
    return clients


class ClientRegistry:
    """Immutable set of registered clients, keyed by client id."""

    def __init__(self, clients: Iterable[Client], allow_insecure_http: bool = False):
        """Register clients.

        Raises ValueError for a duplicate client id, or for a redirect URI
        that is not https unless allow_insecure_http is set.
        """
        self._clients: dict[str, Client] = {}
        for client in clients:
            if client.client_id in self._clients:
                raise ValueError(f"Duplicate client id: {client.client_id}")
            if urlsplit(client.redirect_uri).scheme != "https" and not allow_insecure_http:
                raise ValueError(
                    f"Client {client.client_id} redirect URI must use https "
                    f"(set ALLOW_INSECURE_HTTP for development)"
                )
            self._clients[client.client_id] = client
        self.allow_insecure_http = allow_insecure_http

    @classmethod
    def from_settings(cls, settings) -> "ClientRegistry":
        clients = []
        if settings.clients_file:
            clients = load_clients(settings.clients_file)
            logger.info(f"[STARTUP] Loaded {len(clients)} client(s) from {settings.clients_file}")
        else:
            logger.warning("[STARTUP] CLIENTS_FILE not set, no clients registered")
        return cls(clients, allow_insecure_http=settings.allow_insecure_http)

    def __len__(self) -> int:
        return len(self._clients)

    def __iter__(self):
        return iter(self._clients.values())

    def get(self, client_id: str) -> Optional[Client]:
        return self._clients.get(client_id)

    def validate_redirect_uri(self, client_id: str) -> str:
        """Return the registered redirect URI for client_id.

        Raises:
            UnknownClient: client_id is not registered.
        """
        client = self._clients.get(client_id) if client_id else None
        if client is None:
            raise UnknownClient()
        return client.redirect_uri

    def validate_credentials(self, client_id: str, client_secret: str) -> Client:
        client = self._clients.get(client_id) if client_id else None
        # Unknown ids still pay for a comparison so timing does not reveal them
        expected = client.client_secret if client else _UNKNOWN_CLIENT_SECRET
        matches = hmac.compare_digest((client_secret or "").encode(), expected.encode())
        if client is None or not matches:
            logger.info(f"[TOKEN] Client authentication failed for client_id: {client_id}")
            raise InvalidClientCredentials()
        return client

    def authenticate_client(
        self,
        authorization_header: Optional[str],
        form_client_id: Optional[str] = None,
        form_client_secret: Optional[str] = None,
    ) -> Client:
        """Authenticate a client at the token endpoint.

        Credentials arrive either as an HTTP Basic header or as the
        client_id/client_secret form fields; both go through the same check.
        Credentials are validated before anything else, so bad credentials
        are always InvalidClientCredentials. A request that authenticates
        with Basic and also carries conflicting form fields is InvalidRequest.
        """
        basic = parse_basic_credentials(authorization_header)

        if basic is not None:
            client = self.validate_credentials(*basic)
            if form_client_secret and not hmac.compare_digest(
                form_client_secret.encode(), client.client_secret.encode()
            ):
                raise InvalidClientCredentials()
            if form_client_id and form_client_id != client.client_id:
                raise InvalidRequest("client_id does not match the authenticated client")
            if form_client_secret:
                raise InvalidRequest("Use only one client authentication method")
            return client

        if not form_client_id:
            raise InvalidClientCredentials()
        return self.validate_credentials(form_client_id, form_client_secret)


def parse_basic_credentials(authorization_header: Optional[str]) -> Optional[tuple[str, str]]:
    """Parse "Basic base64(id:secret)" into (id, secret).

    Returns None when no Basic header is present. Raises
    InvalidClientCredentials when the header is present but undecodable.
    """
    if not authorization_header:
        return None

    scheme, _, value = authorization_header.partition(" ")
    if scheme.lower() != "basic":
        return None

    try:
        decoded = base64.b64decode(value.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise InvalidClientCredentials()

    client_id, sep, client_secret = decoded.partition(":")
    if not sep or not client_id:
        raise InvalidClientCredentials()

    # RFC 6749 section 2.3.1: both parts are form-url-encoded before base64
    return unquote_plus(client_id), unquote_plus(client_secret)
