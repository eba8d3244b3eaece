"""Authorization Code Grant state machine.

One AuthorizationFlow walks through

    AWAITING_AUTHENTICATION -> AWAITING_CONSENT -> CODE_ISSUED -> TOKEN_ISSUED

or ends in DENIED / ERROR. AuthorizationCodeGrant composes the client
registry, the code store and the ticket codec; the HTTP layer only translates
requests into these calls and the results back into responses.
"""

import time
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

from oauth.clients import Client, ClientRegistry
from oauth.errors import (
    AccessDenied,
    InvalidGrant,
    InvalidRedirectUri,
    InvalidRequest,
    InvalidScope,
    OAuthError,
    TicketError,
    UnsupportedGrantType,
    UnsupportedResponseType,
)
from oauth.stores import CODE_TTL_SECONDS, AuthorizationCodeStore
from oauth.tickets import (
    PURPOSE_ACCESS_TOKEN,
    PURPOSE_CONSENT,
    PURPOSE_REFRESH_TOKEN,
    SCOPE_CLAIM,
    AuthenticationType,
    Ticket,
    TicketCodec,
    create_ticket,
)

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TTL_SECONDS = 20 * 60  # 20 minutes
REFRESH_TOKEN_TTL_SECONDS = 30 * 24 * 60 * 60  # 30 days
CONSENT_TTL_SECONDS = 10 * 60


class GrantState(str, Enum):
    AWAITING_AUTHENTICATION = "awaiting_authentication"
    AWAITING_CONSENT = "awaiting_consent"
    CODE_ISSUED = "code_issued"
    TOKEN_ISSUED = "token_issued"
    DENIED = "denied"
    ERROR = "error"


class GrantStateError(RuntimeError):
    """A flow step was attempted from the wrong state."""


def parse_scope(scope: Optional[str]) -> list[str]:
    """Split a space-delimited scope string, dropping blanks and duplicates."""
    scopes = []
    for token in (scope or "").split():
        if token not in scopes:
            scopes.append(token)
    return scopes


def append_query(uri: str, params: dict) -> str:
    parts = urlsplit(uri)
    extra = urlencode(params)
    query = f"{parts.query}&{extra}" if parts.query else extra
    return urlunsplit(parts._replace(query=query))


@dataclass
class AuthorizationFlow:
    """State of a single authorize request."""

    client_id: str
    state: str = ""
    scopes: list = field(default_factory=list)
    # Set only once the client and its redirect URI have been validated
    redirect_uri: Optional[str] = None
    redirect_uri_supplied: bool = False
    client: Optional[Client] = None
    identity: Optional[Ticket] = None
    status: GrantState = GrantState.AWAITING_AUTHENTICATION
    code: Optional[str] = None
    error: Optional[OAuthError] = None

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)

    @property
    def can_redirect(self) -> bool:
        return self.redirect_uri is not None

    def redirect_url(self) -> str:
        """Client redirect carrying the code or the error, plus state."""
        if not self.can_redirect:
            raise GrantStateError("Flow has no validated redirect URI")

        if self.status == GrantState.CODE_ISSUED:
            params = {"code": self.code}
        elif self.error is not None:
            params = {"error": self.error.error, "error_description": self.error.description}
        else:
            raise GrantStateError(f"Nothing to report to the client in state {self.status.value}")

        if self.state:
            params["state"] = self.state
        return append_query(self.redirect_uri, params)


@dataclass
class TokenResponse:
    access_token: str
    expires_in: int
    refresh_token: str
    scope: str = ""
    token_type: str = "bearer"
    status: GrantState = GrantState.TOKEN_ISSUED

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "refresh_token": self.refresh_token,
            "scope": self.scope,
        }


class AuthorizationCodeGrant:
    """Drives authorize -> consent -> code -> token -> refresh."""

    def __init__(
        self,
        clients: ClientRegistry,
        codes: AuthorizationCodeStore,
        codec: TicketCodec,
        code_ttl: int = CODE_TTL_SECONDS,
        access_token_ttl: int = ACCESS_TOKEN_TTL_SECONDS,
        refresh_token_ttl: int = REFRESH_TOKEN_TTL_SECONDS,
        consent_ttl: int = CONSENT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.clients = clients
        self.codes = codes
        self.codec = codec
        self.code_ttl = code_ttl
        self.access_token_ttl = access_token_ttl
        self.refresh_token_ttl = refresh_token_ttl
        self.consent_ttl = consent_ttl
        self.clock = clock

    # ============== Authorize / Consent ==============

    def begin_authorization(
        self,
        response_type: Optional[str],
        client_id: Optional[str],
        redirect_uri: Optional[str] = None,
        scope: Optional[str] = None,
        state: Optional[str] = None,
        identity: Optional[Ticket] = None,
    ) -> AuthorizationFlow:
        flow = AuthorizationFlow(
            client_id=client_id or "",
            state=state or "",
            scopes=parse_scope(scope),
            redirect_uri_supplied=bool(redirect_uri),
        )

        # Until this passes, nothing may be sent to the supplied redirect URI
        try:
            registered_uri = self.clients.validate_redirect_uri(flow.client_id)
            if redirect_uri and redirect_uri != registered_uri:
                raise InvalidRedirectUri()
        except OAuthError as e:
            logger.warning(f"[AUTHORIZE] Rejected request for client {flow.client_id!r}: {e.description}")
            return self._fail(flow, e)

        flow.redirect_uri = registered_uri
        flow.client = self.clients.get(flow.client_id)

        if not response_type:
            return self._fail(flow, InvalidRequest("Missing response_type"))
        if response_type != "code":
            return self._fail(flow, UnsupportedResponseType())

        if identity is None:
            flow.status = GrantState.AWAITING_AUTHENTICATION
            return flow

        flow.identity = identity
        flow.status = GrantState.AWAITING_CONSENT
        return flow

    def grant_consent(self, flow: AuthorizationFlow) -> AuthorizationFlow:
        self._require(flow, GrantState.AWAITING_CONSENT)

        claims = [claim for claim in flow.identity.claims if claim[0] != SCOPE_CLAIM]
        claims.extend((SCOPE_CLAIM, scope) for scope in flow.scopes)

        ticket = create_ticket(
            subject=flow.identity.subject,
            claims=claims,
            authentication_type=AuthenticationType.BEARER,
            lifetime=self.code_ttl,
            now=self.clock(),
            properties={
                "client_id": flow.client_id,
                "redirect_uri": flow.redirect_uri,
                "redirect_uri_supplied": flow.redirect_uri_supplied,
            },
        )
        flow.code = self.codes.issue(ticket)
        flow.status = GrantState.CODE_ISSUED
        logger.info(
            f"[AUTHORIZE] Consent granted by {flow.identity.subject} to {flow.client_id} "
            f"(scope: {flow.scope or 'none'})"
        )
        return flow

    def deny_consent(self, flow: AuthorizationFlow) -> AuthorizationFlow:
        self._require(flow, GrantState.AWAITING_CONSENT)
        flow.error = AccessDenied()
        flow.status = GrantState.DENIED
        logger.info(f"[AUTHORIZE] Consent denied by {flow.identity.subject} to {flow.client_id}")
        return flow

    def issue_consent_token(self, flow: AuthorizationFlow) -> str:
        """Signed form token tying a consent POST to this subject, client and scope."""
        self._require(flow, GrantState.AWAITING_CONSENT)
        ticket = create_ticket(
            subject=flow.identity.subject,
            claims=[],
            authentication_type=AuthenticationType.SESSION,
            lifetime=self.consent_ttl,
            now=self.clock(),
            properties={"client_id": flow.client_id, "scope": flow.scope},
        )
        return self.codec.encode(ticket, PURPOSE_CONSENT)

    def verify_consent_token(self, flow: AuthorizationFlow, token: Optional[str]) -> bool:
        if flow.identity is None or not token:
            return False
        try:
            ticket = self.codec.decode(token, PURPOSE_CONSENT)
        except TicketError:
            return False
        return (
            ticket.subject == flow.identity.subject
            and ticket.properties.get("client_id") == flow.client_id
            and ticket.properties.get("scope") == flow.scope
        )

    # ============== Token endpoint ==============

    def token(
        self,
        grant_type: Optional[str],
        client: Client,
        code: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        refresh_token: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> TokenResponse:
        if not grant_type:
            raise InvalidRequest("Missing grant_type")
        if grant_type == "authorization_code":
            return self.exchange_code(client, code, redirect_uri)
        if grant_type == "refresh_token":
            return self.refresh(client, refresh_token, scope)
        raise UnsupportedGrantType()

    def exchange_code(
        self,
        client: Client,
        code: Optional[str],
        redirect_uri: Optional[str] = None,
    ) -> TokenResponse:
        if not code:
            raise InvalidRequest("Missing code")

        ticket = self.codes.redeem(code)

        if ticket.properties.get("client_id") != client.client_id:
            logger.warning(f"[TOKEN] Client {client.client_id} presented a code issued to another client")
            raise InvalidGrant("Authorization code was issued to another client")

        expected_uri = ticket.properties.get("redirect_uri")
        if (ticket.properties.get("redirect_uri_supplied") or redirect_uri) and redirect_uri != expected_uri:
            raise InvalidGrant("redirect_uri does not match the authorization request")

        response = self._issue_tokens(ticket, client)
        logger.info(f"[TOKEN] Tokens issued to {client.client_id} for subject: {ticket.subject}")
        return response

    def refresh(
        self,
        client: Client,
        refresh_token: Optional[str],
        scope: Optional[str] = None,
    ) -> TokenResponse:
        """Mint a new access token from a refresh token.

        Refresh tokens are not stored, so the presented token stays usable
        until it expires. The returned refresh token keeps the original
        expiry. A scope narrower than the original grant may be requested
        for the new access token.
        """
        if not refresh_token:
            raise InvalidRequest("Missing refresh_token")

        ticket = self.codec.decode(refresh_token, PURPOSE_REFRESH_TOKEN)

        if ticket.properties.get("client_id") != client.client_id:
            logger.warning(f"[TOKEN] Client {client.client_id} presented a refresh token issued to another client")
            raise InvalidGrant("Refresh token was issued to another client")

        access_claims = None
        if scope:
            requested = parse_scope(scope)
            if not set(requested) <= ticket.scopes:
                raise InvalidScope()
            access_claims = [claim for claim in ticket.claims if claim[0] != SCOPE_CLAIM]
            access_claims.extend((SCOPE_CLAIM, value) for value in requested)

        response = self._issue_tokens(
            ticket,
            client,
            access_claims=access_claims,
            refresh_expires_at=ticket.expires_at,
        )
        logger.info(f"[TOKEN] Access token refreshed for {client.client_id}, subject: {ticket.subject}")
        return response

    # ============== Helpers ==============

    def _issue_tokens(
        self,
        ticket: Ticket,
        client: Client,
        access_claims=None,
        refresh_expires_at: Optional[int] = None,
    ) -> TokenResponse:
        now = self.clock()
        properties = {"client_id": client.client_id}

        access = ticket.reissue(
            lifetime=self.access_token_ttl,
            now=now,
            authentication_type=AuthenticationType.BEARER,
            claims=access_claims,
            properties=properties,
        )
        refresh = ticket.reissue(
            lifetime=self.refresh_token_ttl,
            now=now,
            authentication_type=AuthenticationType.BEARER,
            expires_at=refresh_expires_at,
            properties=properties,
        )
        return TokenResponse(
            access_token=self.codec.encode(access, PURPOSE_ACCESS_TOKEN),
            expires_in=access.expires_at - access.issued_at,
            refresh_token=self.codec.encode(refresh, PURPOSE_REFRESH_TOKEN),
            scope=access.scope,
        )

    @staticmethod
    def _fail(flow: AuthorizationFlow, error: OAuthError) -> AuthorizationFlow:
        flow.error = error
        flow.status = GrantState.ERROR
        return flow

    @staticmethod
    def _require(flow: AuthorizationFlow, status: GrantState) -> None:
        if flow.status != status:
            raise GrantStateError(f"Expected flow in state {status.value}, got {flow.status.value}")
