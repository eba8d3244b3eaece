"""Authentication tickets and their signed encoding.

A ticket bundles a subject, its claims (granted scopes included), the
authentication type and an expiry. Authorization codes, access tokens,
refresh tokens and the login session cookie are all built from tickets.

Tickets are encoded as HS256 JWTs via PyJWT. The encoding purpose is bound as
the token audience so, for example, an access token can never be replayed as a
refresh token.
"""

import os
import secrets
import time
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Optional

import jwt

from oauth.errors import MalformedTicket, TicketExpired

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

NAME_CLAIM = "name"
SCOPE_CLAIM = "urn:oauth:scope"

# Encoding purposes (bound as the JWT "aud" claim)
PURPOSE_AUTHORIZATION_CODE = "authorization_code"
PURPOSE_ACCESS_TOKEN = "access_token"
PURPOSE_REFRESH_TOKEN = "refresh_token"
PURPOSE_SESSION = "session"
PURPOSE_CONSENT = "consent"


class AuthenticationType(str, Enum):
    SESSION = "session"
    BEARER = "bearer"


@dataclass(frozen=True)
class Ticket:
    """Immutable identity + claims + expiry record."""

    subject: str
    claims: tuple
    authentication_type: AuthenticationType
    issued_at: int
    expires_at: int
    properties: MappingProxyType = field(default_factory=dict, hash=False)

    def __post_init__(self):
        # Read-only view; the ticket is frozen
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))

    @property
    def name(self) -> Optional[str]:
        values = self.values(NAME_CLAIM)
        return values[0] if values else None

    @property
    def scopes(self) -> frozenset:
        return frozenset(self.values(SCOPE_CLAIM))

    @property
    def scope(self) -> str:
        """Granted scopes as a space-delimited string, in grant order."""
        return " ".join(self.values(SCOPE_CLAIM))

    def values(self, claim_type: str) -> list:
        return [value for kind, value in self.claims if kind == claim_type]

    def is_expired(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now >= self.expires_at

    def reissue(
        self,
        lifetime: int,
        now: Optional[float] = None,
        authentication_type: Optional[AuthenticationType] = None,
        claims: Optional[Iterable] = None,
        expires_at: Optional[int] = None,
        properties: Optional[dict] = None,
    ) -> "Ticket":
        """Return a new ticket for the same subject with a fresh expiry.

        Claims and properties are carried over unless replacements are given;
        expires_at pins the expiry instead of deriving it from lifetime.
        """
        issued_at = int(time.time() if now is None else now)
        return replace(
            self,
            claims=self.claims if claims is None else tuple(claims),
            authentication_type=authentication_type or self.authentication_type,
            issued_at=issued_at,
            expires_at=expires_at if expires_at is not None else issued_at + lifetime,
            properties=dict(self.properties if properties is None else properties),
        )


def create_ticket(
    subject: str,
    claims: Iterable,
    authentication_type: AuthenticationType,
    lifetime: int,
    now: Optional[float] = None,
    properties: Optional[dict] = None,
) -> Ticket:
    issued_at = int(time.time() if now is None else now)
    return Ticket(
        subject=subject,
        claims=tuple((str(kind), str(value)) for kind, value in claims),
        authentication_type=AuthenticationType(authentication_type),
        issued_at=issued_at,
        expires_at=issued_at + lifetime,
        properties=dict(properties or {}),
    )


def get_or_create_secret(secret_file: Path) -> str:
    """Read the signing secret from secret_file, generating it on first use.

    The generated secret is written with owner-only permissions so tickets
    stay valid across restarts.
    """
    if secret_file.exists():
        try:
            secret = secret_file.read_text().strip()
            if secret:
                logger.info("[TICKET] Loaded signing secret from file")
                return secret
        except IOError as e:
            logger.warning(f"[TICKET] Could not read signing secret: {e}")

    secret = secrets.token_urlsafe(64)
    try:
        secret_file.parent.mkdir(parents=True, exist_ok=True)
        secret_file.write_text(secret)
        os.chmod(secret_file, 0o600)
        logger.info("[TICKET] Generated and saved new signing secret")
    except IOError as e:
        logger.warning(f"[TICKET] Could not save signing secret to file: {e}")
    return secret


class TicketCodec:
    """Encodes tickets into signed, expiring strings and back."""

    def __init__(self, secret: str, issuer: Optional[str] = None):
        if not secret:
            raise ValueError("TicketCodec requires a non-empty secret")
        self._secret = secret
        self.issuer = issuer

    def encode(self, ticket: Ticket, purpose: str) -> str:
        payload = {
            "sub": ticket.subject,
            "aud": purpose,
            "iat": ticket.issued_at,
            "exp": ticket.expires_at,
            "auth_type": ticket.authentication_type.value,
            "claims": [list(claim) for claim in ticket.claims],
            "props": dict(ticket.properties),
            # Nonce so two tickets minted in the same second never collide
            "jti": secrets.token_urlsafe(8),
        }
        if self.issuer:
            payload["iss"] = self.issuer
        return jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)

    def decode(self, token: str, purpose: str) -> Ticket:
        """Verify and decode a token minted for purpose.

        Raises:
            TicketExpired: the signature is valid but the ticket has expired.
            MalformedTicket: anything else (bad signature, wrong purpose or
                issuer, truncated payload, unexpected shape).
        """
        if not token:
            raise MalformedTicket()

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                audience=purpose,
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub", "aud"]},
            )
        except jwt.ExpiredSignatureError:
            logger.debug(f"[TICKET] Expired {purpose} ticket")
            raise TicketExpired()
        except jwt.InvalidTokenError as e:
            logger.debug(f"[TICKET] Invalid {purpose} ticket: {e}")
            raise MalformedTicket()

        try:
            return Ticket(
                subject=str(payload["sub"]),
                claims=tuple((str(kind), str(value)) for kind, value in payload.get("claims", [])),
                authentication_type=AuthenticationType(payload["auth_type"]),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
                properties=dict(payload.get("props") or {}),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"[TICKET] Unexpected {purpose} ticket shape: {e}")
            raise MalformedTicket()
