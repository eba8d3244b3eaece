"""Resource owner session authentication.

The grant flow only needs to know whether the browser has a signed-in
identity and what its subject and claims are. CookieSessionAuthenticator
keeps that identity in an HTTP-only cookie holding a session ticket.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from fastapi import Request, Response

from oauth.errors import TicketError
from oauth.tickets import (
    NAME_CLAIM,
    PURPOSE_SESSION,
    AuthenticationType,
    Ticket,
    TicketCodec,
    create_ticket,
)

logger = logging.getLogger(__name__)

SESSION_COOKIE = "code_grant_session"
SESSION_TTL_SECONDS = 8 * 60 * 60  # 8 hours


class SessionAuthenticator(ABC):
    @abstractmethod
    def authenticate(self, request: Request) -> Optional[Ticket]:
        """Return the signed-in identity for request, or None."""

    @abstractmethod
    def sign_in(self, response: Response, username: str) -> Ticket:
        """Establish a session for username on response."""

    @abstractmethod
    def sign_out(self, response: Response) -> None:
        """Clear the session on response."""


class CookieSessionAuthenticator(SessionAuthenticator):
    def __init__(
        self,
        codec: TicketCodec,
        ttl: int = SESSION_TTL_SECONDS,
        secure: bool = True,
        cookie_name: str = SESSION_COOKIE,
        clock: Callable[[], float] = time.time,
    ):
        self.codec = codec
        self.ttl = ttl
        self.secure = secure
        self.cookie_name = cookie_name
        self.clock = clock

    def authenticate(self, request: Request) -> Optional[Ticket]:
        cookie = request.cookies.get(self.cookie_name)
        if not cookie:
            return None
        try:
            ticket = self.codec.decode(cookie, PURPOSE_SESSION)
        except TicketError:
            logger.debug("[LOGIN] Ignoring invalid or expired session cookie")
            return None
        if ticket.authentication_type != AuthenticationType.SESSION:
            return None
        return ticket

    def sign_in(self, response: Response, username: str) -> Ticket:
        ticket = create_ticket(
            subject=username,
            claims=[(NAME_CLAIM, username)],
            authentication_type=AuthenticationType.SESSION,
            lifetime=self.ttl,
            now=self.clock(),
        )
        response.set_cookie(
            self.cookie_name,
            self.codec.encode(ticket, PURPOSE_SESSION),
            max_age=self.ttl,
            httponly=True,
            secure=self.secure,
            samesite="lax",
        )
        logger.info(f"[LOGIN] Session established for: {username}")
        return ticket

    def sign_out(self, response: Response) -> None:
        response.delete_cookie(self.cookie_name, httponly=True, secure=self.secure, samesite="lax")
