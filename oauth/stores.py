"""Authorization code storage.

Codes are short-lived and single use. The store owns the code -> ticket
mapping; the rest of the server only sees issue() and redeem().
Access and refresh tokens are self-contained signed tickets and are not
stored at all.
"""

import secrets
import threading
import time
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from oauth.errors import (
    CodeAlreadyUsed,
    CodeExpired,
    CodeNotFound,
    InvalidGrant,
    TicketError,
)
from oauth.tickets import PURPOSE_AUTHORIZATION_CODE, Ticket, TicketCodec

logger = logging.getLogger(__name__)

CODE_TTL_SECONDS = 600  # 10 minutes


class AuthorizationCodeStore(ABC):
    """Issues single-use authorization codes bound to a ticket.

    Implementations must make redeem() an atomic check-and-remove: for any
    code, at most one redeem() call ever returns a ticket.
    """

    @abstractmethod
    def issue(self, ticket: Ticket) -> str:
        """Store ticket under a fresh random code and return the code."""

    @abstractmethod
    def redeem(self, code: str) -> Ticket:
        """Remove code and return its ticket.

        Raises:
            CodeNotFound, CodeAlreadyUsed, CodeExpired: all InvalidGrant.
        """


@dataclass
class _CodeEntry:
    encoded_ticket: str
    issued_at: float


class InMemoryAuthorizationCodeStore(AuthorizationCodeStore):
    """Process-local store for single-instance deployments."""

    def __init__(
        self,
        codec: TicketCodec,
        ttl: int = CODE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        purge_interval: Optional[float] = None,
    ):
        self.codec = codec
        self.ttl = ttl
        self.clock = clock
        # issue() sweeps expired entries at most once per interval
        self.purge_interval = ttl / 10 if purge_interval is None else purge_interval
        self._next_purge = 0.0
        self._codes: dict[str, _CodeEntry] = {}
        # Redeemed codes, kept until their TTL runs out so replays are reported
        self._consumed: dict[str, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._codes)

    def __contains__(self, code: str) -> bool:
        return code in self._codes

    def issue(self, ticket: Ticket) -> str:
        code = secrets.token_urlsafe(32)
        entry = _CodeEntry(
            encoded_ticket=self.codec.encode(ticket, PURPOSE_AUTHORIZATION_CODE),
            issued_at=self.clock(),
        )
        with self._lock:
            if entry.issued_at >= self._next_purge:
                self._purge_locked(entry.issued_at)
            self._codes[code] = entry
        logger.info(f"[CODE] Authorization code issued for subject: {ticket.subject}")
        return code

    def redeem(self, code: str) -> Ticket:
        if not code:
            raise CodeNotFound()

        now = self.clock()
        with self._lock:
            entry = self._codes.pop(code, None)
            if entry is None:
                if code in self._consumed:
                    logger.warning("[CODE] Replay of an already redeemed authorization code")
                    raise CodeAlreadyUsed()
                raise CodeNotFound()
            if now - entry.issued_at < self.ttl:
                self._consumed[code] = entry.issued_at

        if now - entry.issued_at >= self.ttl:
            logger.info("[CODE] Authorization code expired before redemption")
            raise CodeExpired()

        try:
            return self.codec.decode(entry.encoded_ticket, PURPOSE_AUTHORIZATION_CODE)
        except TicketError as e:
            logger.warning(f"[CODE] Stored ticket failed to decode: {e}")
            raise InvalidGrant()

    def purge_expired(self) -> int:
        """Drop expired codes and stale tombstones. Returns codes dropped."""
        with self._lock:
            return self._purge_locked(self.clock())

    def _purge_locked(self, now: float) -> int:
        self._next_purge = now + self.purge_interval
        expired = [code for code, entry in self._codes.items() if now - entry.issued_at >= self.ttl]
        for code in expired:
            del self._codes[code]

        stale = [code for code, issued_at in self._consumed.items() if now - issued_at >= self.ttl]
        for code in stale:
            del self._consumed[code]

        if expired:
            logger.debug(f"[CODE] Purged {len(expired)} expired authorization code(s)")
        return len(expired)
