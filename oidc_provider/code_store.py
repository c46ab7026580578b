"""
In-memory, single-use authorization codes.
All access goes through one lock; redeem is an atomic check-and-remove.
Expiry is checked at redeem time; the periodic sweep only reclaims memory.
"""
import asyncio
import logging
import secrets
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# 32 bytes -> 256 bits of entropy, 43 chars base64url
_CODE_BYTES = 32
_MAX_ISSUE_ATTEMPTS = 5


@dataclass(frozen=True)
class AuthorizationCode:
    code: str
    client_id: str
    subject_id: str
    issued_at: float
    expires_at: float
    redirect_uri: str | None = None

    def expired(self, now: float) -> bool:
        return now > self.expires_at


class AuthorizationCodeStore:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._codes: dict[str, AuthorizationCode] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._codes)

    def issue(
        self,
        client_id: str,
        subject_id: str,
        ttl: float,
        *,
        redirect_uri: str | None = None,
        now: float | None = None,
    ) -> str:
        """Store a fresh random code bound to (client_id, subject_id) and return it."""
        issued_at = self._clock() if now is None else now
        for _ in range(_MAX_ISSUE_ATTEMPTS):
            code = secrets.token_urlsafe(_CODE_BYTES)
            entry = AuthorizationCode(
                code=code,
                client_id=client_id,
                subject_id=subject_id,
                issued_at=issued_at,
                expires_at=issued_at + ttl,
                redirect_uri=redirect_uri,
            )
            with self._lock:
                if code not in self._codes:
                    self._codes[code] = entry
                    logger.debug("Issued authorization code for client_id=%s", client_id)
                    return code
            logger.warning("Authorization code collision; retrying")
        raise RuntimeError("Could not generate a unique authorization code")

    def redeem(self, code: str, now: float | None = None) -> AuthorizationCode | None:
        """
        Remove and return the code. Returns None if it is unknown, already redeemed or expired.
        Exactly one of any number of concurrent callers gets the entry.
        """
        if now is None:
            now = self._clock()
        with self._lock:
            entry = self._codes.pop(code, None)
        if entry is None:
            logger.info("Redeem failed: unknown or already redeemed code")
            return None
        if entry.expired(now):
            logger.info("Redeem failed: code for client_id=%s expired", entry.client_id)
            return None
        return entry

    def sweep(self, now: float | None = None) -> int:
        """Drop entries that are already expired. Returns how many were removed."""
        if now is None:
            now = self._clock()
        with self._lock:
            expired = [c for c, entry in self._codes.items() if entry.expired(now)]
            for c in expired:
                del self._codes[c]
        if expired:
            logger.debug("Swept %d expired authorization code(s)", len(expired))
        return len(expired)


async def sweep_periodically(store: AuthorizationCodeStore, interval: float) -> None:
    """Run store.sweep() every interval seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            store.sweep()
        except Exception:
            logger.exception("Error in authorization code sweep")
