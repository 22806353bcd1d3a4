"""Host-supplied identity and anti-forgery nonces for the refresh endpoint.

This service does not authenticate anyone. The host puts an ``Identity`` on
``request.state.identity`` (middleware, reverse-proxy adapter, ...) and the
routes only check it. Tests override ``get_identity`` instead.
"""

import hashlib
import hmac
import time
from dataclasses import dataclass, field

from fastapi import Request

from miusage_feed.config import settings

REFRESH_CAPABILITY = "manage_options"
REFRESH_ACTION = "miusage_feed_refresh"

# Nonces are valid for the current and the previous tick (12-24 hours).
NONCE_TICK_SECONDS = 12 * 3600


@dataclass(frozen=True)
class Identity:
    user_id: str
    capabilities: frozenset[str] = field(default_factory=frozenset)

    def can(self, capability: str) -> bool:
        return capability in self.capabilities


def get_identity(request: Request) -> Identity | None:
    """FastAPI dependency returning the host-provided identity, if any."""
    identity = getattr(request.state, "identity", None)
    return identity if isinstance(identity, Identity) else None


def _tick(now: float) -> int:
    return int(now // NONCE_TICK_SECONDS)


def _sign(user_id: str, action: str, tick: int, secret: str) -> str:
    message = f"{action}|{user_id}|{tick}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()[:20]


def create_nonce(
    user_id: str,
    action: str = REFRESH_ACTION,
    now: float | None = None,
    secret: str | None = None,
) -> str:
    now = time.time() if now is None else now
    return _sign(user_id, action, _tick(now), secret or settings.nonce_secret)


def verify_nonce(
    nonce: str | None,
    user_id: str,
    action: str = REFRESH_ACTION,
    now: float | None = None,
    secret: str | None = None,
) -> bool:
    """Check a nonce against the current and previous tick in constant time."""
    if not nonce or not nonce.isascii():
        return False
    now = time.time() if now is None else now
    secret = secret or settings.nonce_secret
    tick = _tick(now)
    return any(
        hmac.compare_digest(nonce, _sign(user_id, action, t, secret))
        for t in (tick, tick - 1)
    )
