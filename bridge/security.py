from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
import time
from typing import Awaitable, Callable, Optional

from fastapi import Request

from bridge.errors import AuthError

LOGGER = logging.getLogger("bridge.security")


def secure_equals(candidate: str, expected: str) -> bool:
    """Compare two secrets without leaking where (or whether) they differ.

    Both values are hashed to fixed-size digests first, so the comparison
    cost does not depend on the length of either input.
    """
    candidate_bytes = candidate.encode("utf-8")
    expected_bytes = expected.encode("utf-8")
    digests_match = hmac.compare_digest(
        hashlib.sha256(candidate_bytes).digest(),
        hashlib.sha256(expected_bytes).digest(),
    )
    return digests_match and len(candidate_bytes) == len(expected_bytes)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        return None
    return token


class BearerAuthGuard:
    def __init__(self, secret: str) -> None:
        self._secret = secret

    def check(self, authorization: Optional[str]) -> None:
        token = bearer_token(authorization)
        if token is None:
            LOGGER.info("auth_rejected reason=missing_token")
            raise AuthError("Missing or invalid Bearer token")
        if not secure_equals(token, self._secret):
            LOGGER.info("auth_rejected reason=token_mismatch")
            raise AuthError("Invalid bridge token")

    def __call__(self, request: Request) -> None:
        self.check(request.headers.get("Authorization"))


class ResponsePacer:
    """Holds a response back until a minimum latency has elapsed."""

    def __init__(
        self,
        min_delay_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.min_delay_seconds = max(0.0, min_delay_seconds)
        self.clock = clock
        self._sleep = sleep

    def start(self) -> float:
        return self.clock()

    def remaining(self, started_at: float) -> float:
        return max(0.0, self.min_delay_seconds - (self.clock() - started_at))

    async def pace(self, started_at: float) -> float:
        remaining = self.remaining(started_at)
        if remaining > 0:
            await self._sleep(remaining)
        return remaining
