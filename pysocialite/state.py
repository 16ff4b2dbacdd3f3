"""CSRF state token generation and validation.

The state value is an opaque, single-use nonce tied to the browser
session: issued when the authorization URL is built, consumed when the
provider redirects back.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from .session import SessionStore


logger = logging.getLogger("pysocialite.state")

#: Session key under which the outstanding state is stored.
STATE_SESSION_KEY = "state"


def generate_state() -> str:
    """Generate a new state token.

    Returns
    -------
    str
        40 lowercase hex characters derived from 32 random bytes.
    """
    return hashlib.sha1(secrets.token_bytes(32)).hexdigest()  # noqa: S324


def validate_state(
    stored: str | None,
    received: str | None,
    *,
    stateless: bool = False,
) -> bool:
    """Check a callback state against the stored one.

    Parameters
    ----------
    stored : str or None
        The state persisted when the authorization URL was built.
    received : str or None
        The ``state`` query parameter from the callback.
    stateless : bool
        When True, state checking is disabled and this always succeeds.

    Returns
    -------
    bool
        True if stateless, or both values are non-empty and equal.
    """
    if stateless:
        return True
    if not stored or not received:
        return False
    return hmac.compare_digest(stored.encode("utf-8"), received.encode("utf-8"))


class StateToken:
    """Issue and consume state tokens against a session store.

    Parameters
    ----------
    session : SessionStore
        The browser session's store.
    key : str
        Session key holding the state (default ``"state"``).
    """

    def __init__(self, session: SessionStore, key: str = STATE_SESSION_KEY) -> None:
        self.session = session
        self.key = key

    async def issue(self) -> str:
        """Generate a state, persist it in the session, and return it."""
        state = generate_state()
        await self.session.set(self.key, state)
        return state

    async def pop(self) -> str | None:
        """Read and clear the stored state."""
        stored = await self.session.get(self.key)
        await self.session.delete(self.key)
        return stored

    async def consume(self, received: str | None, *, stateless: bool = False) -> bool:
        """Compare-and-clear the stored state.

        The stored value is deleted whatever the outcome, so a state can
        be presented at most once.
        """
        stored = await self.pop()
        valid = validate_state(stored, received, stateless=stateless)
        if not valid:
            logger.warning("State mismatch (stored present: %s)", bool(stored))
        return valid
