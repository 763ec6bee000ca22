"""
Session token storage for the Streamable HTTP client.
"""

import logging


logger = logging.getLogger(__name__)


class SessionState:
    """
    Holds the server-assigned session token.

    The token is a plain string; ``""`` means no session is established.
    Every operation completes without awaiting, so when used from the event
    loop thread each one is atomic with respect to other tasks and no lock
    is needed. ``compare_and_swap`` lets an exchange clear the token it used
    without clobbering one refreshed meanwhile by another exchange.
    """

    def __init__(self, session_id: str = ""):
        self._session_id = session_id

    def load(self) -> str:
        return self._session_id

    def store(self, session_id: str) -> None:
        self._session_id = session_id or ""

    def compare_and_swap(self, expected: str, new: str) -> bool:
        """
        Replace the token with ``new`` only if it still equals ``expected``.

        Returns:
            True if the token was replaced
        """
        if self._session_id != expected:
            logger.debug("Session token changed concurrently, leaving it in place")
            return False
        self._session_id = new
        return True

    def clear(self) -> str:
        """Clear the token and return the previous value."""
        previous, self._session_id = self._session_id, ""
        return previous

    def __bool__(self) -> bool:
        return bool(self._session_id)

    def __repr__(self) -> str:
        return f"SessionState({self._session_id!r})"
