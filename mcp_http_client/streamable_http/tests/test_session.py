"""
Tests for SessionState.
"""

from mcp_http_client.streamable_http import SessionState


class TestSessionState:
    """Tests for the session token cell."""

    def test_starts_empty(self):
        """Test that a new cell holds no session."""
        session = SessionState()

        assert session.load() == ""
        assert not session

    def test_store_and_load(self):
        session = SessionState()
        session.store("abc")

        assert session.load() == "abc"
        assert session

    def test_store_none_clears(self):
        """Test that storing None is the same as storing no session."""
        session = SessionState("abc")
        session.store(None)

        assert session.load() == ""

    def test_compare_and_swap_matching(self):
        """Test that a swap against the current value succeeds."""
        session = SessionState("old")

        assert session.compare_and_swap("old", "") is True
        assert session.load() == ""

    def test_compare_and_swap_stale(self):
        """Test that a swap against a stale value leaves the newer token."""
        session = SessionState("old")
        session.store("new")

        assert session.compare_and_swap("old", "") is False
        assert session.load() == "new"

    def test_clear_returns_previous(self):
        session = SessionState("abc")

        assert session.clear() == "abc"
        assert session.load() == ""
        assert session.clear() == ""

    def test_repr(self):
        assert repr(SessionState("abc")) == "SessionState('abc')"
