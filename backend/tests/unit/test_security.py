"""
Unit tests for credential primitives.
"""

from mechanic_chat.infrastructure.security import (
    hash_password,
    new_session_token,
    verify_password,
)


class TestPasswordHashing:

    def test_hash_is_salted(self):
        first = hash_password("Abcdef12")
        second = hash_password("Abcdef12")
        assert first != second
        assert "Abcdef12" not in first

    def test_verify(self):
        hashed = hash_password("Abcdef12")
        assert verify_password("Abcdef12", hashed) is True
        assert verify_password("abcdef12", hashed) is False

    def test_malformed_hash_is_false(self):
        assert verify_password("Abcdef12", "not-a-hash") is False


class TestSessionTokens:

    def test_tokens_unique_and_fit_column(self):
        tokens = {new_session_token() for _ in range(50)}
        assert len(tokens) == 50
        assert all(len(t) <= 128 for t in tokens)
