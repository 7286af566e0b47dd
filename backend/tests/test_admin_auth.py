"""
Tests for admin JWT verification.
"""

import time

import jwt

from services.admin_auth import JWT_ALGORITHM, admin_from_token, get_auth_manager


class TestTokens:
    """Test token creation and verification."""

    def test_round_trip(self):
        """Created tokens verify and carry the role claim."""
        auth = get_auth_manager()
        token = auth.create_token("7", "amina")["token"]
        payload = auth.verify_token(token)
        assert payload["sub"] == "7"
        assert payload["username"] == "amina"
        assert payload["role"] == "admin"

    def test_wrong_secret(self):
        """Tokens signed with another secret are rejected."""
        forged = jwt.encode({"sub": "1", "role": "admin"}, "x" * 40, algorithm=JWT_ALGORITHM)
        assert get_auth_manager().verify_token(forged) is None

    def test_expired(self):
        """Expired tokens are rejected."""
        auth = get_auth_manager()
        expired = jwt.encode(
            {"sub": "1", "role": "admin", "exp": int(time.time()) - 10}, auth.secret, algorithm=JWT_ALGORITHM
        )
        assert auth.verify_token(expired) is None

    def test_empty(self):
        """Empty tokens are rejected without decoding."""
        assert get_auth_manager().verify_token("") is None


class TestAdminFromToken:
    """Test the WebSocket handshake helper."""

    def test_admin(self):
        """Admin tokens yield a principal."""
        token = get_auth_manager().create_token("1", "console-admin")["token"]
        assert admin_from_token(token) == {"user_id": "1", "username": "console-admin", "role": "admin"}

    def test_non_admin_and_missing(self):
        """Other roles and missing tokens yield None."""
        token = get_auth_manager().create_token("2", "someone", role="visitor")["token"]
        assert admin_from_token(token) is None
        assert admin_from_token(None) is None
