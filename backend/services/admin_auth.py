"""
Admin Authentication Service - JWT verification for the agent console.

Admin accounts and passwords live in the main site backend; this service
only verifies the HS256 bearer tokens it issues and checks the role claim.

Features:
- JWT secret from JWT_SECRET, or generated once and persisted under data/auth
- verify_admin FastAPI dependency (401 missing/invalid, 403 wrong role)
- admin_from_token() for WebSocket handshakes (token query parameter)
- create_token() for local tooling and tests
"""

import json
import logging
import secrets
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from errors import AuthorizationError

logger = logging.getLogger(__name__)

# JWT config
JWT_ALGORITHM = "HS256"
JWT_EXPIRY_HOURS = 8
ADMIN_ROLE = "admin"

# Secret persistence when JWT_SECRET is not configured
AUTH_DIR = Path(__file__).parent.parent / "data" / "auth"
AUTH_FILE = AUTH_DIR / "agent_auth.json"

# Optional Bearer token extractor (doesn't auto-raise on missing)
_bearer_scheme = HTTPBearer(auto_error=False)


class AdminAuthManager:
    """
    Token verification manager.

    The secret is resolved lazily so the configured value wins when it is
    set after import (tests, runtime_config.update).
    """

    _instance: Optional["AdminAuthManager"] = None

    def __init__(self):
        self._jwt_secret: Optional[str] = None

    @classmethod
    def get_instance(cls) -> "AdminAuthManager":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def initialize(self) -> None:
        """Resolve the signing secret (called during app lifespan startup)."""
        self._jwt_secret = self._resolve_secret()
        logger.info("Admin auth initialized")

    def _resolve_secret(self) -> str:
        from config import runtime_config

        if runtime_config.jwt_secret:
            return runtime_config.jwt_secret

        if AUTH_FILE.exists():
            try:
                data = json.loads(AUTH_FILE.read_text(encoding="utf-8"))
                if data.get("jwt_secret"):
                    return data["jwt_secret"]
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load auth file: {e}")

        secret = secrets.token_hex(32)
        self._save_auth_file(secret)
        logger.warning("JWT_SECRET not set; generated a local signing secret")
        return secret

    @property
    def secret(self) -> str:
        if not self._jwt_secret:
            self._jwt_secret = self._resolve_secret()
        return self._jwt_secret

    # =========================================================================
    # JWT Token Management
    # =========================================================================

    def create_token(self, user_id: str, username: str, role: str = ADMIN_ROLE) -> dict:
        """Create a JWT token. Returns {token, expires_at}."""
        expires_at = time.time() + (JWT_EXPIRY_HOURS * 3600)
        payload = {
            "sub": str(user_id),
            "username": username,
            "role": role,
            "iat": int(time.time()),
            "exp": int(expires_at),
        }
        token = jwt.encode(payload, self.secret, algorithm=JWT_ALGORITHM)
        return {
            "token": token,
            "expires_at": datetime.fromtimestamp(expires_at, tz=timezone.utc).isoformat(),
        }

    def verify_token(self, token: str) -> Optional[dict]:
        """
        Verify a JWT token. Returns decoded payload or None.

        Payload contains: sub (user id), username, role.
        """
        if not token:
            return None
        try:
            return jwt.decode(token, self.secret, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.debug("Rejected expired token")
            return None
        except jwt.InvalidTokenError:
            return None

    # =========================================================================
    # Internal
    # =========================================================================

    def _save_auth_file(self, secret: str) -> None:
        """Persist the generated JWT secret to disk."""
        try:
            AUTH_DIR.mkdir(parents=True, exist_ok=True)
            data = {
                "jwt_secret": secret,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
            AUTH_FILE.write_text(json.dumps(data, indent=2), encoding="utf-8")
            AUTH_FILE.chmod(0o600)
        except OSError as e:
            logger.warning(f"Could not persist JWT secret: {e}")


def get_auth_manager() -> AdminAuthManager:
    """Get the singleton auth manager."""
    return AdminAuthManager.get_instance()


def _principal(payload: dict) -> dict:
    return {
        "user_id": payload.get("sub", ""),
        "username": payload.get("username", "admin"),
        "role": payload.get("role", ""),
    }


def admin_from_token(token: Optional[str]) -> Optional[dict]:
    """Return the admin principal for a token, or None if it is not a valid admin token."""
    payload = get_auth_manager().verify_token(token or "")
    if not payload or payload.get("role") != ADMIN_ROLE:
        return None
    return _principal(payload)


# =============================================================================
# FastAPI Dependencies
# =============================================================================


async def verify_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> dict:
    """
    Admin auth dependency.

    Returns:
        Dict with user_id, username, role from the JWT payload.

    Raises:
        AuthorizationError 401 if the token is missing or invalid
        AuthorizationError 403 if the token is valid but not an admin token
    """
    if not credentials or not credentials.credentials:
        raise AuthorizationError("Authentication required")

    payload = get_auth_manager().verify_token(credentials.credentials)
    if not payload:
        raise AuthorizationError("Invalid or expired token", reason="invalid")

    if payload.get("role") != ADMIN_ROLE:
        raise AuthorizationError("Admin role required", reason="forbidden")

    return _principal(payload)
