import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from storybook_images.gateway.config import GatewayConfig

ALGORITHM = "HS256"


def _signing_secret(config: GatewayConfig) -> str:
    secret = config.jwt_secret or config.master_key
    if not secret:
        msg = "jwt_secret (or master_key) must be configured to issue or verify access tokens"
        raise RuntimeError(msg)
    return secret


def create_access_token(user_id: str, config: GatewayConfig, *, expires_minutes: int | None = None) -> str:
    """Issue a short-lived access token for ``user_id``."""
    now = datetime.now(UTC)
    lifetime = timedelta(minutes=expires_minutes or config.access_token_exp_minutes)
    payload = {
        "sub": user_id,
        "jti": str(uuid.uuid4()),
        "type": "access",
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(payload, _signing_secret(config), algorithm=ALGORITHM)


def verify_access_token(token: str, config: GatewayConfig) -> dict[str, Any]:
    """Decode and validate an access token; raises ``jwt.PyJWTError`` when invalid."""
    payload = jwt.decode(token, _signing_secret(config), algorithms=[ALGORITHM])
    if payload.get("type") != "access":
        msg = "Not an access token"
        raise jwt.InvalidTokenError(msg)
    return payload
