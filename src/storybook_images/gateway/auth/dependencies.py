import secrets
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request, status

from storybook_images.gateway.auth.tokens import verify_access_token
from storybook_images.gateway.config import API_KEY_HEADER, GatewayConfig

_config: GatewayConfig | None = None


def set_config(config: GatewayConfig) -> None:
    """Set the global config instance."""
    global _config  # noqa: PLW0603
    _config = config


def get_config() -> GatewayConfig:
    """Get the global config instance."""
    if _config is None:
        msg = "Config not initialized"
        raise RuntimeError(msg)
    return _config


def _extract_bearer_token(request: Request) -> str:
    """Extract and validate Bearer token from request header."""
    header_value = request.headers.get(API_KEY_HEADER)

    if not header_value:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {API_KEY_HEADER} header",
        )

    if not header_value.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid {API_KEY_HEADER} header format. Expected 'Bearer <token>'",
        )

    return header_value[7:]


def _is_valid_master_key(token: str, config: GatewayConfig) -> bool:
    """Check if token matches the master key."""
    return config.master_key is not None and secrets.compare_digest(token, config.master_key)


async def verify_jwt_or_master(
    request: Request,
    config: Annotated[GatewayConfig, Depends(get_config)],
) -> tuple[bool, str | None]:
    """Verify an access token (JWT) or the master key.

    Returns:
        (is_master_key, user_id_or_none)

    Raises:
        HTTPException: If the token is neither the master key nor a valid access token

    """
    token = _extract_bearer_token(request)

    if _is_valid_master_key(token, config):
        return True, None

    if not (config.jwt_secret or config.master_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access tokens are not accepted: no signing secret configured",
        )

    try:
        payload = verify_access_token(token, config)
    except jwt.ExpiredSignatureError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token expired",
        ) from e
    except jwt.PyJWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid access token",
        ) from e

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid access token payload",
        )
    return False, str(user_id)
