from storybook_images.gateway.auth.dependencies import verify_jwt_or_master
from storybook_images.gateway.auth.tokens import create_access_token, verify_access_token

__all__ = ["create_access_token", "verify_access_token", "verify_jwt_or_master"]
