import hmac
import logging

from ossgate.core.config import get_settings
from ossgate.core.errors import PermissionDenied
from ossgate.core.security import issue_operator_token, verify_operator_password
from ossgate.schemas import LoginResponse
from ossgate.services.oauth import OAuthClient, OAuthError, has_admin_permission

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when operator authentication fails."""


def authenticate_operator(username: str, password: str) -> str:
    settings = get_settings()
    if not settings.admin_password_hash:
        raise AuthenticationError("Password login is disabled")
    username_ok = hmac.compare_digest(username.encode(), settings.admin_username.encode())
    if not username_ok or not verify_operator_password(password, settings.admin_password_hash):
        raise AuthenticationError("Invalid credentials")
    return settings.admin_username


def create_token_for_operator(username: str) -> LoginResponse:
    token, expires_in = issue_operator_token(username)
    return LoginResponse(token=token, expires_in=expires_in, username=username)


async def login_with_oauth(client: OAuthClient, code: str, code_verifier: str) -> LoginResponse:
    if not client.enabled:
        raise OAuthError("OAuth login is not configured")

    token = await client.exchange_code_for_token(code, code_verifier)
    user_info = await client.fetch_user_info(token.access_token)
    if not has_admin_permission(user_info, client.settings.oauth_admin_claim):
        logger.warning("OAuth user %s lacks admin permission", user_info.username)
        raise PermissionDenied()

    logger.info("Operator %s signed in through OAuth", user_info.username)
    return create_token_for_operator(user_info.username)
