import logging
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import ValidationError

from ossgate.core.config import Settings, get_settings
from ossgate.core.errors import Unauthorized
from ossgate.schemas import OAuthTokenResponse, OAuthUserInfo

logger = logging.getLogger(__name__)


class OAuthError(Unauthorized):
    default_message = "OAuth authentication failed"


def has_admin_permission(user_info: OAuthUserInfo, claim: str) -> bool:
    """Only an explicit boolean ``True`` under ``permissions[claim]`` grants access."""
    permissions: Any = user_info.permissions
    if not isinstance(permissions, Mapping):
        return False
    return permissions.get(claim) is True


class OAuthClient:
    """Authorization-code exchange against the configured identity provider."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.settings.oauth_client_id and self.settings.oauth_client_secret)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.oss_request_timeout,
            transport=self._transport,
        )

    async def exchange_code_for_token(self, code: str, code_verifier: str) -> OAuthTokenResponse:
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.settings.oauth_redirect_uri or "",
            "client_id": self.settings.oauth_client_id or "",
            "client_secret": self.settings.oauth_client_secret or "",
            "code_verifier": code_verifier,
        }
        async with self._client() as client:
            try:
                response = await client.post(self.settings.oauth_token_url, data=form)
            except httpx.HTTPError as exc:
                logger.warning("Token exchange request failed: %s", exc)
                raise OAuthError("Token exchange failed") from exc

        if response.is_error:
            logger.warning("Token exchange rejected with HTTP %s", response.status_code)
            raise OAuthError("Token exchange failed")
        try:
            return OAuthTokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise OAuthError("Token exchange failed") from exc

    async def fetch_user_info(self, access_token: str) -> OAuthUserInfo:
        async with self._client() as client:
            try:
                response = await client.get(
                    self.settings.oauth_userinfo_url,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
            except httpx.HTTPError as exc:
                logger.warning("Userinfo request failed: %s", exc)
                raise OAuthError("Failed to fetch user info") from exc

        if response.is_error:
            logger.warning("Userinfo rejected with HTTP %s", response.status_code)
            raise OAuthError("Failed to fetch user info")
        try:
            return OAuthUserInfo.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise OAuthError("Failed to fetch user info") from exc
