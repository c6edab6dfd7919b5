from collections.abc import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ossgate.core.security import TokenError, operator_from_token
from ossgate.db.session import get_session_factory
from ossgate.schemas import OperatorRead
from ossgate.services.links import LinkService
from ossgate.services.oauth import OAuthClient
from ossgate.services.oss_client import OssClient

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    session_factory = get_session_factory()
    async with session_factory() as session:
        yield session


def get_link_service(request: Request) -> LinkService:
    return request.app.state.link_service


def get_oss_client() -> OssClient:
    return OssClient()


def get_oauth_client() -> OAuthClient:
    return OAuthClient()


async def get_current_operator(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> OperatorRead:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header must be in the format 'Bearer <token>'",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        username = operator_from_token(credentials.credentials)
    except TokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    return OperatorRead(username=username)
