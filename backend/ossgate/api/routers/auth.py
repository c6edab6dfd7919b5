from fastapi import APIRouter, Depends, HTTPException, Query, status

from ossgate.api.deps import get_current_operator, get_oauth_client
from ossgate.schemas import LoginRequest, LoginResponse, OperatorRead
from ossgate.services import auth as auth_service
from ossgate.services.oauth import OAuthClient

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(payload: LoginRequest) -> LoginResponse:
    try:
        username = auth_service.authenticate_operator(payload.username, payload.password)
    except auth_service.AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
        ) from exc
    return auth_service.create_token_for_operator(username)


@router.get("/oauth/callback", response_model=LoginResponse)
async def oauth_callback(
    code: str = Query(..., min_length=1),
    state: str | None = None,
    code_verifier: str = Query(..., min_length=1),
    client: OAuthClient = Depends(get_oauth_client),
) -> LoginResponse:
    # ``state`` is matched by the browser against its own session before calling us.
    return await auth_service.login_with_oauth(client, code, code_verifier)


@router.get("/me", response_model=OperatorRead)
async def get_me(operator: OperatorRead = Depends(get_current_operator)) -> OperatorRead:
    return operator
