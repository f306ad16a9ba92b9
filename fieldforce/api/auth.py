"""Auth API router: register, login, refresh, me, change password."""

from fastapi import APIRouter, Depends, status

from fieldforce.schemas.schemas import (
    LoginRequest, LoginResponse, RegisterRequest, RefreshRequest, TokenResponse,
    ChangePasswordRequest, ClaimsOut, UserOut, MessageResponse,
)
from fieldforce.services.auth_service import AuthService
from fieldforce.core.guards import Authorize
from fieldforce.core.security import Claims
from fieldforce.api.deps import get_auth_service

router = APIRouter(prefix="/auth", tags=["auth"])

authenticated = Authorize()


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    """Authenticate and return JWT tokens."""
    result = auth.login(body.email, body.password)
    return LoginResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        token_type=result.tokens.token_type,
        expires_in=result.tokens.expires_in,
        user=UserOut.from_user(result.user),
    )


@router.post("/register", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, auth: AuthService = Depends(get_auth_service)):
    """Self-register with the default role and receive JWT tokens."""
    result = auth.register(body)
    return LoginResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        token_type=result.tokens.token_type,
        expires_in=result.tokens.expires_in,
        user=UserOut.from_user(result.user),
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, auth: AuthService = Depends(get_auth_service)):
    """Exchange a refresh token for a new token pair."""
    tokens = auth.refresh(body.refresh_token)
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
        expires_in=tokens.expires_in,
    )


@router.get("/me", response_model=UserOut)
async def get_me(
    claims: Claims = Depends(authenticated),
    auth: AuthService = Depends(get_auth_service),
):
    """Get current user profile."""
    return UserOut.from_user(auth.get_profile(claims.user_id))


@router.get("/claims", response_model=ClaimsOut)
async def get_claims(claims: Claims = Depends(authenticated)):
    """Show the role and permission snapshot carried by the current token."""
    return ClaimsOut(
        user_id=claims.user_id,
        email=claims.email,
        role_name=claims.role_name,
        role_level=claims.role_level,
        permissions=sorted(claims.permissions),
        expires_at=claims.expires_at,
    )


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    claims: Claims = Depends(authenticated),
    auth: AuthService = Depends(get_auth_service),
):
    auth.change_password(claims.user_id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")
