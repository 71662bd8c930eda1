"""Authentication API: register, login, refresh, logout, password management."""

from fastapi import APIRouter, Depends

from inventrack.api.deps import get_auth_service, get_current_user
from inventrack.models.user import User
from inventrack.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UserRead,
)
from inventrack.services.auth import AuthResult, AuthService

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _to_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        expires_at=result.expires_at,
        user=result.user,
        requires_two_factor=result.requires_two_factor,
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(body: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    result = await service.register(
        username=body.username,
        email=body.email,
        password=body.password,
        phone_number=body.phone_number,
    )
    return _to_response(result)


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, service: AuthService = Depends(get_auth_service)):
    result = await service.login(body.email, body.password, body.two_factor_code)
    return _to_response(result)


@router.post("/refresh-token", response_model=AuthResponse)
async def refresh_token(body: RefreshRequest, service: AuthService = Depends(get_auth_service)):
    result = await service.refresh(body.refresh_token, body.access_token)
    return _to_response(result)


@router.post("/logout", response_model=MessageResponse)
async def logout(body: LogoutRequest, service: AuthService = Depends(get_auth_service)):
    await service.logout(body.refresh_token)
    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all")
async def logout_all(
    user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    revoked = await service.logout_all(user.id)
    return {"revoked": revoked}


@router.get("/me", response_model=UserRead)
async def me(user: User = Depends(get_current_user)):
    return user


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    await service.change_password(user.id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(body: ForgotPasswordRequest, service: AuthService = Depends(get_auth_service)):
    """Always answers the same, whether or not the email is registered."""
    await service.request_password_reset(body.email)
    return MessageResponse(message="If the email is registered, a reset link has been sent")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(body: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)):
    await service.reset_password(body.token, body.new_password, email=body.email)
    return MessageResponse(message="Password has been reset")
