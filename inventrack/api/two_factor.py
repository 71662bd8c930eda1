"""Two-factor API: TOTP setup, enable, disable and step-up verification."""

from fastapi import APIRouter, Depends

from inventrack.api.deps import get_auth_service, get_current_user
from inventrack.models.user import User
from inventrack.schemas.auth import TwoFactorCodeRequest, TwoFactorSetupRead
from inventrack.services.auth import AuthService
from inventrack.services.errors import InvalidCode

router = APIRouter(prefix="/api/two-factor", tags=["two-factor"])


@router.get("/setup", response_model=TwoFactorSetupRead)
async def setup(
    user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    result = await service.begin_two_factor_setup(user.id)
    return TwoFactorSetupRead(
        secret_key=result.secret_key,
        provisioning_uri=result.provisioning_uri,
        manual_entry_key=result.manual_entry_key,
        qr_code_url=result.qr_code_url,
    )


@router.post("/enable")
async def enable(
    body: TwoFactorCodeRequest,
    user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    if not await service.confirm_two_factor_setup(user.id, body.code):
        raise InvalidCode()
    return {"success": True}


@router.post("/disable")
async def disable(
    user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    return {"success": await service.disable_two_factor(user.id)}


@router.post("/verify")
async def verify(
    body: TwoFactorCodeRequest,
    user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    return {"valid": await service.verify_two_factor_code(user.id, body.code)}
