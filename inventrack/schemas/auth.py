"""Pydantic schemas for the auth and two-factor APIs."""

from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator


class UserRead(BaseModel):
    id: int
    username: str
    email: str
    phone_number: str | None = None
    is_active: bool
    two_factor_enabled: bool
    created_at: datetime
    last_login_at: datetime | None = None
    # password_hash is NEVER exposed

    model_config = {"from_attributes": True}


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=100)
    confirm_password: str
    phone_number: str | None = None

    @field_validator("username")
    @classmethod
    def _trim_username(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("must not be empty")
        return text

    @model_validator(mode="after")
    def _passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("passwords do not match")
        return self


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    two_factor_code: str | None = None


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)
    access_token: str | None = None  # stale access token, optional


class LogoutRequest(BaseModel):
    refresh_token: str


class AuthResponse(BaseModel):
    access_token: str | None = None
    refresh_token: str | None = None
    token_type: str = "bearer"
    expires_at: datetime | None = None
    user: UserRead | None = None
    requires_two_factor: bool = False


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6, max_length=100)
    confirm_new_password: str

    @model_validator(mode="after")
    def _passwords_match(self) -> "ChangePasswordRequest":
        if self.new_password != self.confirm_new_password:
            raise ValueError("passwords do not match")
        return self


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    email: EmailStr | None = None
    new_password: str = Field(min_length=6, max_length=100)
    confirm_new_password: str

    @model_validator(mode="after")
    def _passwords_match(self) -> "ResetPasswordRequest":
        if self.new_password != self.confirm_new_password:
            raise ValueError("passwords do not match")
        return self


class MessageResponse(BaseModel):
    message: str


class TwoFactorSetupRead(BaseModel):
    secret_key: str
    provisioning_uri: str
    manual_entry_key: str
    qr_code_url: str  # data:image/png;base64,...


class TwoFactorCodeRequest(BaseModel):
    code: str

    @field_validator("code")
    @classmethod
    def _strip_code(cls, value: str) -> str:
        return "".join(value.split())
