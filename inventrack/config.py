"""Application configuration via environment variables."""

from pydantic import BaseModel
from pydantic_settings import BaseSettings


class TokenConfig(BaseModel):
    """Immutable signing/TTL settings handed to the session issuer."""

    secret: str
    algorithm: str = "HS256"
    issuer: str = "InvenTrackPro"
    audience: str = "InvenTrackProUsers"
    access_ttl_minutes: int = 60
    refresh_ttl_days: int = 7
    reset_ttl_minutes: int = 60
    totp_issuer: str = "InvenTrackPro"

    model_config = {"frozen": True}


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./data/inventrack.db"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173"]  # Vite dev server

    # Auth
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "InvenTrackPro"
    jwt_audience: str = "InvenTrackProUsers"
    jwt_expire_minutes: int = 60
    refresh_token_expire_days: int = 7
    password_reset_expire_minutes: int = 60

    # Two-factor
    totp_issuer: str = "InvenTrackPro"

    default_role: str = "User"

    model_config = {"env_prefix": "IT_", "env_file": ".env"}

    def token_config(self) -> TokenConfig:
        return TokenConfig(
            secret=self.jwt_secret,
            algorithm=self.jwt_algorithm,
            issuer=self.jwt_issuer,
            audience=self.jwt_audience,
            access_ttl_minutes=self.jwt_expire_minutes,
            refresh_ttl_days=self.refresh_token_expire_days,
            reset_ttl_minutes=self.password_reset_expire_minutes,
            totp_issuer=self.totp_issuer,
        )


settings = Settings()
