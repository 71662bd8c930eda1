"""Access-token signing and validation, refresh-token minting."""

import time
from datetime import datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from inventrack.config import TokenConfig
from inventrack.models.user import User
from inventrack.services import codec
from inventrack.utils.clock import Clock, utc_now


class InvalidSignature(JWTError):
    """Token failed signature or algorithm checks."""


class SessionIssuer:
    def __init__(self, config: TokenConfig, clock: Clock = time.time):
        self._config = config
        self._clock = clock

    @property
    def config(self) -> TokenConfig:
        return self._config

    def issue_access_token(self, user: User, roles: list[str]) -> tuple[str, datetime]:
        """Sign a short-lived access token. Returns (token, expires_at)."""
        now = utc_now(self._clock)
        expires_at = now + timedelta(minutes=self._config.access_ttl_minutes)
        payload = {
            "sub": str(user.id),
            "username": user.username,
            "email": user.email,
            "roles": list(roles),
            "iat": now,
            "exp": expires_at,
            "iss": self._config.issuer,
            "aud": self._config.audience,
        }
        token = jwt.encode(payload, self._config.secret, algorithm=self._config.algorithm)
        return token, expires_at

    def issue_refresh_token_value(self) -> str:
        return codec.generate_opaque_token()

    def refresh_token_expiry(self) -> datetime:
        return utc_now(self._clock) + timedelta(days=self._config.refresh_ttl_days)

    def reset_token_expiry(self) -> datetime:
        return utc_now(self._clock) + timedelta(minutes=self._config.reset_ttl_minutes)

    def decode_access_token(self, token: str) -> dict[str, Any] | None:
        """Fully validate an access token. Returns None on any failure."""
        try:
            claims = jwt.decode(
                token,
                self._config.secret,
                algorithms=[self._config.algorithm],
                audience=self._config.audience,
                issuer=self._config.issuer,
                options={"verify_exp": False},
            )
        except JWTError:
            return None
        # Expiry is judged by the injected clock, not jose's wall clock
        exp = claims.get("exp")
        if not isinstance(exp, (int, float)) or exp <= self._clock():
            return None
        return claims

    def parse_claims_ignoring_expiry(self, token: str) -> dict[str, Any]:
        """Recover claims from a possibly expired token during refresh.

        Signature and algorithm are enforced; expiry, issuer and audience are
        not. Never use the result to authorize a request.
        """
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise InvalidSignature(f"Malformed token: {e}") from e
        if header.get("alg") != self._config.algorithm:
            raise InvalidSignature(f"Unexpected algorithm {header.get('alg')!r}")
        try:
            return jwt.decode(
                token,
                self._config.secret,
                algorithms=[self._config.algorithm],
                options={"verify_exp": False, "verify_aud": False, "verify_iss": False},
            )
        except JWTError as e:
            raise InvalidSignature(f"Invalid token: {e}") from e
