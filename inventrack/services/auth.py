"""Authentication flows: login, refresh-token rotation, two-factor, password reset."""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from inventrack.models.user import User
from inventrack.schemas.auth import UserRead
from inventrack.services import codec, totp
from inventrack.services.errors import (
    DecodeError,
    InvalidCode,
    InvalidCredentials,
    InvalidRefreshToken,
    InvalidResetToken,
    PrincipalNotFound,
    RegistrationConflict,
    TwoFactorAlreadyEnabled,
)
from inventrack.services.issuer import InvalidSignature, SessionIssuer
from inventrack.services.passwords import DUMMY_HASH, hash_password, verify_password
from inventrack.services.token_store import TokenStore
from inventrack.services.users import UserStore, normalize_email
from inventrack.utils.clock import Clock

logger = logging.getLogger(__name__)


@dataclass
class AuthResult:
    user: UserRead
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None
    requires_two_factor: bool = False


@dataclass
class TwoFactorSetup:
    secret_key: str
    provisioning_uri: str
    manual_entry_key: str
    qr_code_url: str


class AuthService:
    def __init__(
        self,
        users: UserStore,
        tokens: TokenStore,
        issuer: SessionIssuer,
        default_role: str = "User",
        clock: Clock = time.time,
    ):
        self._users = users
        self._tokens = tokens
        self._issuer = issuer
        self._default_role = default_role
        self._clock = clock

    # -- sessions ---------------------------------------------------------

    async def _issue_session(self, user: User) -> AuthResult:
        roles = await self._users.get_roles(user.id)
        access_token, expires_at = self._issuer.issue_access_token(user, roles)
        refresh_token = self._issuer.issue_refresh_token_value()
        await self._tokens.insert_refresh_token(
            user.id, refresh_token, self._issuer.refresh_token_expiry()
        )
        return AuthResult(
            user=UserRead.model_validate(user),
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        phone_number: str | None = None,
    ) -> AuthResult:
        if await self._users.find_conflict(username, email):
            raise RegistrationConflict("User with this email or username already exists")

        password_hash = await asyncio.to_thread(hash_password, password)
        try:
            user = await self._users.create(
                username=username,
                email=email,
                password_hash=password_hash,
                phone_number=phone_number,
                roles=[self._default_role],
            )
        except IntegrityError:
            # Lost a race with a concurrent registration for the same name or email
            raise RegistrationConflict("User with this email or username already exists")
        logger.info(f"Registered user {user.id}")
        return await self._issue_session(user)

    async def login(self, email: str, password: str, two_factor_code: str | None = None) -> AuthResult:
        """Check credentials and, when enabled, the TOTP code.

        With two-factor enabled and no code supplied, returns a result with
        ``requires_two_factor=True`` and no tokens.
        """
        user = await self._users.get_by_email(email)
        if user is None:
            await asyncio.to_thread(verify_password, password, DUMMY_HASH)
            raise InvalidCredentials()

        password_ok = await asyncio.to_thread(verify_password, password, user.password_hash)
        if not password_ok or not user.is_active:
            logger.warning(f"Failed login for user {user.id}")
            raise InvalidCredentials()

        if user.two_factor_enabled:
            if not two_factor_code:
                return AuthResult(user=UserRead.model_validate(user), requires_two_factor=True)
            if not await self.verify_two_factor_code(user.id, two_factor_code):
                logger.warning(f"Invalid two-factor code at login for user {user.id}")
                raise InvalidCode("Invalid two-factor authentication code")

        user.last_login_at = await self._users.touch_last_login(user.id)
        result = await self._issue_session(user)
        logger.info(f"User {user.id} logged in")
        return result

    async def refresh(self, refresh_token: str, access_token: str | None = None) -> AuthResult:
        """Rotate a refresh token: revoke the presented one, issue a new pair.

        Every failure raises the same InvalidRefreshToken.
        """
        claimed_subject = None
        if access_token:
            try:
                claims = self._issuer.parse_claims_ignoring_expiry(access_token)
            except InvalidSignature:
                logger.warning("Refresh rejected: access token failed signature check")
                raise InvalidRefreshToken()
            claimed_subject = claims.get("sub")

        user_id = await self._tokens.consume_refresh_token(refresh_token)
        if user_id is None:
            logger.warning("Refresh rejected: token unknown, expired or already used")
            raise InvalidRefreshToken()

        if claimed_subject is not None and claimed_subject != str(user_id):
            logger.warning(f"Refresh rejected: access token subject does not own token of user {user_id}")
            raise InvalidRefreshToken()

        user = await self._users.get(user_id)
        if user is None or not user.is_active:
            raise InvalidRefreshToken()

        result = await self._issue_session(user)
        logger.info(f"Rotated refresh token for user {user_id}")
        return result

    async def resolve_access_token(self, access_token: str) -> User | None:
        """Active user behind a valid, unexpired access token."""
        claims = self._issuer.decode_access_token(access_token)
        if claims is None:
            return None
        try:
            user_id = int(claims["sub"])
        except (KeyError, TypeError, ValueError):
            return None
        user = await self._users.get(user_id)
        if user is None or not user.is_active:
            return None
        return user

    async def logout(self, refresh_token: str) -> None:
        if await self._tokens.revoke_refresh_token(refresh_token):
            logger.info("Refresh token revoked on logout")

    async def logout_all(self, user_id: int) -> int:
        count = await self._tokens.revoke_all_refresh_tokens(user_id)
        logger.info(f"Revoked {count} refresh tokens for user {user_id}")
        return count

    # -- two-factor -------------------------------------------------------

    def _check_code(self, secret_key: str, code: str | None) -> bool:
        try:
            secret = codec.decode(secret_key)
        except DecodeError:
            logger.error("Stored two-factor secret is not valid base32")
            return False
        return totp.verify_code(secret, code, self._clock)

    async def begin_two_factor_setup(self, user_id: int) -> TwoFactorSetup:
        """Store a fresh inactive secret and return what the authenticator app needs."""
        user = await self._users.get(user_id)
        if user is None:
            raise PrincipalNotFound()
        if user.two_factor_enabled:
            raise TwoFactorAlreadyEnabled()

        secret_key = codec.encode(codec.generate_random_secret())
        await self._tokens.upsert_two_factor_secret(user_id, secret_key, active=False)

        uri = totp.build_provisioning_uri(self._issuer.config.totp_issuer, user.email, secret_key)
        logger.info(f"Started two-factor setup for user {user_id}")
        return TwoFactorSetup(
            secret_key=secret_key,
            provisioning_uri=uri,
            manual_entry_key=codec.format_for_manual_entry(secret_key),
            qr_code_url=totp.render_qr_data_url(uri),
        )

    async def confirm_two_factor_setup(self, user_id: int, code: str) -> bool:
        """Activate the stored secret if ``code`` proves possession of it."""
        secret = await self._tokens.find_two_factor_secret(user_id)
        if secret is None or secret.disabled_at is not None:
            logger.warning(f"Two-factor confirmation without pending setup for user {user_id}")
            return False
        if not self._check_code(secret.secret_key, code):
            logger.warning(f"Two-factor confirmation failed for user {user_id}")
            return False

        activated = await self._tokens.set_two_factor_active(
            user_id, True, expected_secret=secret.secret_key
        )
        if activated:
            logger.info(f"Two-factor enabled for user {user_id}")
        return activated

    async def disable_two_factor(self, user_id: int) -> bool:
        """Deactivate the secret and clear the user flag.

        The value is kept but marked disabled; turning two-factor back on needs
        a fresh setup and confirm.
        """
        user = await self._users.get(user_id)
        if user is None:
            raise PrincipalNotFound()
        await self._tokens.set_two_factor_active(user_id, False)
        logger.info(f"Two-factor disabled for user {user_id}")
        return True

    async def verify_two_factor_code(self, user_id: int, code: str | None) -> bool:
        secret = await self._tokens.find_active_two_factor_secret(user_id)
        if secret is None:
            # Same amount of work as a wrong code
            self._check_code(codec.encode(codec.generate_random_secret()), code)
            return False
        return self._check_code(secret.secret_key, code)

    # -- passwords --------------------------------------------------------

    async def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        user = await self._users.get(user_id)
        if user is None:
            raise PrincipalNotFound()
        if not await asyncio.to_thread(verify_password, current_password, user.password_hash):
            raise InvalidCredentials("Current password is incorrect")

        await self._users.update_password(user_id, await asyncio.to_thread(hash_password, new_password))
        await self._tokens.revoke_all_refresh_tokens(user_id)
        logger.info(f"Password changed for user {user_id}")

    async def request_password_reset(self, email: str) -> str | None:
        """Issue a single-use reset token, or None for unknown/inactive emails.

        Delivering the token is the caller's job; callers must answer the same
        way whether or not a token was issued.
        """
        user = await self._users.get_by_email(email)
        if user is None or not user.is_active:
            return None
        token = codec.generate_opaque_token()
        await self._tokens.insert_password_reset_token(user.id, token, self._issuer.reset_token_expiry())
        logger.info(f"Password reset requested for user {user.id}")
        return token

    async def reset_password(self, token: str, new_password: str, email: str | None = None) -> None:
        if email is not None:
            row = await self._tokens.find_usable_password_reset_token(token)
            owner = await self._users.get(row.user_id) if row else None
            if owner is None or owner.email != normalize_email(email):
                raise InvalidResetToken()

        user_id = await self._tokens.consume_password_reset_token(token)
        if user_id is None:
            raise InvalidResetToken()

        await self._users.update_password(user_id, await asyncio.to_thread(hash_password, new_password))
        await self._tokens.revoke_all_refresh_tokens(user_id)
        logger.info(f"Password reset completed for user {user_id}")
