"""Login and password-reset flows.

A login attempt passes the rate gate (``login:<email>``), then the lockout
tracker, and only then reaches password verification. Locked-out attempts
never touch the stored hash.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from access_gateway.auth import create_reset_token, hash_password, hash_reset_token, validate_password, verify_password
from access_gateway.config import settings
from access_gateway.directory import PrincipalDirectory
from access_gateway.exceptions import InvalidCredentialsError, LockedOutError, RateLimitError, ValidationError
from access_gateway.rate_limit import LockoutTracker, RateGate
from access_gateway.tokens import TokenService
from access_gateway.utils import mask_email, normalize_email

logger = logging.getLogger(__name__)


class LoginResult:
    def __init__(self, token: str, email: str, roles: list[str]):
        self.token = token
        self.email = email
        self.roles = roles

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "token_type": "bearer",
            "email": self.email,
            "roles": self.roles,
        }


class LoginService:
    def __init__(
        self,
        directory: PrincipalDirectory,
        tokens: TokenService,
        gate: RateGate,
        lockout: LockoutTracker,
        verify: Callable[[str, str], bool] = verify_password,
    ):
        self.directory = directory
        self.tokens = tokens
        self.gate = gate
        self.lockout = lockout
        self.verify = verify

    async def login(self, email: str, password: str) -> LoginResult:
        email = normalize_email(email)
        masked = mask_email(email)

        if self.gate.check_and_consume(f"login:{email}", settings.login_window_seconds, settings.login_max_per_window):
            raise RateLimitError(reason=f"login rate limit hit for {masked}")

        if self.lockout.is_locked_out(email):
            raise LockedOutError(retry_after=self.lockout.retry_after(email), reason=f"{masked} is locked out")

        account = await self.directory.find_account(email)
        if account is None or not self.verify(password, account.password_hash):
            locked = self.lockout.record_failure(email)
            if locked:
                logger.warning("Locking %s after %d failed logins", masked, self.lockout.threshold)
            raise InvalidCredentialsError(reason=f"bad credentials for {masked}")

        self.lockout.record_success(email)
        token = self.tokens.issue(account.email, account.roles)
        logger.info("Login succeeded for %s", masked)
        return LoginResult(token, account.email, list(account.roles))

    async def request_password_reset(self, email: str) -> str | None:
        """Issue a reset token for ``email``. Returns the raw token, or None if no such account.

        Callers must not reveal which case happened.
        """
        email = normalize_email(email)
        masked = mask_email(email)
        if self.gate.check_and_consume(f"reset:{email}", settings.reset_window_seconds, settings.reset_max_per_window):
            raise RateLimitError(reason=f"reset rate limit hit for {masked}")

        account = await self.directory.find_account(email)
        if account is None:
            logger.info("Password reset requested for unknown account %s", masked)
            return None

        raw, token_hash = create_reset_token()
        expires = datetime.now(timezone.utc) + timedelta(minutes=settings.reset_token_expire_minutes)
        await self.directory.store_reset_token(account.id, token_hash, expires)
        logger.info("Password reset token issued for %s", masked)
        return raw

    async def reset_password(self, token: str, new_password: str) -> None:
        found = await self.directory.find_account_by_reset_token(hash_reset_token(token))
        if found is None:
            raise ValidationError("Invalid or expired token")
        account, expires_at = found
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at < datetime.now(timezone.utc):
            raise ValidationError("Invalid or expired token")

        valid, msg = validate_password(new_password)
        if not valid:
            raise ValidationError(msg)

        await self.directory.update_password(account.id, hash_password(new_password))
        logger.info("Password reset completed for %s", mask_email(account.email))
