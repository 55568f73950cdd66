import hashlib
import secrets

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from access_gateway.config import settings
from access_gateway.directory import PrincipalDirectory, get_directory
from access_gateway.exceptions import AuthenticationError
from access_gateway.policy import Principal, Role, RoleOnly, enforce
from access_gateway.tokens import TokenService, get_token_service

security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # stored value is not a bcrypt hash
        return False


def validate_password(password: str) -> tuple[bool, str]:
    if len(password) < settings.password_min_length:
        return False, f"Password must be at least {settings.password_min_length} characters"
    if password.isdigit() or password.isalpha():
        return False, "Password must mix letters with digits or symbols"
    return True, ""


def create_reset_token() -> tuple[str, str]:
    """Generate a password reset token and its hash. Returns (raw_token, token_hash)."""
    raw = secrets.token_urlsafe(32)
    return raw, hash_reset_token(raw)


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode()).hexdigest()


async def get_current_principal(
    creds: HTTPAuthorizationCredentials | None = Depends(security),
    tokens: TokenService = Depends(get_token_service),
    directory: PrincipalDirectory = Depends(get_directory),
) -> Principal:
    if creds is None or not creds.credentials:
        raise AuthenticationError()
    claims = tokens.validate(creds.credentials)
    return Principal(claims.subject, claims.roles, directory)


def require_roles(*roles: Role | str):
    """Dependency factory: require any of ``roles`` (ADMIN always passes)."""
    requirement = RoleOnly(roles)

    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        await enforce(principal, requirement)
        return principal

    return dependency
