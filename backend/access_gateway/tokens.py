"""Signed bearer tokens carrying subject and a role snapshot.

Roles are captured at issuance. A token keeps the roles it was issued with
until it expires, even if the account's roles change in the meantime.
"""
import math
import time
from typing import Callable, Iterable

from jose import jwt
from jose.exceptions import JWTClaimsError, JWTError

from access_gateway.config import settings
from access_gateway.exceptions import TokenExpiredError, TokenMalformedError, TokenTamperedError


class TokenClaims:
    def __init__(self, subject: str, roles: tuple[str, ...], issued_at: int, expires_at: int):
        self.subject = subject
        self.roles = roles
        self.issued_at = issued_at
        self.expires_at = expires_at

    def to_dict(self) -> dict:
        return {
            "subject": self.subject,
            "roles": list(self.roles),
            "issued_at": self.issued_at,
            "expires_at": self.expires_at,
        }


class TokenService:
    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        ttl_seconds: int = 86400,
        clock_skew_seconds: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        self._secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds
        self.clock_skew_seconds = clock_skew_seconds
        self._clock = clock

    def issue(self, subject: str, roles: Iterable[str]) -> str:
        now = int(self._clock())
        payload = {
            "sub": subject,
            "roles": list(dict.fromkeys(roles)),
            "iat": now,
            "exp": now + self.ttl_seconds,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def validate(self, token: str) -> TokenClaims:
        """Verify signature and expiry. Raises an ``AuthenticationError`` subclass on any failure."""
        if not isinstance(token, str) or token.count(".") != 2:
            raise TokenMalformedError("token is not a three-part JWS")
        try:
            header = jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as e:
            raise TokenMalformedError(f"undecodable token: {e}")
        if header.get("alg") != self.algorithm:
            raise TokenTamperedError(f"unexpected algorithm {header.get('alg')!r}")

        try:
            # exp is checked below against the injected clock
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTClaimsError as e:
            raise TokenMalformedError(f"invalid claims: {e}")
        except JWTError as e:
            raise TokenTamperedError(f"signature verification failed: {e}")

        claims = _parse_claims(payload)
        if self._clock() > claims.expires_at + self.clock_skew_seconds:
            raise TokenExpiredError(f"token for {claims.subject!r} expired at {claims.expires_at}")
        return claims

    def decode_roles(self, token: str) -> tuple[str, ...]:
        return self.validate(token).roles


def _parse_claims(payload: dict) -> TokenClaims:
    subject = payload.get("sub")
    roles = payload.get("roles")
    issued_at = payload.get("iat")
    expires_at = payload.get("exp")
    if not isinstance(subject, str) or not subject:
        raise TokenMalformedError("missing subject claim")
    if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
        raise TokenMalformedError("roles claim is not a list of strings")
    if not _is_timestamp(expires_at) or not _is_timestamp(issued_at):
        raise TokenMalformedError("missing or invalid iat/exp claim")
    return TokenClaims(subject, tuple(roles), int(issued_at), int(expires_at))


def _is_timestamp(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


_token_service: TokenService | None = None


def get_token_service() -> TokenService:
    global _token_service
    if _token_service is None:
        _token_service = TokenService(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            ttl_seconds=settings.token_ttl_seconds,
            clock_skew_seconds=settings.clock_skew_seconds,
        )
    return _token_service
