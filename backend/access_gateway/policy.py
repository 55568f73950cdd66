"""Authorization decisions over roles, ownership and branch membership.

Endpoints describe what they need as a requirement value and ask
``authorize``/``enforce`` for a decision:

    RoleOnly({"ADMIN", "FACULTY"})          role check, ADMIN always passes
    SelfOnly(owner_id)                      principal owns the resource
    RoleOrSelf({"ADMIN", "FACULTY"}, id)    either of the above
    BranchScoped(branch_id)                 ADMIN, or FACULTY of that branch
    AnyOf(req, req, ...)                    first allow wins

Ownership and branch checks need the principal's own student/faculty row.
It is fetched at most once per request and only when a rule needs it; ADMIN
short-circuits before any lookup. A missing row always denies.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, TypeVar

from access_gateway.directory import OrgContext, PrincipalDirectory
from access_gateway.exceptions import DenialReason, PolicyDeniedError
from access_gateway.utils import mask_email

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Role(str, Enum):
    ADMIN = "ADMIN"
    FACULTY = "FACULTY"
    STUDENT = "STUDENT"


class Principal:
    """Authenticated identity for the duration of one request."""

    def __init__(self, subject: str, roles: Iterable[str], directory: PrincipalDirectory):
        self.subject = subject
        self.roles = frozenset(roles)
        self._directory = directory
        self._context: OrgContext | None = None
        self._resolved = False

    def has_role(self, role: Role | str) -> bool:
        return (role.value if isinstance(role, Role) else role) in self.roles

    @property
    def is_admin(self) -> bool:
        return self.has_role(Role.ADMIN)

    async def context(self) -> OrgContext | None:
        if not self._resolved:
            self._context = await self._directory.find_context(self.subject)
            self._resolved = True
        return self._context


@dataclass(frozen=True)
class RoleOnly:
    allowed_roles: frozenset[str]

    def __post_init__(self):
        object.__setattr__(self, "allowed_roles", _role_names(self.allowed_roles))


@dataclass(frozen=True)
class SelfOnly:
    owner_id: int | None


@dataclass(frozen=True)
class RoleOrSelf:
    allowed_roles: frozenset[str]
    owner_id: int | None

    def __post_init__(self):
        object.__setattr__(self, "allowed_roles", _role_names(self.allowed_roles))


@dataclass(frozen=True)
class BranchScoped:
    branch_id: int | None


@dataclass(frozen=True)
class AnyOf:
    requirements: tuple

    def __init__(self, *requirements):
        if not requirements:
            raise ValueError("AnyOf needs at least one requirement")
        object.__setattr__(self, "requirements", requirements)


Requirement = RoleOnly | SelfOnly | RoleOrSelf | BranchScoped | AnyOf


class Decision:
    __slots__ = ("allowed", "reason")

    def __init__(self, allowed: bool, reason: DenialReason | None = None):
        self.allowed = allowed
        self.reason = reason

    def __bool__(self) -> bool:
        return self.allowed

    def __repr__(self) -> str:
        return "Decision(allow)" if self.allowed else f"Decision(deny, {self.reason.value})"


ALLOW = Decision(True)


def _deny(reason: DenialReason) -> Decision:
    return Decision(False, reason)


def _role_names(roles: Iterable[Role | str]) -> frozenset[str]:
    return frozenset(r.value if isinstance(r, Role) else r for r in roles)


def _check_roles(principal: Principal, allowed_roles: frozenset[str]) -> Decision:
    if principal.is_admin or principal.roles & allowed_roles:
        return ALLOW
    return _deny(DenialReason.WRONG_ROLE)


async def _check_self(principal: Principal, owner_id: int | None) -> Decision:
    ctx = await principal.context()
    if ctx is None:
        return _deny(DenialReason.MISSING_RECORD)
    if owner_id is None or ctx.numeric_id != owner_id:
        return _deny(DenialReason.NOT_OWNER)
    return ALLOW


async def _check_branch(principal: Principal, branch_id: int | None) -> Decision:
    if principal.is_admin:
        return ALLOW
    if not principal.has_role(Role.FACULTY):
        return _deny(DenialReason.WRONG_ROLE)
    ctx = await principal.context()
    if ctx is None or ctx.faculty is None:
        return _deny(DenialReason.MISSING_RECORD)
    if ctx.faculty.branch_id is None or branch_id is None or ctx.faculty.branch_id != branch_id:
        return _deny(DenialReason.WRONG_BRANCH)
    return ALLOW


async def authorize(principal: Principal, requirement: Requirement) -> Decision:
    if isinstance(requirement, RoleOnly):
        return _check_roles(principal, requirement.allowed_roles)
    if isinstance(requirement, SelfOnly):
        return await _check_self(principal, requirement.owner_id)
    if isinstance(requirement, RoleOrSelf):
        decision = _check_roles(principal, requirement.allowed_roles)
        if decision:
            return decision
        return await _check_self(principal, requirement.owner_id)
    if isinstance(requirement, BranchScoped):
        return await _check_branch(principal, requirement.branch_id)
    if isinstance(requirement, AnyOf):
        decision = None
        for member in requirement.requirements:
            decision = await authorize(principal, member)
            if decision:
                return decision
        return decision
    raise TypeError(f"Unknown requirement: {requirement!r}")


async def enforce(principal: Principal, requirement: Requirement) -> None:
    """Raise PolicyDeniedError unless ``requirement`` allows ``principal``."""
    decision = await authorize(principal, requirement)
    if not decision:
        logger.info(
            "Denied %s (roles=%s) on %r: %s",
            mask_email(principal.subject), sorted(principal.roles), requirement, decision.reason.value,
        )
        raise PolicyDeniedError(decision.reason)


async def filter_authorized(
    principal: Principal,
    items: Iterable[T],
    requirement_for: Callable[[T], Requirement],
) -> list[T]:
    """Keep the items whose requirement allows ``principal``."""
    allowed = []
    for item in items:
        if await authorize(principal, requirement_for(item)):
            allowed.append(item)
    return allowed
