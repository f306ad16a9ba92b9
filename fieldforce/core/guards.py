"""Composable authorization guards and the FastAPI dependency that runs them.

A guard looks at the verified claims of a request plus the resource it
targets and either passes or fails with a reason. Guards run in declaration
order and the first failure ends the chain. They never touch storage: every
check is against the claims already carried in the token.

Usage::

    @router.get("/{userId}")
    async def get_user(
        userId: str,
        claims: Claims = Depends(Authorize(require_owner_or_min_level("userId", 30))),
    ):
        ...
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials

from fieldforce.core.config import Settings
from fieldforce.core.exceptions import ForbiddenError, UnauthenticatedError
from fieldforce.core.security import Claims, TokenPurpose, security_scheme
from fieldforce.models.role import SUPER_ADMIN_ROLE

logger = logging.getLogger("fieldforce.rbac")


class DecisionKind(str, enum.Enum):
    authorized = "authorized"
    unauthenticated = "unauthenticated"
    forbidden = "forbidden"


DEFAULT_OWNER_OVERRIDE_LEVEL = 30


@dataclass(frozen=True)
class ResourceContext:
    """What the request is aimed at; for HTTP callers, the path parameters.

    ``settings`` is the running app's configuration, for guards whose
    thresholds are configurable.
    """

    params: Mapping[str, str] = field(default_factory=dict)
    settings: Optional[Settings] = None

    @property
    def owner_override_level(self) -> int:
        if self.settings is None:
            return DEFAULT_OWNER_OVERRIDE_LEVEL
        return self.settings.OWNER_OVERRIDE_MIN_LEVEL

    def get(self, key: str) -> Optional[str]:
        value = self.params.get(key)
        return None if value is None else str(value)


@dataclass(frozen=True)
class GuardResult:
    passed: bool
    kind: DecisionKind = DecisionKind.authorized
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "GuardResult":
        return cls(passed=True)

    @classmethod
    def unauthenticated(cls, reason: str = "Authentication required") -> "GuardResult":
        return cls(passed=False, kind=DecisionKind.unauthenticated, reason=reason)

    @classmethod
    def forbidden(cls, reason: str) -> "GuardResult":
        return cls(passed=False, kind=DecisionKind.forbidden, reason=reason)


@dataclass(frozen=True)
class Decision:
    kind: DecisionKind
    reason: Optional[str] = None
    guard: Optional[str] = None

    @property
    def authorized(self) -> bool:
        return self.kind is DecisionKind.authorized

    def raise_for_decision(self) -> None:
        """Turn a rejection into the matching operational error."""
        if self.kind is DecisionKind.unauthenticated:
            raise UnauthenticatedError(self.reason or "Authentication required")
        if self.kind is DecisionKind.forbidden:
            raise ForbiddenError(self.reason or "Insufficient permissions")


Guard = Callable[[Optional[Claims], ResourceContext], GuardResult]


def _named(name: str, fn: Guard) -> Guard:
    fn.__name__ = name
    fn.__qualname__ = name
    return fn


def require_authenticated() -> Guard:
    """Pass when verified access-token claims are present."""

    def guard(claims: Optional[Claims], context: ResourceContext) -> GuardResult:
        if claims is None:
            return GuardResult.unauthenticated()
        if claims.purpose is not TokenPurpose.access:
            return GuardResult.unauthenticated("An access token is required")
        return GuardResult.ok()

    return _named("require_authenticated", guard)


def require_role(*allowed: str) -> Guard:
    allowed_roles = frozenset(allowed)

    def guard(claims: Optional[Claims], context: ResourceContext) -> GuardResult:
        if claims is None:
            return GuardResult.unauthenticated()
        if claims.role_name in allowed_roles:
            return GuardResult.ok()
        return GuardResult.forbidden(
            f"Role '{claims.role_name}' is not authorized to access this resource"
        )

    return _named(f"require_role({', '.join(allowed)})", guard)


def require_min_level(minimum: int) -> Guard:
    def guard(claims: Optional[Claims], context: ResourceContext) -> GuardResult:
        if claims is None:
            return GuardResult.unauthenticated()
        if claims.role_level >= minimum:
            return GuardResult.ok()
        return GuardResult.forbidden(
            f"Minimum role level {minimum} required. Your level: {claims.role_level}"
        )

    return _named(f"require_min_level({minimum})", guard)


def require_permission(*required: str) -> Guard:
    """Pass when every named permission is in the token snapshot.

    SUPER_ADMIN passes without looking at the snapshot at all, so a seed that
    forgets to map a permission cannot lock the super admin out.
    """
    required_perms = tuple(required)

    def guard(claims: Optional[Claims], context: ResourceContext) -> GuardResult:
        if claims is None:
            return GuardResult.unauthenticated()
        if claims.role_name == SUPER_ADMIN_ROLE:
            return GuardResult.ok()
        missing = [p for p in required_perms if p not in claims.permissions]
        if not missing:
            return GuardResult.ok()
        return GuardResult.forbidden(f"Missing required permissions: {', '.join(missing)}")

    return _named(f"require_permission({', '.join(required)})", guard)


def require_owner_or_min_level(param_key: str = "userId", minimum: Optional[int] = None) -> Guard:
    """Pass for the resource owner, or for anyone at ``minimum`` level or above.

    Without an explicit ``minimum`` the level is read per request from
    ``OWNER_OVERRIDE_MIN_LEVEL`` in the context's settings.
    """

    def guard(claims: Optional[Claims], context: ResourceContext) -> GuardResult:
        if claims is None:
            return GuardResult.unauthenticated()
        if claims.user_id == context.get(param_key):
            return GuardResult.ok()
        threshold = minimum if minimum is not None else context.owner_override_level
        if claims.role_level >= threshold:
            return GuardResult.ok()
        return GuardResult.forbidden("You can only access your own resources")

    label = minimum if minimum is not None else "OWNER_OVERRIDE_MIN_LEVEL"
    return _named(f"require_owner_or_min_level({param_key}, {label})", guard)


class GuardChain:
    """Short-circuiting AND over guards, with authentication checked first."""

    def __init__(self, *guards: Guard):
        self.guards = (require_authenticated(),) + tuple(guards)

    def evaluate(self, claims: Optional[Claims], context: Optional[ResourceContext] = None) -> Decision:
        context = context or ResourceContext()
        for guard in self.guards:
            result = guard(claims, context)
            if not result.passed:
                return Decision(kind=result.kind, reason=result.reason, guard=guard.__name__)
        return Decision(kind=DecisionKind.authorized)


class Authorize:
    """Dependency that verifies the bearer token and runs a guard chain.

    Returns the caller's claims when every guard passes.
    """

    def __init__(self, *guards: Guard):
        self.chain = GuardChain(*guards)

    async def __call__(
        self,
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    ) -> Claims:
        if credentials is None or not credentials.credentials:
            raise UnauthenticatedError("Access token is missing or malformed")

        tokens = request.app.state.tokens
        claims = tokens.verify(credentials.credentials, TokenPurpose.access)

        context = ResourceContext(
            params=dict(request.path_params),
            settings=getattr(request.app.state, "settings", None),
        )
        decision = self.chain.evaluate(claims, context)
        if not decision.authorized:
            logger.info(
                "Rejected %s for %s %s by %s: %s",
                claims.user_id, request.method, request.url.path, decision.guard, decision.reason,
            )
            decision.raise_for_decision()

        logger.debug("Authorized %s for %s %s", claims.user_id, request.method, request.url.path)
        return claims
