"""
AuthorizationGate - derives the caller's effective role and gates access.

Phases:
- ANONYMOUS: no identity (public surface only)
- AUTHENTICATING: identity present, role not resolved yet (or re-resolving)
- RESOLVED: role known (none | manager | boss)

Transitions:
- ANONYMOUS → AUTHENTICATING: identity acquired
- AUTHENTICATING → RESOLVED: role query succeeded
- RESOLVED → AUTHENTICATING: role expired, invalidated, or an authorization
  fault came back from a privileged call
- any → ANONYMOUS: logout / identity cleared
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Awaitable, Callable

from loguru import logger

from cemetery.domain.types import AccessRole
from cemetery.services.classifier import FailureKind, classify_failure
from cemetery.services.errors import AccessDeniedError
from cemetery.settings import global_settings

ANONYMOUS_PRINCIPAL = "2vxsx-fae"


class GatePhase(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    RESOLVED = "resolved"


class AccessView(str, Enum):
    """Which top-level view the caller may be shown."""

    PUBLIC = "public"
    LOADING = "loading"
    ADMIN = "admin"
    ACCESS_DENIED = "access-denied"
    LOGIN_REQUIRED = "login-required"


class Capability(str, Enum):
    """Privileged capabilities. OPERATE: manager or boss. DELEGATE: boss only."""

    OPERATE = "operate"
    DELEGATE = "delegate"


@dataclass(frozen=True)
class AuthorizationState:
    """Immutable snapshot passed explicitly through the call chain."""

    phase: GatePhase = GatePhase.ANONYMOUS
    principal: str | None = None
    role: AccessRole | None = None
    resolved_at: datetime | None = None
    access_denied: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.phase is not GatePhase.ANONYMOUS

    @property
    def is_boss(self) -> bool:
        return self.phase is GatePhase.RESOLVED and self.role is AccessRole.BOSS

    @property
    def is_manager(self) -> bool:
        return self.phase is GatePhase.RESOLVED and self.role is AccessRole.MANAGER

    @property
    def is_allowed(self) -> bool:
        return self.is_boss or self.is_manager

    def can(self, capability: Capability) -> bool:
        if capability is Capability.DELEGATE:
            return self.is_boss
        return self.is_allowed


class AuthorizationGate:
    """
    Owns the AuthorizationState for one session.

    Usage:
        gate = AuthorizationGate()
        gate.acquire_identity(principal)
        await gate.resolve(service.get_access_role)
        gate.require(Capability.OPERATE)
    """

    def __init__(
        self,
        role_ttl: timedelta | None = None,
        on_change: Callable[[AuthorizationState], None] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._role_ttl = role_ttl or timedelta(
            seconds=global_settings.role_ttl_seconds
        )
        self._on_change = on_change
        self._clock = clock
        self._state = AuthorizationState()

    @property
    def state(self) -> AuthorizationState:
        return self._state

    @property
    def needs_resolution(self) -> bool:
        if self._state.phase is GatePhase.AUTHENTICATING:
            return True
        return self.is_expired

    @property
    def is_expired(self) -> bool:
        """A resolved role older than the role TTL grants nothing."""
        state = self._state
        if state.phase is not GatePhase.RESOLVED or state.resolved_at is None:
            return False
        return self._clock() > state.resolved_at + self._role_ttl

    @property
    def view(self) -> AccessView:
        state = self._state
        if state.phase is GatePhase.ANONYMOUS:
            return AccessView.LOGIN_REQUIRED if state.access_denied else AccessView.PUBLIC
        if state.phase is GatePhase.AUTHENTICATING:
            return AccessView.ACCESS_DENIED if state.access_denied else AccessView.LOADING
        return AccessView.ADMIN if state.is_allowed else AccessView.ACCESS_DENIED

    def acquire_identity(self, principal: str | None) -> AuthorizationState:
        """Start authenticating ``principal``; anonymous principals clear the gate."""
        if not principal or principal == ANONYMOUS_PRINCIPAL:
            return self.clear()
        if principal == self._state.principal and self._state.is_authenticated:
            return self._state
        return self._transition(
            AuthorizationState(phase=GatePhase.AUTHENTICATING, principal=principal)
        )

    async def resolve(
        self,
        fetch_role: Callable[[], Awaitable[AccessRole]],
        force: bool = False,
    ) -> AuthorizationState:
        """
        Resolve the role with one remote query, reusing a fresh resolution.

        An authorization fault from the role query resolves to ``none``; other
        failures propagate and leave the gate AUTHENTICATING.
        """
        if self._state.phase is GatePhase.ANONYMOUS:
            return self._state
        if not force and not self.needs_resolution:
            return self._state

        principal = self._state.principal
        try:
            role = await fetch_role()
        except Exception as e:
            if classify_failure(e) is not FailureKind.AUTHORIZATION:
                raise
            logger.info(f"Role query denied for {principal}: {e}")
            role = AccessRole.NONE

        if self._state.principal != principal:
            # Identity changed while the query was in flight
            return self._state

        return self._transition(
            AuthorizationState(
                phase=GatePhase.RESOLVED,
                principal=principal,
                role=role,
                resolved_at=self._clock(),
            )
        )

    def can(self, capability: Capability) -> bool:
        return not self.is_expired and self._state.can(capability)

    def require(self, capability: Capability) -> AuthorizationState:
        """Raise AccessDeniedError unless a fresh resolved role grants ``capability``."""
        if self.can(capability):
            return self._state
        required = "boss" if capability is Capability.DELEGATE else "manager"
        if not self._state.is_authenticated:
            raise AccessDeniedError(required, "Login required")
        if self.is_expired:
            raise AccessDeniedError(required, "Role must be resolved again")
        raise AccessDeniedError(required)

    def invalidate(self) -> AuthorizationState:
        """Drop the resolved role but keep the identity."""
        if self._state.phase is GatePhase.ANONYMOUS:
            return self._state
        return self._transition(
            replace(self._state, phase=GatePhase.AUTHENTICATING, resolved_at=None)
        )

    def handle_authorization_fault(self, error: Exception) -> AccessView:
        """
        React to a privileged call rejected by the service: force the role to
        be resolved again and switch to the access-denied view.
        """
        logger.warning(f"Authorization fault, forcing role re-resolution: {error}")
        if self._state.phase is GatePhase.ANONYMOUS:
            self._transition(replace(self._state, access_denied=True))
        else:
            self._transition(
                replace(
                    self._state,
                    phase=GatePhase.AUTHENTICATING,
                    role=None,
                    resolved_at=None,
                    access_denied=True,
                )
            )
        return self.view

    def clear(self) -> AuthorizationState:
        """Logout: forget identity and role."""
        return self._transition(AuthorizationState())

    def _transition(self, state: AuthorizationState) -> AuthorizationState:
        previous = self._state
        self._state = state
        if (previous.phase, previous.role, previous.principal) != (
            state.phase,
            state.role,
            state.principal,
        ):
            logger.info(
                f"Authorization {previous.phase.value} -> {state.phase.value}"
                + (f" ({state.role.value})" if state.role else "")
            )
        if self._on_change and state != previous:
            self._on_change(state)
        return state
