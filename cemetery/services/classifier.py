"""
Failure classification for remote calls.

Every failure is labelled exactly one of:
- AUTHORIZATION: caller lacks the required role (boss lock, manager-only, login)
- DOMAIN: typed business-rule rejection; deterministic, never retried
- CONNECTIVITY: anything else (transport, timeout, handle not ready)
"""

from enum import Enum
from typing import Any

from cemetery.domain.results import Err, Unauthorized
from cemetery.services.errors import AccessDeniedError, DomainRuleError

BOSS_LOCK_PHRASE = "Only the Boss can perform this action"

# Lowercase substrings the remote service uses in access-denial traps
AUTHORIZATION_PHRASES = (
    "unauthorized",
    "only the boss",
    "boss-lock",
    "only admins",
    "only users",
    "access denied",
    "neither boss nor manager",
    "login required",
    "please log in",
    "anonymous",
)


class FailureKind(str, Enum):
    """Failure classes with distinct propagation policies."""

    CONNECTIVITY = "connectivity"
    DOMAIN = "domain"
    AUTHORIZATION = "authorization"

    @property
    def retryable(self) -> bool:
        return self is FailureKind.CONNECTIVITY


def failure_message(error: Any) -> str:
    if error is None:
        return ""
    message = getattr(error, "message", None)
    if isinstance(message, str):
        return message
    return str(error)


def is_authorization_message(message: str) -> bool:
    lowered = message.lower()
    return any(phrase in lowered for phrase in AUTHORIZATION_PHRASES)


def is_boss_lock_message(message: str) -> bool:
    return BOSS_LOCK_PHRASE.lower() in message.lower()


def classify_failure(error: Any) -> FailureKind:
    """Label a failure from a remote call."""
    if isinstance(error, Err):
        error = DomainRuleError(error.error)

    if isinstance(error, DomainRuleError):
        if isinstance(error.error, Unauthorized):
            return FailureKind.AUTHORIZATION
        return FailureKind.DOMAIN

    if isinstance(error, AccessDeniedError):
        return FailureKind.AUTHORIZATION

    if is_authorization_message(failure_message(error)):
        return FailureKind.AUTHORIZATION

    return FailureKind.CONNECTIVITY
