"""
User-facing rendering of failures.

- connectivity: dismissible, retryable transient notice
- domain: actionable message naming the violated rule
- authorization: replaces the current view entirely
"""

from dataclasses import dataclass
from enum import Enum

from cemetery.domain.results import (
    AlleyNotEmpty,
    AlleyNotFound,
    DomainError,
    DuplicateAlley,
    Err,
    GraveNotFound,
    InconsistentAlleyGraves,
    InvariantViolation,
    Unauthorized,
)
from cemetery.services.classifier import (
    FailureKind,
    classify_failure,
    failure_message,
    is_boss_lock_message,
)
from cemetery.services.errors import DomainRuleError, ServiceUnavailableError


# Invariants the client itself checks, which are not about immutable fields
INVARIANT_MESSAGES = {
    "status": "only a free grave can be removed.",
    "manager": "manager already exists or was not found.",
}


class NoticeKind(str, Enum):
    TRANSIENT = "transient"
    DOMAIN = "domain"
    ACCESS_DENIED = "access-denied"


@dataclass(frozen=True)
class Notice:
    kind: NoticeKind
    message: str
    dismissible: bool = True
    retryable: bool = False
    replaces_view: bool = False


def describe_domain_error(error: DomainError) -> str:
    match error:
        case DuplicateAlley(alley=alley):
            return f"alley {alley} already exists."
        case AlleyNotFound(alley=alley):
            return f"alley {alley} does not exist."
        case AlleyNotEmpty(alley=alley):
            return f"alley {alley} is not empty."
        case GraveNotFound(grave_id=grave_id):
            return f"grave {grave_id} was not found."
        case InvariantViolation(field=field):
            return INVARIANT_MESSAGES.get(field, f"field {field} is immutable.")
        case InconsistentAlleyGraves(alley=alley, grave_id=grave_id):
            return f"alley {alley} and grave {grave_id} are out of sync."
        case Unauthorized():
            return "you are not authorized to perform this action."
    raise ValueError(f"Unhandled domain error: {error!r}")


def describe_failure(error: Exception) -> Notice:
    kind = classify_failure(error)

    if kind is FailureKind.AUTHORIZATION:
        message = failure_message(error)
        if is_boss_lock_message(message):
            text = "This application is locked to a single administrator account."
        elif "login" in message.lower():
            text = "Please log in to continue."
        else:
            text = "Access denied."
        return Notice(
            kind=NoticeKind.ACCESS_DENIED,
            message=text,
            dismissible=False,
            replaces_view=True,
        )

    if kind is FailureKind.DOMAIN and isinstance(error, (DomainRuleError, Err)):
        return Notice(kind=NoticeKind.DOMAIN, message=describe_domain_error(error.error))

    if isinstance(error, ServiceUnavailableError) and "not available" in str(error):
        text = "Failed to initialize connection. Please retry."
    else:
        text = "Unable to reach the server. Please check your connection."
    return Notice(kind=NoticeKind.TRANSIENT, message=text, retryable=True)
