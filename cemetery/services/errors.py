"""
Service layer exceptions.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cemetery.domain.results import DomainError


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class ConnectivityError(ServiceError):
    """Transient transport or availability failure, eligible for retry."""

    pass


class RequestTimeoutError(ConnectivityError):
    """Request timed out."""

    def __init__(self, service_id: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Request to service '{service_id}' timed out after {timeout}s",
            service_id=service_id,
        )


class ServiceUnavailableError(ConnectivityError):
    """Service is temporarily unavailable, or the remote handle is not ready."""

    pass


class RemoteFault(ServiceError):
    """The remote service rejected the call outside the typed result channel."""

    pass


class DomainRuleError(ServiceError):
    """A typed ``Err`` result: deterministic business-rule rejection."""

    def __init__(self, error: "DomainError", service_id: str | None = None):
        self.error = error
        super().__init__(f"Domain error: {error.kind}", service_id=service_id)


class AccessDeniedError(ServiceError):
    """The caller lacks the role an operation requires."""

    def __init__(self, required_role: str, message: str | None = None):
        self.required_role = required_role
        super().__init__(
            message or f"Unauthorized: operation requires role '{required_role}'"
        )
