"""
Service layer infrastructure - resilience patterns for remote service calls.

Provides:
- Failure taxonomy and classification (connectivity / domain / authorization)
- RetryScheduler: bounded exponential backoff for connectivity failures
- CacheManager: keyed cache with per-category TTL and key versions
- RequestDeduplicator: one in-flight call per cache key
- ConnectionMonitor: health-check status of the remote service
- ServiceClient: HTTP transport to the remote service
"""

from cemetery.services.errors import (
    AccessDeniedError,
    ConnectivityError,
    DomainRuleError,
    RemoteFault,
    RequestTimeoutError,
    ServiceError,
    ServiceUnavailableError,
)
from cemetery.services.classifier import FailureKind, classify_failure
from cemetery.services.retry import RetryPolicy, RetryScheduler
from cemetery.services.cache import CacheManager, CacheEntry, CacheResult
from cemetery.services.deduplicator import RequestDeduplicator
from cemetery.services.health import ConnectionMonitor, ConnectionStatus
from cemetery.services.client import ServiceClient

__all__ = [
    # Errors
    "AccessDeniedError",
    "ConnectivityError",
    "DomainRuleError",
    "RemoteFault",
    "RequestTimeoutError",
    "ServiceError",
    "ServiceUnavailableError",
    # Classification and retry
    "FailureKind",
    "classify_failure",
    "RetryPolicy",
    "RetryScheduler",
    # Cache
    "CacheManager",
    "CacheEntry",
    "CacheResult",
    # Deduplicator
    "RequestDeduplicator",
    # Health
    "ConnectionMonitor",
    "ConnectionStatus",
    # Client
    "ServiceClient",
]
