"""
Client-side register: authorization, search, pagination and the coordinator
that ties them to the cached remote service.
"""

from cemetery.registry.auth import (
    ANONYMOUS_PRINCIPAL,
    AccessView,
    AuthorizationGate,
    AuthorizationState,
    Capability,
    GatePhase,
)
from cemetery.registry.search import (
    FieldSet,
    SearchIndexer,
    index_terms,
    normalize_text,
    record_key,
    search_records,
)
from cemetery.registry.pagination import PaginationMerger
from cemetery.registry.notices import (
    Notice,
    NoticeKind,
    describe_domain_error,
    describe_failure,
)
from cemetery.registry.coordinator import (
    INVALIDATION_MAP,
    CacheCategory,
    CacheCoordinator,
    Mutation,
)

__all__ = [
    # Authorization
    "ANONYMOUS_PRINCIPAL",
    "AccessView",
    "AuthorizationGate",
    "AuthorizationState",
    "Capability",
    "GatePhase",
    # Search
    "FieldSet",
    "SearchIndexer",
    "index_terms",
    "normalize_text",
    "record_key",
    "search_records",
    # Pagination
    "PaginationMerger",
    # Notices
    "Notice",
    "NoticeKind",
    "describe_domain_error",
    "describe_failure",
    # Coordinator
    "INVALIDATION_MAP",
    "CacheCategory",
    "CacheCoordinator",
    "Mutation",
]
