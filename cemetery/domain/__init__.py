"""
Cemetery register domain model.

Provides:
- Record types exchanged with the remote service (graves, alleys, projections)
- The tagged Ok/Err result union and its DomainError variants
"""

from cemetery.domain.types import (
    AccessRole,
    Alley,
    CemeteryLayout,
    DeceasedPerson,
    Grave,
    GraveOwner,
    GravePage,
    GraveStatistics,
    GraveStatus,
    PublicGravePage,
    PublicGraveResult,
    PublicTile,
    SiteContent,
    UserProfile,
)
from cemetery.domain.results import (
    AlleyNotEmpty,
    AlleyNotFound,
    DomainError,
    DuplicateAlley,
    Err,
    GraveNotFound,
    InconsistentAlleyGraves,
    InvariantViolation,
    Ok,
    Result,
    Unauthorized,
    parse_result,
    unwrap,
)

__all__ = [
    # Records
    "AccessRole",
    "Alley",
    "CemeteryLayout",
    "DeceasedPerson",
    "Grave",
    "GraveOwner",
    "GravePage",
    "GraveStatistics",
    "GraveStatus",
    "PublicGravePage",
    "PublicGraveResult",
    "PublicTile",
    "SiteContent",
    "UserProfile",
    # Results
    "AlleyNotEmpty",
    "AlleyNotFound",
    "DomainError",
    "DuplicateAlley",
    "Err",
    "GraveNotFound",
    "InconsistentAlleyGraves",
    "InvariantViolation",
    "Ok",
    "Result",
    "Unauthorized",
    "parse_result",
    "unwrap",
]
