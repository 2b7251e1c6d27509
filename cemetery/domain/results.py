"""
Tagged results returned by mutating alley and grave operations.

Wire shape (the ``__kind__`` discriminants are the contract):

    {"__kind__": "ok", "ok": <value or null>}
    {"__kind__": "err", "err": {"__kind__": "alleyNotEmpty", "alleyNotEmpty": {"alley": "B"}}}
"""

from dataclasses import dataclass
from typing import Any, ClassVar, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class DuplicateAlley:
    kind: ClassVar[str] = "duplicateAlley"
    alley: str

    def payload(self) -> dict[str, Any]:
        return {"alley": self.alley}


@dataclass(frozen=True)
class AlleyNotFound:
    kind: ClassVar[str] = "alleyNotFound"
    alley: str

    def payload(self) -> dict[str, Any]:
        return {"alley": self.alley}


@dataclass(frozen=True)
class AlleyNotEmpty:
    kind: ClassVar[str] = "alleyNotEmpty"
    alley: str

    def payload(self) -> dict[str, Any]:
        return {"alley": self.alley}


@dataclass(frozen=True)
class GraveNotFound:
    kind: ClassVar[str] = "graveNotFound"
    grave_id: int

    def payload(self) -> dict[str, Any]:
        return {"graveId": self.grave_id}


@dataclass(frozen=True)
class InvariantViolation:
    kind: ClassVar[str] = "invariantViolation"
    field: str

    def payload(self) -> dict[str, Any]:
        return {"field": self.field}


@dataclass(frozen=True)
class InconsistentAlleyGraves:
    kind: ClassVar[str] = "inconsistentAlleyGraves"
    alley: str
    grave_id: int

    def payload(self) -> dict[str, Any]:
        return {"alley": self.alley, "graveId": self.grave_id}


@dataclass(frozen=True)
class Unauthorized:
    kind: ClassVar[str] = "unauthorized"

    def payload(self) -> None:
        return None


DomainError = (
    DuplicateAlley
    | AlleyNotFound
    | AlleyNotEmpty
    | GraveNotFound
    | InvariantViolation
    | InconsistentAlleyGraves
    | Unauthorized
)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T | None = None

    def to_wire(self) -> dict[str, Any]:
        return {"__kind__": "ok", "ok": self.value}


@dataclass(frozen=True)
class Err:
    error: DomainError

    def to_wire(self) -> dict[str, Any]:
        return {"__kind__": "err", "err": domain_error_to_wire(self.error)}


Result = Ok[T] | Err


def domain_error_to_wire(error: DomainError) -> dict[str, Any]:
    return {"__kind__": error.kind, error.kind: error.payload()}


def parse_domain_error(data: dict[str, Any]) -> DomainError:
    """Decode a ``DomainError`` from its tagged wire form."""
    kind = data.get("__kind__")
    if kind is None and len(data) == 1:
        kind = next(iter(data))
    body = data.get(kind) or {}

    if kind == "duplicateAlley":
        return DuplicateAlley(alley=body["alley"])
    if kind == "alleyNotFound":
        return AlleyNotFound(alley=body["alley"])
    if kind == "alleyNotEmpty":
        return AlleyNotEmpty(alley=body["alley"])
    if kind == "graveNotFound":
        return GraveNotFound(grave_id=int(body["graveId"]))
    if kind == "invariantViolation":
        return InvariantViolation(field=body["field"])
    if kind == "inconsistentAlleyGraves":
        return InconsistentAlleyGraves(
            alley=body["alley"], grave_id=int(body["graveId"])
        )
    if kind == "unauthorized":
        return Unauthorized()
    raise ValueError(f"Unknown domain error kind: {kind!r}")


def parse_result(data: dict[str, Any]) -> Result[Any]:
    """Decode a tagged ``{ok} | {err}`` result."""
    kind = data.get("__kind__")
    if kind is None:
        kind = "err" if "err" in data else "ok"

    if kind == "ok":
        return Ok(data.get("ok"))
    if kind == "err":
        return Err(parse_domain_error(data["err"]))
    raise ValueError(f"Unknown result kind: {kind!r}")


def unwrap(result: Result[T]) -> T | None:
    """Return the ``Ok`` value or raise ``DomainRuleError`` for an ``Err``."""
    from cemetery.services.errors import DomainRuleError

    match result:
        case Ok(value=value):
            return value
        case Err(error=error):
            raise DomainRuleError(error)
