"""
In-memory full-text search over loaded grave records.

Each record is reduced to one normalized search string keyed by its stable
identity. A query matches a record when the normalized query is a substring
of one of the record's indexed fields. Which fields are indexed depends on
the caller surface:

- PUBLIC: deceased first/last name, year of death, alley, plot number
- PRIVILEGED: the public fields plus place of death and the owner's
  first/last name, address and phone
"""

from enum import Enum
from typing import Any, Generic, Hashable, Iterable, Sequence, TypeVar

from loguru import logger

R = TypeVar("R")

# Separates fields so a query never matches across two of them
FIELD_SEPARATOR = "\x00"


class FieldSet(str, Enum):
    """Which record fields a surface may match on."""

    PUBLIC = "public"
    PRIVILEGED = "privileged"


def normalize_text(text: Any) -> str:
    return str(text).lower().strip()


def record_key(record: Any) -> Hashable:
    """Stable identity of a record, independent of its list position."""
    record_id = getattr(record, "id", None)
    if record_id is not None:
        return record_id
    return (
        record.alley,
        record.plot_number,
        record.last_name,
        record.first_name,
        record.year_of_death,
    )


def _people(record: Any) -> list[Any]:
    people = getattr(record, "deceased_persons", None)
    if people is None:
        # Public search results carry a single occupant inline
        return [record]
    return people


def index_terms(record: Any, field_set: FieldSet) -> list[str]:
    """Every field value of ``record`` the surface may match on."""
    terms: list[Any] = [record.alley, record.plot_number]

    for person in _people(record):
        terms.extend([person.first_name, person.last_name])
        if person.year_of_death is not None:
            terms.append(person.year_of_death)
        if field_set is FieldSet.PRIVILEGED:
            terms.append(getattr(person, "place_of_death", "") or "")

    owner = getattr(record, "owner", None)
    if field_set is FieldSet.PRIVILEGED and owner is not None:
        terms.extend([owner.first_name, owner.last_name, owner.address])
        if owner.phone:
            terms.append(owner.phone)

    return [normalize_text(t) for t in terms]


class SearchIndexer(Generic[R]):
    """
    Versioned search index for one collection.

    The dataset fingerprint (version, count and boundary identities) is the
    cheap first check; the index is reused only when every identity key also
    matches. When records are only appended to the previously indexed keys,
    just the new records are indexed. Anything else is a full rebuild.

    Usage:
        indexer = SearchIndexer(FieldSet.PUBLIC)
        hits = indexer.filter(results, "kowal", version=merger.generation)
    """

    def __init__(self, field_set: FieldSet = FieldSet.PUBLIC):
        self.field_set = field_set
        self._entries: dict[Hashable, str] = {}
        self._keys: list[Hashable] = []
        self._version: Any = None
        self.full_rebuilds = 0
        self.delta_builds = 0

    @staticmethod
    def fingerprint(records: Sequence[R], version: Any = None) -> tuple:
        if not records:
            return (version, 0, None, None)
        return (
            version,
            len(records),
            record_key(records[0]),
            record_key(records[-1]),
        )

    @property
    def size(self) -> int:
        return len(self._entries)

    def build_index(
        self,
        records: Sequence[R],
        field_set: FieldSet | None = None,
        version: Any = None,
    ) -> dict[Hashable, str]:
        """Return the index for ``records``, rebuilding only what changed."""
        field_set = field_set or self.field_set
        if field_set is not self.field_set or version != self._version:
            self.field_set = field_set
            self._version = version
            self._rebuild(records)
            return self._entries

        if self.fingerprint(records, version) == self._current_fingerprint():
            if self._same_keys(records):
                return self._entries

        count = len(self._keys)
        if (
            count
            and len(records) > count
            and record_key(records[0]) == self._keys[0]
            and record_key(records[count - 1]) == self._keys[-1]
            and self._same_keys(records[:count])
        ):
            self._index(records[count:])
            self.delta_builds += 1
            logger.debug(
                f"Search index extended by {len(records) - count} records "
                f"({self.field_set.value})"
            )
            return self._entries

        self._rebuild(records)
        return self._entries

    def filter(
        self,
        records: Sequence[R],
        query: str | None,
        version: Any = None,
    ) -> Sequence[R]:
        """Records whose indexed fields contain the normalized query."""
        if not query or not query.strip():
            return records

        needle = normalize_text(query)
        entries = self.build_index(records, version=version)
        return [r for r in records if needle in entries[record_key(r)]]

    def reset(self) -> None:
        self._entries = {}
        self._keys = []
        self._version = None

    def _current_fingerprint(self) -> tuple:
        if not self._keys:
            return (self._version, 0, None, None)
        return (self._version, len(self._keys), self._keys[0], self._keys[-1])

    def _same_keys(self, records: Sequence[R]) -> bool:
        return [record_key(r) for r in records] == self._keys

    def _rebuild(self, records: Iterable[R]) -> None:
        self._entries = {}
        self._keys = []
        self._index(records)
        self.full_rebuilds += 1

    def _index(self, records: Iterable[R]) -> None:
        for record in records:
            key = record_key(record)
            self._keys.append(key)
            self._entries[key] = FIELD_SEPARATOR.join(
                index_terms(record, self.field_set)
            )


def search_records(
    records: Sequence[R], query: str | None, field_set: FieldSet
) -> Sequence[R]:
    """One-shot filter without keeping an index around."""
    return SearchIndexer(field_set).filter(records, query)
