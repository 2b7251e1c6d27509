"""Shared fixtures: an in-memory cemetery service and a no-wait scheduler."""

import asyncio
from collections import Counter

import pytest

from cemetery.datasource.base import CemeteryService
from cemetery.domain.results import (
    AlleyNotEmpty,
    AlleyNotFound,
    DuplicateAlley,
    Err,
    GraveNotFound,
    InvariantViolation,
    Ok,
)
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
from cemetery.registry.coordinator import CacheCoordinator
from cemetery.registry.search import FieldSet, search_records
from cemetery.services.errors import RemoteFault
from cemetery.services.retry import RetryPolicy, RetryScheduler

BOSS = "boss-principal"
MANAGER = "manager-principal"
STRANGER = "stranger-principal"


class FakeCemeteryService(CemeteryService):
    """
    In-memory register enforcing the server-side invariants.

    Every call is counted in ``calls``. ``fail(method, error, times)`` queues
    failures; ``block(method)`` holds calls until the returned event is set.
    """

    def __init__(self, boss: str = BOSS, managers: set[str] | None = None):
        self.principal: str | None = None
        self.boss = boss
        self.managers = set(managers or ())
        self.alleys: dict[str, list[int]] = {}
        self.graves: dict[int, Grave] = {}
        self.last_grave_id = 0
        self.site_content = SiteContent()
        self.profiles: dict[str, UserProfile] = {}
        self.calls: Counter[str] = Counter()
        self._failures: dict[str, list[Exception]] = {}
        self._blocks: dict[str, asyncio.Event] = {}

    @property
    def service_id(self) -> str:
        return "fake"

    # Test controls

    def fail(self, method: str, error: Exception, times: int = 1) -> None:
        self._failures.setdefault(method, []).extend([error] * times)

    def block(self, method: str) -> asyncio.Event:
        event = asyncio.Event()
        self._blocks[method] = event
        return event

    def seed_alley(self, name: str) -> None:
        self.alleys.setdefault(name, [])

    def seed_grave(
        self,
        alley: str,
        plot_number: int,
        first_name: str = "Jan",
        last_name: str = "Kowalski",
        year_of_death: int = 1990,
        status: GraveStatus = GraveStatus.FREE,
        owner: GraveOwner | None = None,
        place_of_death: str = "",
    ) -> Grave:
        self.seed_alley(alley)
        self.last_grave_id += 1
        grave = Grave(
            id=self.last_grave_id,
            alley=alley,
            plot_number=plot_number,
            status=status,
            deceased_persons=[
                DeceasedPerson(
                    first_name=first_name,
                    last_name=last_name,
                    year_of_death=year_of_death,
                    place_of_death=place_of_death,
                )
            ],
            owner=owner,
        )
        self.graves[grave.id] = grave
        self.alleys[alley].append(grave.id)
        return grave

    def set_principal(self, principal: str | None) -> None:
        self.principal = principal

    # Internals

    async def _enter(self, method: str) -> None:
        self.calls[method] += 1
        await asyncio.sleep(0)
        event = self._blocks.get(method)
        if event is not None:
            await event.wait()
        queued = self._failures.get(method)
        if queued:
            raise queued.pop(0)

    def _role(self) -> AccessRole:
        if self.principal and self.principal == self.boss:
            return AccessRole.BOSS
        if self.principal in self.managers:
            return AccessRole.MANAGER
        return AccessRole.NONE

    def _require_allowed(self) -> None:
        if self._role() is AccessRole.NONE:
            raise RemoteFault("Unauthorized: neither boss nor manager")

    def _require_boss(self) -> None:
        if self._role() is not AccessRole.BOSS:
            raise RemoteFault("Unauthorized: Only the Boss can perform this action")

    def _sorted_graves(self) -> list[Grave]:
        return [self.graves[k] for k in sorted(self.graves)]

    def _public_results(self) -> list[PublicGraveResult]:
        return [
            PublicGraveResult(
                first_name=person.first_name,
                last_name=person.last_name,
                year_of_death=person.year_of_death,
                status=grave.status,
                alley=grave.alley,
                plot_number=grave.plot_number,
            )
            for grave in self._sorted_graves()
            for person in grave.deceased_persons
        ]

    @staticmethod
    def _slice(items: list, offset: int, page_size: int) -> tuple[list, int | None]:
        end = offset + page_size
        return items[offset:end], (end if end < len(items) else None)

    # Reads

    async def health_check(self) -> None:
        await self._enter("health_check")

    async def get_all_graves(self) -> list[Grave]:
        await self._enter("get_all_graves")
        self._require_allowed()
        return self._sorted_graves()

    async def get_paginated_graves(self, offset: int, page_size: int) -> GravePage:
        await self._enter("get_paginated_graves")
        self._require_allowed()
        graves = self._sorted_graves()
        chunk, next_offset = self._slice(graves, offset, page_size)
        return GravePage(
            graves=chunk,
            next_offset=next_offset,
            page_size=page_size,
            total_graves=len(graves),
        )

    async def search_graves_paginated(
        self, query: str, offset: int, page_size: int
    ) -> GravePage:
        await self._enter("search_graves_paginated")
        self._require_allowed()
        hits = list(search_records(self._sorted_graves(), query, FieldSet.PRIVILEGED))
        chunk, next_offset = self._slice(hits, offset, page_size)
        return GravePage(
            graves=chunk,
            next_offset=next_offset,
            page_size=page_size,
            total_graves=len(hits),
        )

    async def search_public_graves_paginated(
        self, query: str, offset: int, page_size: int
    ) -> PublicGravePage:
        await self._enter("search_public_graves_paginated")
        hits = list(search_records(self._public_results(), query, FieldSet.PUBLIC))
        chunk, next_offset = self._slice(hits, offset, page_size)
        return PublicGravePage(
            graves=chunk,
            next_offset=next_offset,
            page_size=page_size,
            total_graves=len(hits),
        )

    async def get_grave(self, grave_id: int) -> Grave | None:
        await self._enter("get_grave")
        self._require_allowed()
        return self.graves.get(grave_id)

    async def get_cemetery_layout(self) -> CemeteryLayout:
        await self._enter("get_cemetery_layout")
        return CemeteryLayout(
            cemetery_name="Test Cemetery",
            last_grave_id=self.last_grave_id,
            alleys=[Alley(name=n, grave_ids=list(ids)) for n, ids in self.alleys.items()],
        )

    async def get_public_tiles(self) -> list[PublicTile]:
        await self._enter("get_public_tiles")
        return [
            PublicTile(
                id=g.id,
                alley=g.alley,
                plot_number=g.plot_number,
                status=g.status,
                deceased_persons=g.deceased_persons,
            )
            for g in self._sorted_graves()
        ]

    async def get_public_graves(self) -> list[PublicGraveResult]:
        await self._enter("get_public_graves")
        return self._public_results()

    async def search_graves(
        self,
        surname: str | None = None,
        year_of_death: int | None = None,
        owner: str | None = None,
        status: GraveStatus | None = None,
        locality: str | None = None,
    ) -> list[Grave]:
        await self._enter("search_graves")
        self._require_allowed()
        hits = []
        for grave in self._sorted_graves():
            people = grave.deceased_persons
            if surname and not any(
                surname.lower() in p.last_name.lower() for p in people
            ):
                continue
            if year_of_death and not any(p.year_of_death == year_of_death for p in people):
                continue
            if status and grave.status is not status:
                continue
            if owner and not (
                grave.owner and owner.lower() in grave.owner.last_name.lower()
            ):
                continue
            if locality and not any(
                locality.lower() in p.place_of_death.lower() for p in people
            ):
                continue
            hits.append(grave)
        return hits

    async def search_public_graves(
        self, surname: str | None = None, year_of_death: int | None = None
    ) -> list[PublicGraveResult]:
        await self._enter("search_public_graves")
        return [
            r
            for r in self._public_results()
            if (not surname or surname.lower() in r.last_name.lower())
            and (not year_of_death or r.year_of_death == year_of_death)
        ]

    async def get_caller_role(self) -> str:
        await self._enter("get_caller_role")
        return self._role().value

    async def get_access_role(self) -> AccessRole:
        await self._enter("get_access_role")
        return self._role()

    async def get_grave_statistics(self) -> GraveStatistics:
        await self._enter("get_grave_statistics")
        self._require_allowed()
        graves = self.graves.values()
        return GraveStatistics(
            total=len(graves),
            **{s.value: sum(1 for g in graves if g.status is s) for s in GraveStatus},
        )

    async def get_boss(self) -> str | None:
        await self._enter("get_boss")
        self._require_allowed()
        return self.boss

    async def get_managers(self) -> list[str]:
        await self._enter("get_managers")
        self._require_allowed()
        return sorted(self.managers)

    async def get_caller_user_profile(self) -> UserProfile | None:
        await self._enter("get_caller_user_profile")
        return self.profiles.get(self.principal or "")

    async def get_site_content(self) -> SiteContent:
        await self._enter("get_site_content")
        return self.site_content

    # Writes

    async def add_alley(self, name: str):
        await self._enter("add_alley")
        self._require_allowed()
        if name in self.alleys:
            return Err(DuplicateAlley(alley=name))
        self.alleys[name] = []
        return Ok()

    async def remove_alley(self, name: str):
        await self._enter("remove_alley")
        self._require_allowed()
        if name not in self.alleys:
            return Err(AlleyNotFound(alley=name))
        if self.alleys[name]:
            return Err(AlleyNotEmpty(alley=name))
        del self.alleys[name]
        return Ok()

    async def add_grave(self, alley: str, plot_number: int):
        await self._enter("add_grave")
        self._require_allowed()
        if alley not in self.alleys:
            return Err(AlleyNotFound(alley=alley))
        self.last_grave_id += 1
        self.graves[self.last_grave_id] = Grave(
            id=self.last_grave_id, alley=alley, plot_number=plot_number
        )
        self.alleys[alley].append(self.last_grave_id)
        return Ok(self.last_grave_id)

    async def remove_grave(self, grave_id: int):
        await self._enter("remove_grave")
        self._require_allowed()
        grave = self.graves.get(grave_id)
        if grave is None:
            return Err(GraveNotFound(grave_id=grave_id))
        if grave.status is not GraveStatus.FREE:
            return Err(InvariantViolation(field="status"))
        del self.graves[grave_id]
        self.alleys[grave.alley].remove(grave_id)
        return Ok()

    async def update_grave(self, grave_id: int, record: Grave):
        await self._enter("update_grave")
        self._require_allowed()
        grave = self.graves.get(grave_id)
        if grave is None:
            return Err(GraveNotFound(grave_id=grave_id))
        if record.alley != grave.alley:
            return Err(InvariantViolation(field="alley"))
        if record.plot_number != grave.plot_number:
            return Err(InvariantViolation(field="plotNumber"))
        self.graves[grave_id] = record.model_copy(update={"id": grave_id})
        return Ok()

    async def add_manager(self, principal: str) -> bool:
        await self._enter("add_manager")
        self._require_boss()
        if principal in self.managers:
            return False
        self.managers.add(principal)
        return True

    async def remove_manager(self, principal: str) -> bool:
        await self._enter("remove_manager")
        self._require_boss()
        if principal not in self.managers:
            return False
        self.managers.discard(principal)
        return True

    async def assign_owner(self, principal: str) -> None:
        await self._enter("assign_owner")
        self._require_boss()
        self.boss = principal

    async def update_site_content(self, content: SiteContent) -> None:
        await self._enter("update_site_content")
        self._require_allowed()
        self.site_content = content

    async def update_logo(self, logo_url: str | None) -> None:
        await self._enter("update_logo")
        self._require_allowed()
        self.site_content = self.site_content.model_copy(update={"logo_image": logo_url})

    async def save_caller_user_profile(self, profile: UserProfile) -> None:
        await self._enter("save_caller_user_profile")
        if not self.principal:
            raise RemoteFault("Anonymous principal not allowed")
        self.profiles[self.principal] = profile


@pytest.fixture
def service():
    """Alley A is empty; alley B holds one paid grave with an owner."""
    fake = FakeCemeteryService(managers={MANAGER})
    fake.seed_alley("A")
    fake.seed_grave(
        "B",
        1,
        first_name="Jan",
        last_name="Kowalski",
        year_of_death=1990,
        status=GraveStatus.PAID,
        owner=GraveOwner(
            first_name="Anna",
            last_name="Nowak",
            address="Lipowa 5, Kraków",
            phone="555-0101",
        ),
        place_of_death="Gdańsk",
    )
    return fake


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def scheduler(sleeps):
    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return RetryScheduler(
        RetryPolicy(max_attempts=3, base_delay_ms=1000, max_delay_ms=10000),
        sleep=fake_sleep,
    )


@pytest.fixture
def notices():
    return []


@pytest.fixture
def coordinator(service, scheduler, notices):
    return CacheCoordinator(
        service, scheduler=scheduler, page_size=10, on_notice=notices.append
    )
