"""
CacheCoordinator - the client-side data layer in front of the remote service.

Combines:
- CacheManager for time-boxed caching per data category
- RequestDeduplicator so concurrent reads of one key share a call
- RetryScheduler for connectivity retries
- AuthorizationGate to keep privileged calls from being issued at all
- PaginationMerger / SearchIndexer views over grave collections

Every successful mutation invalidates exactly the categories listed for it in
INVALIDATION_MAP; nothing else ever evicts entries early.
"""

import weakref
from datetime import timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from loguru import logger

from cemetery.datasource.base import CemeteryService
from cemetery.domain.results import InvariantViolation, unwrap
from cemetery.domain.types import (
    AccessRole,
    CemeteryLayout,
    Grave,
    GravePage,
    GraveStatistics,
    GraveStatus,
    PublicGravePage,
    PublicGraveResult,
    PublicTile,
    SiteContent,
    UserProfile,
)
from cemetery.registry.auth import (
    AccessView,
    AuthorizationGate,
    AuthorizationState,
    Capability,
)
from cemetery.registry.notices import Notice, NoticeKind, describe_failure
from cemetery.registry.pagination import PaginationMerger
from cemetery.registry.search import FieldSet, SearchIndexer
from cemetery.services.cache import CacheManager
from cemetery.services.classifier import FailureKind, classify_failure
from cemetery.services.deduplicator import RequestDeduplicator
from cemetery.services.errors import (
    AccessDeniedError,
    DomainRuleError,
    ServiceUnavailableError,
)
from cemetery.services.health import ConnectionMonitor, ConnectionStatus
from cemetery.services.retry import RetryScheduler
from cemetery.settings import global_settings

T = TypeVar("T")


class CacheCategory(str, Enum):
    IDENTITY_ROLE = "identity-role"
    ALLEY_LAYOUT = "alley-layout"
    GRAVE_BY_ID = "grave-by-id"
    GRAVE_PAGES = "paginated-grave-pages"
    ALL_GRAVES = "all-graves"
    PRIVILEGED_SEARCH = "privileged-search"
    PUBLIC_TILES = "public-tile-projection"
    PUBLIC_SEARCH = "public-search-projection"
    STATISTICS = "statistics"
    SITE_CONTENT = "site-content"
    PUBLIC_SITE_CONTENT = "public-site-content"
    MANAGER_LIST = "manager-list"
    BOSS = "boss"
    USER_PROFILE = "user-profile"


class Mutation(str, Enum):
    ADD_ALLEY = "add-alley"
    REMOVE_ALLEY = "remove-alley"
    ADD_GRAVE = "add-grave"
    REMOVE_GRAVE = "remove-grave"
    UPDATE_GRAVE = "update-grave"
    UPDATE_SITE_CONTENT = "update-site-content"
    UPDATE_LOGO = "update-logo"
    ADD_MANAGER = "add-manager"
    REMOVE_MANAGER = "remove-manager"
    ASSIGN_OWNER = "assign-owner"
    SAVE_PROFILE = "save-profile"


_GRAVE_READS = frozenset(
    {
        CacheCategory.GRAVE_BY_ID,
        CacheCategory.GRAVE_PAGES,
        CacheCategory.ALL_GRAVES,
        CacheCategory.PRIVILEGED_SEARCH,
        CacheCategory.PUBLIC_TILES,
        CacheCategory.PUBLIC_SEARCH,
        CacheCategory.STATISTICS,
    }
)

INVALIDATION_MAP: dict[Mutation, frozenset[CacheCategory]] = {
    Mutation.ADD_ALLEY: frozenset({CacheCategory.ALLEY_LAYOUT}),
    Mutation.REMOVE_ALLEY: frozenset({CacheCategory.ALLEY_LAYOUT}),
    # Adding or removing a grave also changes its alley's grave-id list
    Mutation.ADD_GRAVE: _GRAVE_READS | {CacheCategory.ALLEY_LAYOUT},
    Mutation.REMOVE_GRAVE: _GRAVE_READS | {CacheCategory.ALLEY_LAYOUT},
    Mutation.UPDATE_GRAVE: _GRAVE_READS,
    Mutation.UPDATE_SITE_CONTENT: frozenset(
        {CacheCategory.SITE_CONTENT, CacheCategory.PUBLIC_SITE_CONTENT}
    ),
    Mutation.UPDATE_LOGO: frozenset(
        {CacheCategory.SITE_CONTENT, CacheCategory.PUBLIC_SITE_CONTENT}
    ),
    Mutation.ADD_MANAGER: frozenset({CacheCategory.MANAGER_LIST}),
    Mutation.REMOVE_MANAGER: frozenset({CacheCategory.MANAGER_LIST}),
    Mutation.ASSIGN_OWNER: frozenset(
        {
            CacheCategory.IDENTITY_ROLE,
            CacheCategory.BOSS,
            CacheCategory.MANAGER_LIST,
        }
    ),
    Mutation.SAVE_PROFILE: frozenset({CacheCategory.USER_PROFILE}),
}


def staleness_budget(category: CacheCategory) -> timedelta:
    """Time-boxed freshness per category."""
    if category is CacheCategory.IDENTITY_ROLE:
        seconds = global_settings.role_ttl_seconds
    elif category in (
        CacheCategory.ALLEY_LAYOUT,
        CacheCategory.MANAGER_LIST,
        CacheCategory.BOSS,
        CacheCategory.USER_PROFILE,
    ):
        seconds = global_settings.layout_ttl_seconds
    elif category in (
        CacheCategory.PUBLIC_TILES,
        CacheCategory.PUBLIC_SEARCH,
        CacheCategory.PUBLIC_SITE_CONTENT,
    ):
        seconds = global_settings.public_ttl_seconds
    else:
        seconds = global_settings.grave_ttl_seconds
    return timedelta(seconds=seconds)


class CacheCoordinator:
    """
    Routes reads through the cache and writes through invalidation.

    Usage:
        coordinator = CacheCoordinator(HttpCemeteryService(ServiceClient()))

        layout = await coordinator.get_cemetery_layout()

        await coordinator.login(principal)
        view = coordinator.browse_graves()
        await view.fetch_next()
        await coordinator.update_grave(grave.id, edited)
    """

    def __init__(
        self,
        service: CemeteryService | None,
        gate: AuthorizationGate | None = None,
        scheduler: RetryScheduler | None = None,
        cache: CacheManager | None = None,
        deduplicator: RequestDeduplicator | None = None,
        page_size: int | None = None,
        on_notice: Callable[[Notice], None] | None = None,
    ):
        self._service = service
        self._on_notice = on_notice
        self.page_size = page_size or global_settings.page_size

        self.gate = gate or AuthorizationGate()
        self.scheduler = scheduler or RetryScheduler()
        if self.scheduler.on_retry is None:
            self.scheduler.on_retry = self._on_retry
        self.cache = cache or CacheManager(
            max_size=global_settings.cache_max_size,
            debug=global_settings.cache_debug,
        )
        self._deduplicator = deduplicator or RequestDeduplicator(
            debug=global_settings.cache_debug
        )
        self.monitor = ConnectionMonitor(
            global_settings.service_id, lambda: self._service, self.scheduler
        )

        self.public_index: SearchIndexer[Any] = SearchIndexer(FieldSet.PUBLIC)
        self.privileged_index: SearchIndexer[Grave] = SearchIndexer(
            FieldSet.PRIVILEGED
        )

        # Live pagination views, reset when a category feeding them is invalidated
        self._views: dict[CacheCategory, weakref.WeakSet[PaginationMerger[Any]]] = {}

    # Session

    @property
    def service(self) -> CemeteryService | None:
        return self._service

    def set_service(self, service: CemeteryService | None) -> None:
        """Swap the remote handle (e.g. after re-initialising the connection)."""
        self._service = service
        if service is not None:
            service.set_principal(self.gate.state.principal)

    @property
    def authorization(self) -> AuthorizationState:
        return self.gate.state

    @property
    def view(self) -> AccessView:
        return self.gate.view

    async def check_connection(self) -> ConnectionStatus:
        return await self.monitor.check()

    async def login(self, principal: str | None) -> AuthorizationState:
        """Acquire an identity and resolve its role."""
        previous = self.gate.state.principal
        state = self.gate.acquire_identity(principal)
        if state.principal != previous:
            await self._drop_session_data()
        if self._service is not None:
            self._service.set_principal(state.principal)
        return await self.resolve_authorization()

    async def logout(self) -> AuthorizationState:
        """Forget identity and role; nothing privileged survives."""
        state = self.gate.clear()
        await self._drop_session_data()
        if self._service is not None:
            self._service.set_principal(None)
        return state

    async def resolve_authorization(self, force: bool = False) -> AuthorizationState:
        principal = self.gate.state.principal

        async def query_role() -> AccessRole:
            try:
                return await self.scheduler.execute(
                    lambda: self._require_service().get_access_role()
                )
            except Exception as e:
                # The gate turns a denied role query into role none
                if classify_failure(e) is not FailureKind.AUTHORIZATION:
                    self._report(e)
                raise

        async def fetch_role() -> AccessRole:
            return await self._deduplicator.dedupe(
                f"{CacheCategory.IDENTITY_ROLE.value}?principal={principal}",
                query_role,
            )

        return await self.gate.resolve(fetch_role, force=force)

    async def close(self) -> None:
        self._deduplicator.cancel_all()
        if self._service is not None:
            await self._service.close()
        logger.debug("CacheCoordinator closed")

    async def __aenter__(self) -> "CacheCoordinator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # Public reads

    async def get_cemetery_layout(self) -> CemeteryLayout:
        return await self._read(
            CacheCategory.ALLEY_LAYOUT, None, lambda s: s.get_cemetery_layout()
        )

    async def get_public_tiles(self) -> list[PublicTile]:
        return await self._read(
            CacheCategory.PUBLIC_TILES, None, lambda s: s.get_public_tiles()
        )

    async def get_public_graves(self) -> list[PublicGraveResult]:
        return await self._read(
            CacheCategory.PUBLIC_SEARCH, {"all": True}, lambda s: s.get_public_graves()
        )

    async def search_public_graves(
        self, surname: str | None = None, year_of_death: int | None = None
    ) -> list[PublicGraveResult]:
        return await self._read(
            CacheCategory.PUBLIC_SEARCH,
            {"surname": surname, "year": year_of_death},
            lambda s: s.search_public_graves(surname, year_of_death),
        )

    async def search_public_graves_page(
        self, query: str, offset: int, page_size: int
    ) -> PublicGravePage:
        return await self._read(
            CacheCategory.PUBLIC_SEARCH,
            {"q": query, "offset": offset, "size": page_size},
            lambda s: s.search_public_graves_paginated(query, offset, page_size),
        )

    async def get_public_site_content(self) -> SiteContent:
        return await self._read(
            CacheCategory.PUBLIC_SITE_CONTENT, None, lambda s: s.get_site_content()
        )

    def browse_public_graves(
        self, page_size: int | None = None, query: str = ""
    ) -> PaginationMerger[PublicGraveResult]:
        """Paginated public results; the service filters when a query is set."""
        merger: PaginationMerger[PublicGraveResult] = PaginationMerger(
            fetch_page=lambda offset, size: self.search_public_graves_page(
                "", offset, size
            ),
            search_page=self.search_public_graves_page,
            page_size=page_size or self.page_size,
            query=query,
        )
        self._register_view(merger, CacheCategory.PUBLIC_SEARCH)
        return merger

    # Privileged reads

    async def get_grave(self, grave_id: int) -> Grave | None:
        return await self._read(
            CacheCategory.GRAVE_BY_ID,
            {"id": grave_id},
            lambda s: s.get_grave(grave_id),
            capability=Capability.OPERATE,
        )

    async def get_all_graves(self) -> list[Grave]:
        return await self._read(
            CacheCategory.ALL_GRAVES,
            None,
            lambda s: s.get_all_graves(),
            capability=Capability.OPERATE,
        )

    async def get_paginated_graves(self, offset: int, page_size: int) -> GravePage:
        return await self._read(
            CacheCategory.GRAVE_PAGES,
            {"offset": offset, "size": page_size},
            lambda s: s.get_paginated_graves(offset, page_size),
            capability=Capability.OPERATE,
        )

    async def search_graves_page(
        self, query: str, offset: int, page_size: int
    ) -> GravePage:
        return await self._read(
            CacheCategory.PRIVILEGED_SEARCH,
            {"q": query, "offset": offset, "size": page_size},
            lambda s: s.search_graves_paginated(query, offset, page_size),
            capability=Capability.OPERATE,
        )

    async def search_graves(
        self,
        surname: str | None = None,
        year_of_death: int | None = None,
        owner: str | None = None,
        status: GraveStatus | None = None,
        locality: str | None = None,
    ) -> list[Grave]:
        return await self._read(
            CacheCategory.PRIVILEGED_SEARCH,
            {
                "surname": surname,
                "year": year_of_death,
                "owner": owner,
                "status": status.value if status else None,
                "locality": locality,
            },
            lambda s: s.search_graves(surname, year_of_death, owner, status, locality),
            capability=Capability.OPERATE,
        )

    def browse_graves(
        self, page_size: int | None = None, query: str = ""
    ) -> PaginationMerger[Grave]:
        """Paginated grave records; the service filters when a query is set."""
        self.gate.require(Capability.OPERATE)
        merger: PaginationMerger[Grave] = PaginationMerger(
            fetch_page=self.get_paginated_graves,
            search_page=self.search_graves_page,
            page_size=page_size or self.page_size,
            query=query,
        )
        self._register_view(
            merger, CacheCategory.GRAVE_PAGES, CacheCategory.PRIVILEGED_SEARCH
        )
        return merger

    async def get_grave_statistics(self) -> GraveStatistics:
        return await self._read(
            CacheCategory.STATISTICS,
            None,
            lambda s: s.get_grave_statistics(),
            capability=Capability.OPERATE,
        )

    async def get_boss(self) -> str | None:
        return await self._read(
            CacheCategory.BOSS,
            None,
            lambda s: s.get_boss(),
            capability=Capability.OPERATE,
        )

    async def get_managers(self) -> list[str]:
        return await self._read(
            CacheCategory.MANAGER_LIST,
            None,
            lambda s: s.get_managers(),
            capability=Capability.OPERATE,
        )

    async def get_site_content(self) -> SiteContent:
        return await self._read(
            CacheCategory.SITE_CONTENT,
            None,
            lambda s: s.get_site_content(),
            capability=Capability.OPERATE,
        )

    async def get_caller_role(self) -> str:
        self._require_identity()
        return await self._read(
            CacheCategory.IDENTITY_ROLE,
            {"caller": self.gate.state.principal},
            lambda s: s.get_caller_role(),
        )

    async def get_caller_user_profile(self) -> UserProfile | None:
        self._require_identity()
        return await self._read(
            CacheCategory.USER_PROFILE,
            {"principal": self.gate.state.principal},
            lambda s: s.get_caller_user_profile(),
        )

    # In-memory search over loaded records

    def filter_loaded(
        self,
        records: Sequence[T],
        query: str | None,
        surface: FieldSet = FieldSet.PUBLIC,
        version: Any = None,
    ) -> Sequence[T]:
        """
        Filter already-loaded records with the surface's field set.

        Pass the owning view's ``generation`` as ``version`` so the index is
        rebuilt when the view was reset and only extended as pages append.
        """
        if surface is FieldSet.PRIVILEGED:
            self.gate.require(Capability.OPERATE)
            return self.privileged_index.filter(records, query, version=version)
        return self.public_index.filter(records, query, version=version)

    # Writes

    async def add_alley(self, name: str) -> None:
        async def op(service: CemeteryService) -> None:
            unwrap(await service.add_alley(name))

        await self._mutate(Mutation.ADD_ALLEY, op, Capability.OPERATE)

    async def remove_alley(self, name: str) -> None:
        async def op(service: CemeteryService) -> None:
            unwrap(await service.remove_alley(name))

        await self._mutate(Mutation.REMOVE_ALLEY, op, Capability.OPERATE)

    async def add_grave(self, alley: str, plot_number: int) -> int:
        async def op(service: CemeteryService) -> int:
            return int(unwrap(await service.add_grave(alley, plot_number)))

        return await self._mutate(Mutation.ADD_GRAVE, op, Capability.OPERATE)

    async def remove_grave(self, grave_id: int) -> None:
        async def op(service: CemeteryService) -> None:
            cached = await self._cached_grave(grave_id)
            if cached is not None and cached.status is not GraveStatus.FREE:
                raise DomainRuleError(InvariantViolation(field="status"))
            unwrap(await service.remove_grave(grave_id))

        await self._mutate(Mutation.REMOVE_GRAVE, op, Capability.OPERATE)

    async def update_grave(self, grave_id: int, record: Grave) -> None:
        async def op(service: CemeteryService) -> None:
            cached = await self._cached_grave(grave_id)
            if cached is not None:
                if cached.alley != record.alley:
                    raise DomainRuleError(InvariantViolation(field="alley"))
                if cached.plot_number != record.plot_number:
                    raise DomainRuleError(InvariantViolation(field="plotNumber"))
            unwrap(await service.update_grave(grave_id, record))

        await self._mutate(Mutation.UPDATE_GRAVE, op, Capability.OPERATE)

    async def add_manager(self, principal: str) -> None:
        async def op(service: CemeteryService) -> None:
            if not await service.add_manager(principal):
                raise DomainRuleError(InvariantViolation(field="manager"))

        await self._mutate(Mutation.ADD_MANAGER, op, Capability.DELEGATE)

    async def remove_manager(self, principal: str) -> None:
        async def op(service: CemeteryService) -> None:
            if not await service.remove_manager(principal):
                raise DomainRuleError(InvariantViolation(field="manager"))

        await self._mutate(Mutation.REMOVE_MANAGER, op, Capability.DELEGATE)

    async def assign_owner(self, principal: str) -> None:
        await self._mutate(
            Mutation.ASSIGN_OWNER,
            lambda s: s.assign_owner(principal),
            Capability.DELEGATE,
        )

    async def update_site_content(self, content: SiteContent) -> None:
        await self._mutate(
            Mutation.UPDATE_SITE_CONTENT,
            lambda s: s.update_site_content(content),
            Capability.OPERATE,
        )

    async def update_logo(self, logo_url: str | None) -> None:
        await self._mutate(
            Mutation.UPDATE_LOGO,
            lambda s: s.update_logo(logo_url),
            Capability.OPERATE,
        )

    async def save_caller_user_profile(self, profile: UserProfile) -> None:
        self._require_identity()
        await self._mutate(
            Mutation.SAVE_PROFILE,
            lambda s: s.save_caller_user_profile(profile),
        )

    # Invalidation

    async def invalidate(self, mutation: Mutation) -> list[CacheCategory]:
        """Invalidate every category a successful ``mutation`` can affect."""
        categories = sorted(INVALIDATION_MAP[mutation], key=lambda c: c.value)
        for category in categories:
            await self.invalidate_category(category)
        logger.info(
            f"{mutation.value} succeeded, invalidated: "
            f"{', '.join(c.value for c in categories)}"
        )
        return categories

    async def invalidate_category(self, category: CacheCategory) -> int:
        removed = await self.cache.invalidate_category(category.value)
        for view in list(self._views.get(category, ())):
            view.reset()
        if category is CacheCategory.IDENTITY_ROLE:
            self.gate.invalidate()
        return removed

    # Internals

    def _require_service(self) -> CemeteryService:
        if self._service is None:
            raise ServiceUnavailableError("Remote service not available")
        return self._service

    async def _authorize(self, capability: Capability | None) -> None:
        """Re-resolve an expired or dropped role before checking ``capability``."""
        if capability is None:
            return
        if self.gate.needs_resolution:
            await self.resolve_authorization()
        self.gate.require(capability)

    def _require_identity(self) -> None:
        if not self.gate.state.is_authenticated:
            raise AccessDeniedError("user", "Login required")

    async def _read(
        self,
        category: CacheCategory,
        params: dict[str, Any] | None,
        fetch: Callable[[CemeteryService], Awaitable[T]],
        capability: Capability | None = None,
    ) -> T:
        await self._authorize(capability)

        key = self.cache.generate_key(category.value, params)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached.data

        version = self.cache.track(key)

        async def load() -> T:
            # Reported once per shared in-flight call
            try:
                return await self.scheduler.execute(
                    lambda: fetch(self._require_service())
                )
            except Exception as e:
                self._report(e)
                raise

        data = await self._deduplicator.dedupe(f"{key}@v{version}", load)

        await self.cache.set(
            key, data, category.value, staleness_budget(category), version=version
        )
        return data

    async def _mutate(
        self,
        mutation: Mutation,
        op: Callable[[CemeteryService], Awaitable[T]],
        capability: Capability | None = None,
    ) -> T:
        await self._authorize(capability)

        try:
            value = await self.scheduler.execute(lambda: op(self._require_service()))
        except Exception as e:
            self._report(e)
            raise

        await self.invalidate(mutation)
        return value

    async def _cached_grave(self, grave_id: int) -> Grave | None:
        key = self.cache.generate_key(CacheCategory.GRAVE_BY_ID.value, {"id": grave_id})
        cached = await self.cache.get(key)
        return cached.data if cached else None

    def _register_view(
        self, merger: PaginationMerger[Any], *categories: CacheCategory
    ) -> None:
        for category in categories:
            self._views.setdefault(category, weakref.WeakSet()).add(merger)

    async def _drop_session_data(self) -> None:
        await self.cache.clear()
        self._deduplicator.cancel_all()
        for views in self._views.values():
            for view in list(views):
                view.reset()
        self.public_index.reset()
        self.privileged_index.reset()

    def _report(self, error: Exception) -> None:
        """Route a final failure: authorization faults force re-resolution."""
        kind = classify_failure(error)
        if kind is FailureKind.AUTHORIZATION and not isinstance(
            error, AccessDeniedError
        ):
            self.gate.handle_authorization_fault(error)
        self._emit(describe_failure(error))

    def _on_retry(
        self, attempt: int, attempts: int, delay_ms: float, error: Exception
    ) -> None:
        self._emit(
            Notice(
                kind=NoticeKind.TRANSIENT,
                message=(
                    f"Connection problem, retrying in {delay_ms / 1000:.0f}s "
                    f"(attempt {attempt}/{attempts})"
                ),
                retryable=True,
            )
        )

    def _emit(self, notice: Notice) -> None:
        if self._on_notice:
            self._on_notice(notice)

    def get_health_status(self) -> dict[str, Any]:
        """Cache, deduplicator, connection and authorization status."""
        state = self.gate.state
        return {
            "cache": self.cache.get_stats().to_dict(),
            "deduplicator": self._deduplicator.get_stats().to_dict(),
            "connection": self.monitor.get_status(),
            "authorization": {
                "phase": state.phase.value,
                "role": state.role.value if state.role else None,
                "view": self.gate.view.value,
            },
        }
