"""
Remote cemetery service interface.
"""

from abc import ABC, abstractmethod

from cemetery.domain.results import Result
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


class CemeteryService(ABC):
    """
    The authoritative remote service, consumed as a black box.

    Implementations must:
    - Return typed records for reads
    - Return ``Ok``/``Err`` results for alley and grave mutations
    - Raise ``RemoteFault`` for authorization denials and
      ``ConnectivityError`` subclasses for transport failures
    """

    @property
    @abstractmethod
    def service_id(self) -> str:
        """Unique identifier for this service."""
        ...

    # Reads

    @abstractmethod
    async def health_check(self) -> None: ...

    @abstractmethod
    async def get_all_graves(self) -> list[Grave]: ...

    @abstractmethod
    async def get_paginated_graves(self, offset: int, page_size: int) -> GravePage: ...

    @abstractmethod
    async def search_graves_paginated(
        self, query: str, offset: int, page_size: int
    ) -> GravePage: ...

    @abstractmethod
    async def search_public_graves_paginated(
        self, query: str, offset: int, page_size: int
    ) -> PublicGravePage: ...

    @abstractmethod
    async def get_grave(self, grave_id: int) -> Grave | None: ...

    @abstractmethod
    async def get_cemetery_layout(self) -> CemeteryLayout: ...

    @abstractmethod
    async def get_public_tiles(self) -> list[PublicTile]: ...

    @abstractmethod
    async def get_public_graves(self) -> list[PublicGraveResult]: ...

    @abstractmethod
    async def search_graves(
        self,
        surname: str | None = None,
        year_of_death: int | None = None,
        owner: str | None = None,
        status: GraveStatus | None = None,
        locality: str | None = None,
    ) -> list[Grave]: ...

    @abstractmethod
    async def search_public_graves(
        self, surname: str | None = None, year_of_death: int | None = None
    ) -> list[PublicGraveResult]: ...

    @abstractmethod
    async def get_caller_role(self) -> str: ...

    @abstractmethod
    async def get_access_role(self) -> AccessRole: ...

    @abstractmethod
    async def get_grave_statistics(self) -> GraveStatistics: ...

    @abstractmethod
    async def get_boss(self) -> str | None: ...

    @abstractmethod
    async def get_managers(self) -> list[str]: ...

    @abstractmethod
    async def get_caller_user_profile(self) -> UserProfile | None: ...

    @abstractmethod
    async def get_site_content(self) -> SiteContent: ...

    # Writes

    @abstractmethod
    async def add_alley(self, name: str) -> Result[None]: ...

    @abstractmethod
    async def remove_alley(self, name: str) -> Result[None]: ...

    @abstractmethod
    async def add_grave(self, alley: str, plot_number: int) -> Result[int]: ...

    @abstractmethod
    async def remove_grave(self, grave_id: int) -> Result[None]: ...

    @abstractmethod
    async def update_grave(self, grave_id: int, record: Grave) -> Result[None]: ...

    @abstractmethod
    async def add_manager(self, principal: str) -> bool: ...

    @abstractmethod
    async def remove_manager(self, principal: str) -> bool: ...

    @abstractmethod
    async def assign_owner(self, principal: str) -> None: ...

    @abstractmethod
    async def update_site_content(self, content: SiteContent) -> None: ...

    @abstractmethod
    async def update_logo(self, logo_url: str | None) -> None: ...

    @abstractmethod
    async def save_caller_user_profile(self, profile: UserProfile) -> None: ...

    # Session

    def set_principal(self, principal: str | None) -> None:
        """Identity used for subsequent calls; no-op unless the transport needs it."""
        return None

    async def close(self) -> None:
        return None
