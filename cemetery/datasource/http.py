"""
HTTP implementation of the remote cemetery service.

Method names on the wire are the service's camelCase operation names;
records are decoded into Pydantic models, mutation replies into Ok/Err.
"""

from loguru import logger

from cemetery.datasource.base import CemeteryService
from cemetery.domain.results import Result, parse_result
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
from cemetery.services.client import ServiceClient


class HttpCemeteryService(CemeteryService):
    """Remote cemetery service reached through a ServiceClient."""

    def __init__(self, client: ServiceClient):
        self.client = client

    @property
    def service_id(self) -> str:
        return self.client.service_id

    async def health_check(self) -> None:
        await self.client.call("healthCheck")

    async def get_all_graves(self) -> list[Grave]:
        data = await self.client.call("getAllGraves")
        return [Grave.model_validate(item) for item in data or []]

    async def get_paginated_graves(self, offset: int, page_size: int) -> GravePage:
        data = await self.client.call(
            "getPaginatedGraves", offset=offset, pageSize=page_size
        )
        return GravePage.model_validate(data)

    async def search_graves_paginated(
        self, query: str, offset: int, page_size: int
    ) -> GravePage:
        data = await self.client.call(
            "searchGravesPaginated", query=query, offset=offset, pageSize=page_size
        )
        return GravePage.model_validate(data)

    async def search_public_graves_paginated(
        self, query: str, offset: int, page_size: int
    ) -> PublicGravePage:
        data = await self.client.call(
            "searchPublicGravesPaginated",
            query=query,
            offset=offset,
            pageSize=page_size,
        )
        return PublicGravePage.model_validate(data)

    async def get_grave(self, grave_id: int) -> Grave | None:
        data = await self.client.call("getGrave", id=grave_id)
        return Grave.model_validate(data) if data else None

    async def get_cemetery_layout(self) -> CemeteryLayout:
        data = await self.client.call("getCemeteryState")
        return CemeteryLayout.model_validate(data)

    async def get_public_tiles(self) -> list[PublicTile]:
        data = await self.client.call("getPublicTiles")
        return [PublicTile.model_validate(item) for item in data or []]

    async def get_public_graves(self) -> list[PublicGraveResult]:
        data = await self.client.call("getPublicGraves")
        return [PublicGraveResult.model_validate(item) for item in data or []]

    async def search_graves(
        self,
        surname: str | None = None,
        year_of_death: int | None = None,
        owner: str | None = None,
        status: GraveStatus | None = None,
        locality: str | None = None,
    ) -> list[Grave]:
        data = await self.client.call(
            "searchGraves",
            surname=surname,
            yearOfDeath=year_of_death,
            owner=owner,
            status=status.value if status else None,
            locality=locality,
        )
        return [Grave.model_validate(item) for item in data or []]

    async def search_public_graves(
        self, surname: str | None = None, year_of_death: int | None = None
    ) -> list[PublicGraveResult]:
        data = await self.client.call(
            "searchPublicGravesWithLocation",
            surname=surname,
            yearOfDeath=year_of_death,
        )
        return [PublicGraveResult.model_validate(item) for item in data or []]

    async def get_caller_role(self) -> str:
        return str(await self.client.call("getCallerUserRole"))

    async def get_access_role(self) -> AccessRole:
        role = await self.client.call("getAccessRole")
        try:
            return AccessRole(str(role).lower())
        except ValueError:
            logger.warning(f"Unknown access role from service: {role!r}")
            return AccessRole.NONE

    async def get_grave_statistics(self) -> GraveStatistics:
        data = await self.client.call("getGraveStatistics")
        return GraveStatistics.model_validate(data)

    async def get_boss(self) -> str | None:
        return await self.client.call("getBoss")

    async def get_managers(self) -> list[str]:
        return list(await self.client.call("getManagers") or [])

    async def get_caller_user_profile(self) -> UserProfile | None:
        data = await self.client.call("getCallerUserProfile")
        return UserProfile.model_validate(data) if data else None

    async def get_site_content(self) -> SiteContent:
        data = await self.client.call("getSiteContent")
        return SiteContent.model_validate(data)

    async def add_alley(self, name: str) -> Result[None]:
        return parse_result(await self.client.call("addAlley", name=name))

    async def remove_alley(self, name: str) -> Result[None]:
        return parse_result(await self.client.call("removeAlley", name=name))

    async def add_grave(self, alley: str, plot_number: int) -> Result[int]:
        return parse_result(
            await self.client.call("addGrave", alley=alley, plotNumber=plot_number)
        )

    async def remove_grave(self, grave_id: int) -> Result[None]:
        return parse_result(await self.client.call("removeGrave", id=grave_id))

    async def update_grave(self, grave_id: int, record: Grave) -> Result[None]:
        return parse_result(
            await self.client.call(
                "updateGrave", id=grave_id, updatedRecord=record.to_wire()
            )
        )

    async def add_manager(self, principal: str) -> bool:
        return bool(await self.client.call("addManager", principal=principal))

    async def remove_manager(self, principal: str) -> bool:
        return bool(await self.client.call("removeManager", principal=principal))

    async def assign_owner(self, principal: str) -> None:
        await self.client.call("assignOwner", principal=principal)

    async def update_site_content(self, content: SiteContent) -> None:
        await self.client.call("updateSiteContent", newContent=content.to_wire())

    async def update_logo(self, logo_url: str | None) -> None:
        await self.client.call("updateLogoImage", newLogo=logo_url)

    async def save_caller_user_profile(self, profile: UserProfile) -> None:
        await self.client.call("saveCallerUserProfile", profile=profile.to_wire())

    def set_principal(self, principal: str | None) -> None:
        self.client.set_principal(principal)

    async def close(self) -> None:
        await self.client.close()
