"""
Cemetery register record types using Pydantic models.

Field names are snake_case in Python and camelCase on the wire; every model
accepts either form on input and serializes with ``by_alias=True``.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for every record exchanged with the remote service."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class GraveStatus(str, Enum):
    """Grave plot status. Any value may be written; removal requires FREE."""

    FREE = "free"
    RESERVED = "reserved"
    UNPAID = "unpaid"
    PAID = "paid"


class AccessRole(str, Enum):
    """Effective role of the caller as reported by the remote service."""

    NONE = "none"
    MANAGER = "manager"
    BOSS = "boss"


class DeceasedPerson(WireModel):
    first_name: str
    last_name: str
    year_of_death: int
    date_of_death: int | None = None  # nanoseconds since epoch
    place_of_death: str = ""


class GraveOwner(WireModel):
    first_name: str
    last_name: str
    address: str
    phone: str | None = None


class Grave(WireModel):
    """A single plot record with occupants, optional owner and payment validity."""

    id: int
    alley: str
    plot_number: int
    status: GraveStatus = GraveStatus.FREE
    deceased_persons: list[DeceasedPerson] = Field(default_factory=list)
    owner: GraveOwner | None = None
    payment_valid_until: int | None = None  # nanoseconds since epoch


class Alley(WireModel):
    name: str
    grave_ids: list[int] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.grave_ids


class CemeteryLayout(WireModel):
    cemetery_name: str = ""
    last_grave_id: int = 0
    alleys: list[Alley] = Field(default_factory=list)

    def get_alley(self, name: str) -> Alley | None:
        for alley in self.alleys:
            if alley.name == name:
                return alley
        return None


class PublicTile(WireModel):
    """Public projection used by the tile map; never carries owner or payment."""

    id: int
    alley: str
    plot_number: int
    status: GraveStatus
    deceased_persons: list[DeceasedPerson] = Field(default_factory=list)


class PublicGraveResult(WireModel):
    """Public search hit: one occupant name/year plus location and status."""

    first_name: str
    last_name: str
    year_of_death: int | None = None
    status: GraveStatus
    alley: str
    plot_number: int


class GravePage(WireModel):
    """One cursor page of grave records."""

    graves: list[Grave] = Field(default_factory=list)
    next_offset: int | None = None
    page_size: int
    total_graves: int


class PublicGravePage(WireModel):
    """One cursor page of public search results."""

    graves: list[PublicGraveResult] = Field(default_factory=list)
    next_offset: int | None = None
    page_size: int
    total_graves: int


class GraveStatistics(WireModel):
    total: int = 0
    free: int = 0
    reserved: int = 0
    unpaid: int = 0
    paid: int = 0


class PublicHtmlSection(WireModel):
    title: str = ""
    content: str = ""


class FooterContent(WireModel):
    address: str = ""
    phone_number: str = ""
    email: str = ""
    office_hours: str = ""
    website_link: str = ""
    bank_account_number: str = ""


class HomepageHeroContent(WireModel):
    headline: str = ""
    intro_paragraph: str = ""
    background_image_url: str = ""
    logo_image: str | None = None  # blob URL
    hero_background_image: str | None = None


class SiteContent(WireModel):
    homepage_hero: HomepageHeroContent = Field(default_factory=HomepageHeroContent)
    cemetery_information: PublicHtmlSection = Field(default_factory=PublicHtmlSection)
    graves_declaration: PublicHtmlSection = Field(default_factory=PublicHtmlSection)
    footer: FooterContent = Field(default_factory=FooterContent)
    logo_image: str | None = None


class UserProfile(WireModel):
    name: str
    email: str | None = None
