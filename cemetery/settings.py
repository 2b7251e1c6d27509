import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Remote service
    service_url: str = Field(
        default="http://127.0.0.1:4943/api", alias="CEMETERY_SERVICE_URL"
    )
    service_id: str = Field(default="cemetery", alias="CEMETERY_SERVICE_ID")
    request_timeout: float = Field(default=30.0, alias="CEMETERY_REQUEST_TIMEOUT")
    principal: str | None = Field(default=None, alias="CEMETERY_PRINCIPAL")

    # Retry policy (milliseconds)
    retry_max_attempts: int = Field(default=3, alias="RETRY_MAX_ATTEMPTS")
    retry_base_delay_ms: int = Field(default=1000, alias="RETRY_BASE_DELAY_MS")
    retry_max_delay_ms: int = Field(default=10000, alias="RETRY_MAX_DELAY_MS")

    # Pagination
    page_size: int = Field(default=50, alias="PAGE_SIZE")

    # Staleness budgets per data category
    role_ttl_seconds: int = Field(default=300, alias="ROLE_TTL_SECONDS")
    layout_ttl_seconds: int = Field(default=120, alias="LAYOUT_TTL_SECONDS")
    grave_ttl_seconds: int = Field(default=60, alias="GRAVE_TTL_SECONDS")
    public_ttl_seconds: int = Field(default=30, alias="PUBLIC_TTL_SECONDS")

    # Cache
    cache_max_size: int = Field(default=500, alias="CACHE_MAX_SIZE")
    cache_debug: bool = Field(default=False, alias="CACHE_DEBUG")


global_settings = Settings.model_validate(dict(os.environ))
