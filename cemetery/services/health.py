"""
ConnectionMonitor - tracks reachability of the remote service.

States:
- CHECKING: a health check is running (initial state)
- CONNECTED: the last health check succeeded
- DISCONNECTED: the last health check failed after retries

Transitions:
- any → CHECKING: check() / recheck() starts
- CHECKING → CONNECTED: health-check call succeeded
- CHECKING → DISCONNECTED: health-check call failed
"""

from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable

from loguru import logger

from cemetery.services.errors import ServiceUnavailableError
from cemetery.services.retry import RetryScheduler


class ConnectionStatus(str, Enum):
    """Remote service reachability."""

    CHECKING = "checking"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class ConnectionMonitor:
    """
    Health checking for a single remote service.

    Usage:
        monitor = ConnectionMonitor("cemetery", lambda: service, scheduler)
        status = await monitor.check()
        if status is ConnectionStatus.DISCONNECTED:
            ...
    """

    def __init__(
        self,
        service_id: str,
        service_provider: Callable[[], Any],
        scheduler: RetryScheduler,
    ):
        self.service_id = service_id
        self._service_provider = service_provider
        self._scheduler = scheduler

        self._status = ConnectionStatus.CHECKING
        self._last_error: Exception | None = None
        self._handle_missing = False
        self._last_checked: datetime | None = None

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status is ConnectionStatus.CONNECTED

    @property
    def handle_missing(self) -> bool:
        """True when the last failure was the remote handle never initialising."""
        return self._handle_missing

    async def check(self) -> ConnectionStatus:
        """Run the health-check call through the retry scheduler."""
        self._set_status(ConnectionStatus.CHECKING)

        async def ping() -> None:
            service = self._service_provider()
            if service is None:
                raise ServiceUnavailableError(
                    "Remote service not available", service_id=self.service_id
                )
            await service.health_check()

        try:
            await self._scheduler.execute(ping)
        except Exception as e:
            logger.warning(f"Health check for '{self.service_id}' failed: {e}")
            self._last_error = e
            self._handle_missing = self._service_provider() is None
            self._set_status(ConnectionStatus.DISCONNECTED)
            return self._status
        finally:
            self._last_checked = datetime.now()

        self._last_error = None
        self._handle_missing = False
        self._set_status(ConnectionStatus.CONNECTED)
        return self._status

    async def recheck(
        self, reinitialize: Callable[[], Awaitable[None]] | None = None
    ) -> ConnectionStatus:
        """Optionally rebuild the remote handle, then check again."""
        if reinitialize is not None:
            await reinitialize()
        return await self.check()

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is not self._status:
            logger.info(
                f"Connection to '{self.service_id}' {self._status.value} -> {status.value}"
            )
        self._status = status

    def get_status(self) -> dict[str, Any]:
        """Get current status as dictionary."""
        return {
            "service_id": self.service_id,
            "status": self._status.value,
            "handle_missing": self._handle_missing,
            "last_error": str(self._last_error) if self._last_error else None,
            "last_checked": (
                self._last_checked.isoformat() if self._last_checked else None
            ),
        }
