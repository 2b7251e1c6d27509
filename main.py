"""
Cemetery register client entry point.

Connects to the remote register, loads the layout and first public page,
and logs a summary.
"""

import asyncio

from loguru import logger

from cemetery.datasource import HttpCemeteryService
from cemetery.registry import CacheCoordinator, Capability
from cemetery.services import ConnectionStatus, ServiceClient
from cemetery.settings import global_settings


async def main() -> None:
    logger.info("Starting cemetery register client...")

    coordinator = CacheCoordinator(
        HttpCemeteryService(ServiceClient()),
        on_notice=lambda notice: logger.info(f"[{notice.kind.value}] {notice.message}"),
    )

    try:
        logger.info(f"Checking connection to {global_settings.service_url}...")
        status = await coordinator.check_connection()
        if status is not ConnectionStatus.CONNECTED:
            logger.error("Remote register is not reachable")
            return

        if global_settings.principal:
            logger.info(f"Logging in as {global_settings.principal}...")
            state = await coordinator.login(global_settings.principal)
            logger.info(f"Resolved role: {state.role.value if state.role else 'none'}")

        layout = await coordinator.get_cemetery_layout()
        logger.info(
            f"{layout.cemetery_name or 'Cemetery'}: {len(layout.alleys)} alleys, "
            f"{sum(len(a.grave_ids) for a in layout.alleys)} graves"
        )

        if coordinator.gate.can(Capability.OPERATE):
            stats = await coordinator.get_grave_statistics()
            logger.info(
                f"Statistics: total={stats.total} free={stats.free} "
                f"reserved={stats.reserved} unpaid={stats.unpaid} paid={stats.paid}"
            )

        public = coordinator.browse_public_graves()
        await public.fetch_next()
        logger.info(
            f"First public page: {len(public.items)} of {public.total} records"
            + (" (more available)" if public.has_more else "")
        )

    except Exception as e:
        logger.error(f"Error in main: {e}")
    finally:
        await coordinator.close()
        logger.info("Cemetery register client stopped")


if __name__ == "__main__":
    asyncio.run(main())
