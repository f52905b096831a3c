import asyncio
import logging
from typing import NoReturn

from aiohttp import web

from moodboard.app.config import HealthGaugeAppKey, MetricsClientAppKey

logger = logging.getLogger(__name__)

HEALTH_TICK_SECONDS = 1.0


async def tick_health_task(app: web.Application) -> NoReturn:
    """
    Tick the health gauge every second, reducing the health score by 1 each time.

    The score after each tick is reported as the ``moodboard.health.value`` gauge.
    """

    logger.info("Starting health gauge task")

    health_gauge = app[HealthGaugeAppKey]
    metrics_client = app[MetricsClientAppKey]
    while True:
        await health_gauge.tick()
        metrics_client.gauge("moodboard.health.value", health_gauge.value)
        await asyncio.sleep(HEALTH_TICK_SECONDS)
