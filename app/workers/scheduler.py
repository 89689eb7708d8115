import asyncio
import logging
from typing import Awaitable, Callable, List

logger = logging.getLogger(__name__)


async def run_periodically(name: str, interval_seconds: float, job: Callable[[], Awaitable[object]], initial_delay: float = 0):
    """Run ``job`` forever on a fixed interval until cancelled.

    Each run is independent; an exception is logged and the loop keeps going.
    """
    try:
        if initial_delay:
            await asyncio.sleep(initial_delay)
        while True:
            try:
                logger.info(f"Running scheduled job '{name}'")
                await job()
            except Exception as e:
                logger.error(f"Scheduled job '{name}' failed: {e}")
            await asyncio.sleep(interval_seconds)
    except asyncio.CancelledError:
        logger.info(f"Scheduled job '{name}' stopped")
        raise


class Scheduler:
    """Owns the background sweep tasks started in the app lifespan."""

    def __init__(self):
        self._tasks: List[asyncio.Task] = []

    def add_job(self, name: str, interval_seconds: float, job: Callable[[], Awaitable[object]], initial_delay: float = 0):
        task = asyncio.get_running_loop().create_task(
            run_periodically(name, interval_seconds, job, initial_delay),
            name=name,
        )
        self._tasks.append(task)
        logger.info(f"Scheduled '{name}' every {interval_seconds}s")

    async def shutdown(self):
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()


def start_scheduler(notarization_service, payment_service, settings) -> Scheduler:
    scheduler = Scheduler()
    scheduler.add_job(
        "auto_verify_documents",
        settings.AUTO_VERIFY_INTERVAL_SECONDS,
        notarization_service.auto_verify_documents,
        initial_delay=60,
    )
    scheduler.add_job(
        "update_all_payments",
        settings.PAYMENT_RECONCILE_INTERVAL_SECONDS,
        payment_service.update_all_payments,
        initial_delay=300,
    )
    return scheduler
