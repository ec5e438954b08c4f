"""
APScheduler setup for periodic price collection.

The collection job fires every ``collection_interval_hours`` (6 by default).
Which routes a given run covers is decided by the collector itself: core
routes every time, normal routes only in the daily window.
"""

import asyncio
import logging
import sys
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.jobstores.memory import MemoryJobStore

from flight_ticker.config import get_settings
from flight_ticker.database import SessionLocal, init_db
from flight_ticker.exceptions import AuthenticationError
from flight_ticker.routes import build_routes
from flight_ticker.services.amadeus_client import AmadeusClient
from flight_ticker.services.collector import CollectionSummary, PriceCollector
from flight_ticker.services.notification import AlertDispatcher, build_sinks

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


async def run_collection(dispatcher: Optional[AlertDispatcher] = None) -> CollectionSummary:
    """
    Run one collection pass with a fresh session and Amadeus client.

    Raises AuthenticationError when no token can be obtained.
    """
    settings = get_settings()
    owns_dispatcher = dispatcher is None
    if dispatcher is None:
        dispatcher = AlertDispatcher(build_sinks(settings))

    db = SessionLocal()
    try:
        collector = PriceCollector(
            db=db,
            client=AmadeusClient(settings),
            dispatcher=dispatcher,
            routes=build_routes(settings.core_route_codes, origin=settings.origin),
            settings=settings,
        )
        return await collector.run()
    finally:
        db.close()
        if owns_dispatcher:
            await dispatcher.close()


async def collection_job(dispatcher: Optional[AlertDispatcher] = None):
    """Scheduled entry point. A failed run is logged and retried at the next tick."""
    logger.info("Starting scheduled price collection")
    try:
        await run_collection(dispatcher=dispatcher)
    except AuthenticationError:
        logger.error("Scheduled collection skipped: authentication failed")
    except Exception as e:
        logger.error(f"Error in scheduled collection: {e}")


def get_scheduler(dispatcher: Optional[AlertDispatcher] = None) -> AsyncIOScheduler:
    """Get or create the global scheduler instance."""
    global scheduler
    if scheduler is None:
        settings = get_settings()
        logger.info(f"Scheduler using timezone: {settings.timezone}")

        scheduler = AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            timezone=settings.timezone
        )

        scheduler.add_job(
            collection_job,
            trigger=CronTrigger(hour=f"*/{settings.collection_interval_hours}", minute=5),
            kwargs={"dispatcher": dispatcher},
            id='price_collection',
            name=f'Price Collection (every {settings.collection_interval_hours}h)',
            replace_existing=True,
            max_instances=1,
        )

    return scheduler


def start_scheduler(dispatcher: Optional[AlertDispatcher] = None):
    """Start the scheduler (call this from FastAPI startup)."""
    scheduler_instance = get_scheduler(dispatcher)

    if not scheduler_instance.running:
        scheduler_instance.start()
        logger.info("APScheduler started successfully")

        for job in scheduler_instance.get_jobs():
            logger.info(f"Next '{job.name}': {job.next_run_time}")
    else:
        logger.warning("Scheduler already running")


def stop_scheduler():
    """Stop the scheduler (call this from FastAPI shutdown)."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")
    scheduler = None


def get_scheduler_status() -> dict:
    if scheduler is None or not scheduler.running:
        return {
            "running": False,
            "jobs": [],
        }

    return {
        "running": True,
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in scheduler.get_jobs()
        ],
    }


def main():
    """Run a single collection pass from the command line or an external cron."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    init_db()
    try:
        summary = asyncio.run(run_collection())
    except AuthenticationError as e:
        logger.error(f"Fatal: {e}")
        sys.exit(1)
    logger.info(f"Run summary: {summary.to_dict()}")


if __name__ == "__main__":
    main()
