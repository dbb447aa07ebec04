"""APScheduler: refreshes the course catalog ahead of the stale window."""

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from learner_portal.cache import listing_cache
from learner_portal.config import CACHE_REFRESH_MINUTES
from learner_portal.services.sequencer import refresh_courses

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


@scheduler.scheduled_job("interval", minutes=CACHE_REFRESH_MINUTES, id="refresh_courses")
async def refresh_course_catalog():
    """Reload published courses so page loads rarely wait on the store."""
    try:
        count = await asyncio.to_thread(refresh_courses, listing_cache)
        logger.debug("Course catalog refreshed: %d courses", count)
    except Exception as e:
        logger.error("Course catalog refresh failed: %s", e)
