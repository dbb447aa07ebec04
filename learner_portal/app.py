"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from learner_portal.cache import listing_cache
from learner_portal.config import CACHE_REFRESH_MINUTES, PAYSTACK_SECRET_KEY
from learner_portal.routers import auth, courses, dashboard, enroll, quiz, webhooks
from learner_portal.services.payments import PaystackGateway
from learner_portal.services.quiz import QuizRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        from learner_portal.scheduler import scheduler
        scheduler.start()
        logger.info("Scheduler started, refreshing course catalog every %d minutes", CACHE_REFRESH_MINUTES)
    except Exception as e:
        logger.warning("Scheduler failed to start: %s", e)

    yield

    try:
        from learner_portal.scheduler import scheduler
        scheduler.shutdown(wait=False)
    except Exception as e:
        logger.debug("Scheduler shutdown: %s", e)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Learner Portal",
        description="Course weeks, lesson progress, enrollment and the final assessment.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.cache = listing_cache
    app.state.quizzes = QuizRegistry()
    if PAYSTACK_SECRET_KEY:
        app.state.gateway = PaystackGateway()
    else:
        logger.warning("PAYSTACK_SECRET_KEY not set, paid checkout and webhooks are disabled")
        app.state.gateway = None

    @app.get("/health", include_in_schema=False)
    async def health():
        return {"status": "ok"}

    for r in [auth, dashboard, courses, enroll, quiz, webhooks]:
        app.include_router(r.router)

    return app
