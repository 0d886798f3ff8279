from contextlib import asynccontextmanager

import sentry_sdk
import structlog
from fastapi import FastAPI
from granian import Granian
from granian.constants import Interfaces

from app.config import settings
from app.logger import setup_logging
from app.middleware import LoggingMiddleware
from app.routes import webhooks_router
from app.services.slack_notifier import SlackNotifier

if settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        traces_sample_rate=0.1,
        profiles_sample_rate=0.1,
    )

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    app.state.notifier = SlackNotifier.from_tokens(settings.slack_tokens)
    logger.info(
        "Slack relay started",
        label=settings.pr_label,
        workspaces=len(settings.slack_tokens),
    )
    yield


app = FastAPI(lifespan=lifespan)
app.add_middleware(LoggingMiddleware)


@app.get("/", tags=["health"])
async def read_root():
    return {"status": "ok"}


app.include_router(webhooks_router)


def serve() -> None:
    Granian(
        "app.main:app",
        address=settings.host,
        port=settings.port,
        interface=Interfaces.ASGI,
    ).serve()
