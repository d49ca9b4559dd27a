"""
FastAPI app entrypoint.

Builds the Dispatcher once (channel config is fixed for the process) and runs the
campaign jobs on a BackgroundScheduler.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from clinic_notify.api.routes import notifications, push
from clinic_notify.config import settings
from clinic_notify.scheduler.campaign_jobs import register_campaign_jobs
from clinic_notify.services.notifications.dispatcher import build_dispatcher

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    dispatcher = build_dispatcher(settings)
    app.state.dispatcher = dispatcher

    scheduler = BackgroundScheduler()
    if os.getenv("DISABLE_SCHEDULER", "").lower() not in ("1", "true", "yes"):
        register_campaign_jobs(scheduler, dispatcher, reminder_hour=settings.reminder_hour)
        scheduler.start()
    app.state.scheduler = scheduler
    logger.info(
        "Notification service ready (push=%s, kakao=%s)",
        dispatcher.config.push_enabled, dispatcher.config.kakao_enabled,
    )
    yield
    if scheduler.running:
        scheduler.shutdown(wait=False)
    dispatcher.close()


app = FastAPI(title="Clinic Notify", version="0.1.0", lifespan=lifespan)

# CORS: optional CORS_ORIGINS env (comma-separated) for the hospital dashboard
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_extra = os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(push.router, tags=["push"])
app.include_router(notifications.router, tags=["notifications"])


@app.get("/", include_in_schema=False)
def root():
    return {"message": "Clinic Notify API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
