import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from arlo.config import settings
from arlo.services.live import close_all

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("ready")
    yield
    # leaving every meeting cancels reconnect and auto-start timers
    await close_all()


app = FastAPI(
    title="Arlo",
    description="live meeting assistant: transcription control and timeline",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from arlo.routers import live, timeline  # noqa: E402

app.include_router(live.router, prefix="/api/live", tags=["live"])
app.include_router(timeline.router, tags=["timeline"])


@app.get("/api/health")
async def health():
    from arlo.services.live import live_session_count
    return {
        "status": "ok",
        "live_sessions": live_session_count(),
        "stream_host": settings.page_url,
    }
