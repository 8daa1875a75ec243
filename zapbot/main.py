import asyncio
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from zapbot.config import settings
from zapbot.logging_config import get_logger, setup_logging
from zapbot.routers import dashboard, webhook
from zapbot.runtime import build_runtime

setup_logging(settings.log_level)

app = FastAPI(
    title="zapbot",
    description="WhatsApp chatbot backed by Gemini",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(dashboard.router)

app.state.runtime = build_runtime(settings)

eviction_logger = get_logger("eviction_worker")
_eviction_worker_task: asyncio.Task | None = None


def _is_eviction_worker_enabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return settings.eviction_worker_enabled and settings.conversation_ttl_seconds > 0


async def _eviction_worker_loop() -> None:
    runtime = app.state.runtime
    interval_seconds = max(settings.eviction_interval_seconds, 1.0)
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            evicted = await runtime.store.evict_idle(settings.conversation_ttl_seconds)
            purged = runtime.media.purge_expired()
            if evicted or purged:
                eviction_logger.info(
                    "Eviction worker processed",
                    extra={"context": {"conversations": len(evicted), "media": purged}},
                )
        except asyncio.CancelledError:
            break
        except Exception as exc:
            eviction_logger.error(
                "Eviction worker loop failed",
                extra={"context": {"error": str(exc)}},
            )


@app.on_event("startup")
async def start_eviction_worker() -> None:
    global _eviction_worker_task
    if not _is_eviction_worker_enabled():
        return
    if _eviction_worker_task is None or _eviction_worker_task.done():
        _eviction_worker_task = asyncio.create_task(_eviction_worker_loop())
        eviction_logger.info("Eviction worker started")


@app.on_event("shutdown")
async def stop_eviction_worker() -> None:
    global _eviction_worker_task
    await app.state.runtime.sessions.invalidate_all()
    if _eviction_worker_task is None:
        return
    _eviction_worker_task.cancel()
    try:
        await _eviction_worker_task
    except asyncio.CancelledError:
        pass
    _eviction_worker_task = None
