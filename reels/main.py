import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as aioredis
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import metrics
from .config import Settings
from .errors import ReelError
from .routes import reels_router
from .service import ReelService
from .store import InMemoryTaskStore, RedisTaskStore, TaskStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def build_store(settings: Settings) -> TaskStore:
    """Redis if configured and reachable, otherwise the in-process store."""
    if settings.redis_url:
        client = aioredis.from_url(settings.redis_url)
        try:
            await client.ping()
            logger.info(f"Redis connected: {settings.redis_url[:30]}...")
            return RedisTaskStore(client)
        except Exception as e:
            logger.warning(f"Redis connection failed: {e} — falling back to in-memory task store")
            await client.aclose()
    return InMemoryTaskStore()


def create_app(settings: Optional[Settings] = None, service: Optional[ReelService] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Reels service starting up...")
        metrics.set_gauge("start_time", time.time())
        owns_service = getattr(app.state, "service", None) is None
        if owns_service:
            store = await build_store(settings)
            app.state.service = ReelService.from_settings(settings, store)
        logger.info(f"Task store backend: {app.state.service.store.backend}")
        yield
        logger.info("Reels service shutting down...")
        if owns_service:
            await app.state.service.close()
            app.state.service = None

    app = FastAPI(title="SyncIn Reels", lifespan=lifespan)
    app.state.settings = settings
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ReelError)
    async def reel_error_handler(request: Request, exc: ReelError):
        metrics.record_error(request.url.path, type(exc).__name__, str(exc), getattr(exc, "task_id", ""))
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or "body"
        message = f"Invalid request: {field} {first.get('msg', 'is invalid')}".strip()
        metrics.record_error(request.url.path, "RequestValidationError", message)
        return JSONResponse(status_code=400, content={"error": message})

    @app.get("/health")
    def health_check():
        current = app.state.service
        return {
            "status": "ok",
            "environment": settings.environment,
            "runway_api_key_set": bool(settings.runway_api_key),
            "webhook_secret_set": bool(settings.webhook_secret),
            "store_backend": current.store.backend if current else None,
        }

    @app.get("/metrics")
    def metrics_endpoint():
        current = app.state.service
        if current is not None and isinstance(current.store, InMemoryTaskStore):
            for status, count in current.store.count_by_status().items():
                metrics.set_gauge(f"tasks.{status}", count)
        return metrics.get_snapshot()

    app.include_router(reels_router)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8080)
