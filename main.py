import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ai_providers import FreepikClient
from ai_worker import run_reaper
from config import Settings, settings as default_settings
from errors import APIError, fail
from jobs import InMemoryJobStore, JobStore
from routers import health, images
from services.image_jobs import ImageJobService

# ── ENV ────────────────────────────────────────────────────────────────
load_dotenv()  # локально читает .env; в проде переменные приходят из окружения

logger = logging.getLogger("imagejobs.api")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def build_provider(cfg: Settings) -> FreepikClient:
    return FreepikClient(
        cfg.FREEPIK_API_KEY,
        base_url=cfg.FREEPIK_API_URL,
        default_resolution=cfg.DEFAULT_RESOLUTION,
        default_model=cfg.DEFAULT_MODEL,
        timeout_sec=cfg.PROVIDER_TIMEOUT_SECONDS,
        submit_retries=cfg.PROVIDER_SUBMIT_RETRIES,
    )


def create_app(
    cfg: Optional[Settings] = None,
    *,
    store: Optional[JobStore] = None,
    provider: Optional[FreepikClient] = None,
) -> FastAPI:
    cfg = cfg or default_settings
    owns_provider = provider is None

    if not cfg.FREEPIK_API_KEY:
        logger.warning("FREEPIK_API_KEY not set; every submission will fail until it is configured")

    job_store = store if store is not None else InMemoryJobStore()
    job_provider = provider if provider is not None else build_provider(cfg)
    image_jobs = ImageJobService(
        job_store,
        job_provider,
        poll_interval=cfg.POLL_INTERVAL_SECONDS,
        max_attempts=cfg.MAX_POLL_ATTEMPTS,
    )

    # === background: reaper + остановка поллеров ===
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        reaper = asyncio.create_task(
            run_reaper(
                job_store,
                ttl_seconds=cfg.JOB_TTL_SECONDS,
                interval_seconds=cfg.REAPER_INTERVAL_SECONDS,
            ),
            name="job-reaper",
        )
        app.state.reaper_task = reaper
        logger.info(
            "[startup] poll_interval=%ss max_attempts=%s ttl=%ss",
            cfg.POLL_INTERVAL_SECONDS, cfg.MAX_POLL_ATTEMPTS, cfg.JOB_TTL_SECONDS,
        )
        try:
            yield
        finally:
            reaper.cancel()
            await asyncio.gather(reaper, return_exceptions=True)
            await image_jobs.aclose()
            if owns_provider:
                await job_provider.aclose()

    app = FastAPI(title=cfg.APP_NAME, debug=cfg.DEBUG, lifespan=lifespan)
    app.state.settings = cfg
    app.state.job_store = job_store
    app.state.provider = job_provider
    app.state.image_jobs = image_jobs
    app.state.reaper_task = None

    # ── CORS ───────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in cfg.ALLOWED_ORIGIN.split(",") if o.strip()] or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(APIError)
    async def _api_error(_request: Request, exc: APIError):
        return JSONResponse(status_code=exc.status_code, content=fail(exc.error, stage=exc.stage, **exc.extra))

    app.include_router(health.router)
    app.include_router(images.router)
    return app


configure_logging(default_settings.LOG_LEVEL)
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=default_settings.HOST, port=default_settings.PORT)
