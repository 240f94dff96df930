import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from colorbook.config import Settings, get_settings
from colorbook.database import Base, engine
from colorbook.errors import ColorbookError
from colorbook.jobs.batch import BatchCoordinator
from colorbook.jobs.gateway import JobGateway, ProviderGateway
from colorbook.jobs.registry import JobRegistry
from colorbook.routers import (
    batches,
    categories,
    drafts,
    generation,
    health,
    images,
    internationalization,
    jobs,
    posts,
    tags,
    uploads,
)
from colorbook.services.ai_generator import TextGenerator
from colorbook.services.drafts import DraftStore
from colorbook.services.providers import build_providers
from colorbook.services.storage import ObjectStorage

logger = logging.getLogger("colorbook")


def _optional_storage(settings: Settings) -> Optional[ObjectStorage]:
    try:
        return ObjectStorage.from_settings(settings)
    except RuntimeError as e:
        logger.warning("object storage disabled: %s", e)
        return None


def create_app(
    settings: Optional[Settings] = None,
    *,
    gateway: Optional[JobGateway] = None,
    text: Optional[TextGenerator] = None,
    storage: Optional[ObjectStorage] = None,
    create_tables: Optional[bool] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if create_tables is None:
        # MySQL schemas are managed by alembic
        create_tables = settings.database_url.startswith("sqlite")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if create_tables:
            Base.metadata.create_all(bind=engine)

        http = httpx.AsyncClient(timeout=30.0)
        app.state.settings = settings
        app.state.text = text or TextGenerator.from_settings(settings)
        app.state.storage = storage if storage is not None else _optional_storage(settings)
        app.state.gateway = gateway or ProviderGateway(
            build_providers(settings, http),
            app.state.text,
            http,
            storage=app.state.storage,
            server_url=settings.server_url,
        )
        registry = JobRegistry(app.state.gateway, settings.poll_policies, grace_seconds=settings.job_grace_seconds)
        app.state.registry = registry
        app.state.coordinator = BatchCoordinator(registry, throttle_seconds=settings.batch_throttle_seconds)
        app.state.drafts = DraftStore(settings.source_language)
        registry.subscribe(app.state.drafts.on_job)
        logger.info("colorbook backend ready")

        yield

        await app.state.coordinator.shutdown()
        await registry.shutdown()
        runner = getattr(app.state.gateway, "runner", None)
        if runner is not None:
            runner.cancel_all()
        await http.aclose()

    app = FastAPI(title="Colorbook Admin Backend", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ColorbookError)
    async def colorbook_error_handler(request: Request, exc: ColorbookError):
        if exc.status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    app.include_router(health.router)
    app.include_router(jobs.router)
    app.include_router(batches.router)
    app.include_router(drafts.router)
    app.include_router(generation.router)
    app.include_router(uploads.router)
    app.include_router(images.router)
    app.include_router(categories.router)
    app.include_router(tags.router)
    app.include_router(posts.router)
    app.include_router(internationalization.router)
    return app


app = create_app()
