"""
main.py — FastAPI Application Factory
=====================================
Element Fusion API.

Service handles (store, collaborators, pipeline, orchestrator) are built once
in the lifespan and kept on `app.state`; routes reach them through Depends.

Usage:
    uvicorn fusion.main:app --reload
    python -m fusion.main
"""

from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from fusion.assets.pipeline import AssetPipeline
from fusion.clients import FalObjectStorage, FluxImageGenerator, GeminiTextGenerator
from fusion.config import FusionSettings, get_settings
from fusion.elements.service import FusionService
from fusion.elements.sqlite_store import SqliteElementStore
from fusion.elements.store import ElementStore, InMemoryElementStore
from fusion.errors import register_error_handlers

logger = logging.getLogger(__name__)


def build_pipeline(settings: FusionSettings) -> AssetPipeline:
    return AssetPipeline(
        text=GeminiTextGenerator(
            api_key=settings.GEMINI_API_KEY,
            model=settings.TEXT_MODEL,
            temperature=settings.TEXT_TEMPERATURE,
        ),
        images=FluxImageGenerator(
            fal_key=settings.FAL_KEY,
            endpoint=settings.IMAGE_ENDPOINT,
            image_size=settings.IMAGE_SIZE,
            num_inference_steps=settings.IMAGE_INFERENCE_STEPS,
            timeout=settings.EXTERNAL_TIMEOUT_SEC,
        ),
        storage=FalObjectStorage(fal_key=settings.FAL_KEY),
        timeout=settings.EXTERNAL_TIMEOUT_SEC,
        storage_prefix=settings.STORAGE_PREFIX,
    )


def build_store(settings: FusionSettings) -> ElementStore:
    if settings.DATABASE_PATH:
        logger.info(f"🗄️  Element store: sqlite at {settings.DATABASE_PATH}")
        return SqliteElementStore(settings.DATABASE_PATH)
    logger.warning("⚠️  DATABASE_PATH empty - elements live in memory and vanish on restart")
    return InMemoryElementStore()


class TimingMiddleware:
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        start = time.time()

        async def send_with_timing(message):
            if message["type"] == "http.response.start":
                raw_headers = list(message.get("headers", []))
                raw_headers.append((b"x-process-time", f"{time.time() - start:.4f}s".encode()))
                message["headers"] = raw_headers
            await send(message)

        await self.app(scope, receive, send_with_timing)


def create_app(
    settings: FusionSettings | None = None,
    store: ElementStore | None = None,
    pipeline: AssetPipeline | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(
            level=settings.LOG_LEVEL.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        logger.info(f"🚀 Starting {settings.APP_NAME} v{settings.VERSION} ({settings.ENV})")
        if not settings.FAL_KEY:
            logger.warning("⚠️  FAL_KEY not set - icon generation and upload will fail")
        if not settings.GEMINI_API_KEY:
            logger.warning("⚠️  GEMINI_API_KEY not set - element generation will fail")

        app.state.settings = settings
        app.state.store = store if store is not None else build_store(settings)
        app.state.fusion = FusionService(
            store=app.state.store,
            pipeline=pipeline or build_pipeline(settings),
            pair_locks=settings.PAIR_LOCKS,
            seed_icon_base_url=settings.SEED_ICON_BASE_URL,
        )
        seeded = await app.state.fusion.ensure_seeded()
        if seeded:
            logger.info(f"✅ Empty store initialized with {seeded} root elements")

        yield

        logger.info("👋 Shutting down")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        description="Element fusion game backend: combine two elements, discover a new one",
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(TimingMiddleware)

    register_error_handlers(app)

    @app.get("/health", tags=["system"])
    def health():
        return {"status": "ok", "app": settings.APP_NAME, "version": settings.VERSION, "environment": settings.ENV}

    @app.get("/", tags=["system"])
    def root():
        return {
            "name": settings.APP_NAME,
            "version": settings.VERSION,
            "docs": "/docs" if settings.DEBUG else "disabled",
        }

    from fusion.elements.router import router as elements_router
    from fusion.graph.router import router as graph_router

    app.include_router(elements_router)
    app.include_router(graph_router)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    from dotenv import load_dotenv

    load_dotenv()
    settings = get_settings()
    uvicorn.run(
        "fusion.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info" if settings.DEBUG else "warning",
    )
