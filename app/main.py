import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.config import settings
from app.database import AsyncSessionLocal, async_engine, create_tables
from app.exceptions import register_exception_handlers
from app.gateway import RealtimeGateway
from app.integrations.google_oauth import build_identity_provider
from app.integrations.object_storage import LocalObjectStorage
from app.logging_config import configure_logging
from app.websocket_manager import PresenceRegistry

logger = logging.getLogger(__name__)


def create_app(engine=async_engine, session_factory=AsyncSessionLocal, identity_provider=None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.LOG_LEVEL)
        for warning in settings.startup_warnings():
            logger.warning(warning)

        await create_tables(engine)

        storage = LocalObjectStorage(settings.MEDIA_ROOT, settings.MEDIA_URL, settings.STORAGE_INIT_TIMEOUT_SECONDS)
        storage.start()
        provider = identity_provider or build_identity_provider(settings)
        registry = PresenceRegistry()

        app.state.storage = storage
        app.state.identity_provider = provider
        app.state.registry = registry
        app.state.gateway = RealtimeGateway(registry, session_factory)
        logger.info("%s %s started", settings.APP_NAME, settings.VERSION)

        yield

        if provider is not None and identity_provider is None:
            await provider.aclose()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        description="Social backend with friend-gated realtime messaging",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    from app.api.v1 import auth, users, friends, chat, posts, websocket

    app.include_router(auth.router, prefix="/api/v1/auth", tags=["auth"])
    app.include_router(users.router, prefix="/api/v1/users", tags=["users"])
    app.include_router(friends.router, prefix="/api/v1/friends", tags=["friends"])
    app.include_router(chat.router, prefix="/api/v1/chat", tags=["chat"])
    app.include_router(posts.router, prefix="/api/v1/posts", tags=["posts"])
    app.include_router(websocket.router, prefix="/api/v1/ws", tags=["websocket"])

    app.mount("/media", StaticFiles(directory=settings.MEDIA_ROOT, check_dir=False), name="media")

    @app.get("/")
    async def root():
        return {"message": settings.APP_NAME, "version": settings.VERSION}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
