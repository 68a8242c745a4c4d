import logging

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from filemanager.core.config import Settings, get_settings
from filemanager.core.errors import register_exception_handlers
from filemanager.core.middleware import ConnectionCounterMiddleware, SecurityHeadersMiddleware
from filemanager.core.templating import BASE_DIR
from filemanager.routers import api, files  # <--- important
from filemanager.services.context import build_context
from filemanager.storage.base import Storage

logger = logging.getLogger(__name__)


def configure_logging(level: str):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)


def create_app(settings: Settings = None, storage: Storage = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name)
    app.state.ctx = build_context(settings, storage)

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ConnectionCounterMiddleware)
    register_exception_handlers(app)

    app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")

    # include our routers
    app.include_router(api.router)
    app.include_router(files.router)

    logger.info(f"{settings.app_name} ready ({settings.storage_backend} storage, "
                f"{settings.metadata_backend if settings.persist else 'in-memory'} metadata)")
    return app


app = create_app()
