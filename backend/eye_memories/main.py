import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from eye_memories.api.api import api_router
from eye_memories.core.config import Settings, settings
from eye_memories.core.error_handlers import register_error_handlers
from eye_memories.core.logging_config import configure_logging
from eye_memories.db.engine import create_db_engine
from eye_memories.db.init_db import init_db
from eye_memories.services.upload_processor import UploadProcessor

logger = logging.getLogger(__name__)


def create_app(app_settings: Settings = settings, engine: Optional[Engine] = None) -> FastAPI:
    """
    Build the application.

    The database engine is created once per process when the app starts and
    disposed when it shuts down; request handlers reach it through
    ``app.state.engine``. Passing ``engine`` skips creation and disposal.
    """
    configure_logging(app_settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_engine = engine is None
        app.state.engine = engine if engine is not None else create_db_engine(app_settings.database_url)
        init_db(app.state.engine, app_settings)
        logger.info("Eye Memories started", extra={"upload_dir": str(app_settings.upload_dir)})
        try:
            yield
        finally:
            if owns_engine:
                app.state.engine.dispose()
            logger.info("Eye Memories stopped")

    app = FastAPI(title=f"{app_settings.PROJECT_NAME} Backend", version=app_settings.APP_VERSION, lifespan=lifespan)
    app.state.settings = app_settings
    app.state.upload_processor = UploadProcessor.from_settings(app_settings)
    register_error_handlers(app)

    # CORS
    if app_settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in app_settings.BACKEND_CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(api_router, prefix=app_settings.API_PREFIX)
    app.mount(
        app_settings.UPLOAD_URL_PREFIX,
        StaticFiles(directory=app_settings.upload_dir, check_dir=False),
        name="uploads",
    )

    @app.get(f"{app_settings.API_PREFIX}/health")
    def health(request: Request):
        checked_at = datetime.now(timezone.utc).isoformat()
        try:
            with Session(request.app.state.engine) as session:
                session.exec(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.exception("Health check failed")
            return JSONResponse(
                status_code=503,
                content={"status": "ERROR", "timestamp": checked_at, "database": "disconnected", "error": str(exc)},
            )
        return {"status": "OK", "timestamp": checked_at, "database": "connected"}

    @app.get("/")
    def root():
        return {"message": f"Welcome to {app_settings.PROJECT_NAME} API"}

    return app


app = create_app()


def main() -> None:
    """Launch the uvicorn server on EYE_MEMORIES_SERVER_HOST:EYE_MEMORIES_SERVER_PORT."""
    import uvicorn

    uvicorn.run(
        "eye_memories.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=False,
    )


if __name__ == "__main__":
    main()
