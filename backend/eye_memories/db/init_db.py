import logging

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

# Import models so they are registered with SQLModel.metadata
from eye_memories.models.image import ImageRecord  # noqa: F401
from eye_memories.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def init_db(engine: Engine, settings: Settings = default_settings) -> None:
    # Directories first so a SQLite file under meta/ can be created
    settings.ensure_dirs()
    SQLModel.metadata.create_all(engine)
    logger.info("Database ready", extra={"url": str(engine.url)})
