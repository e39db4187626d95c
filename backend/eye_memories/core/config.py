from typing import List, Union, Optional
from pathlib import Path
from pydantic import validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Eye Memories"
    API_PREFIX: str = "/api"
    APP_VERSION: str = "1.0.0"

    # Root directory for all Eye Memories data
    # Can be overridden with EYE_MEMORIES_ROOT_DIR environment variable
    ROOT_DIR: Path = Path.home() / ".eye-memories"

    # Full SQLAlchemy URL; when unset a SQLite file under meta/ is used
    DATABASE_URL: Optional[str] = None

    # Upload pipeline
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    FULL_MAX_PX: int = 2048
    FULL_QUALITY: int = 85
    THUMB_PX: int = 512
    THUMB_QUALITY: int = 80
    UPLOAD_URL_PREFIX: str = "/uploads"

    LOG_LEVEL: str = "INFO"

    SERVER_HOST: str = "127.0.0.1"
    SERVER_PORT: int = 5000

    # BACKEND_CORS_ORIGINS is a JSON-formatted list of origins
    # e.g: '["http://localhost", "http://localhost:5173"]'
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @validator("BACKEND_CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    class Config:
        case_sensitive = True
        env_prefix = "EYE_MEMORIES_"

    @property
    def upload_dir(self) -> Path:
        """Directory holding the full and thumbnail variants."""
        return self.ROOT_DIR / "uploads"

    @property
    def meta_dir(self) -> Path:
        """Directory for metadata files (database)."""
        return self.ROOT_DIR / "meta"

    @property
    def database_path(self) -> Path:
        """Path to the gallery SQLite database."""
        return self.meta_dir / "gallery.db"

    @property
    def database_url(self) -> str:
        return self.DATABASE_URL or f"sqlite:///{self.database_path}"

    def ensure_dirs(self) -> None:
        """Create all required directories if they don't exist."""
        self.ROOT_DIR.mkdir(parents=True, exist_ok=True)
        self.meta_dir.mkdir(exist_ok=True)
        self.upload_dir.mkdir(exist_ok=True)


settings = Settings()
