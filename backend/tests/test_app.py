import logging

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from eye_memories.core.config import Settings
from eye_memories.core.logging_config import configure_logging
from eye_memories.db.engine import create_db_engine
from eye_memories.main import create_app
from eye_memories.services.upload_processor import UploadProcessor
from conftest import make_image_bytes


@pytest.fixture()
def app_settings(tmp_path):
    return Settings(ROOT_DIR=tmp_path / "data")


@pytest.fixture()
def memory_engine():
    return create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)


def test_health_reports_connected_database(app_settings, memory_engine):
    app = create_app(app_settings, engine=memory_engine)
    with TestClient(app) as client:
        response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert body["database"] == "connected"
    assert body["timestamp"]


def test_health_reports_unreachable_database(app_settings, memory_engine, tmp_path):
    app = create_app(app_settings, engine=memory_engine)
    with TestClient(app) as client:
        app.state.engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'gallery.db'}")
        response = client.get("/api/health")

    assert response.status_code == 503
    assert response.json()["status"] == "ERROR"


def test_startup_creates_data_directories(app_settings, memory_engine):
    app = create_app(app_settings, engine=memory_engine)
    with TestClient(app):
        assert app_settings.upload_dir.is_dir()
        assert app_settings.meta_dir.is_dir()


def test_root_welcome_message(app_settings, memory_engine):
    with TestClient(create_app(app_settings, engine=memory_engine)) as client:
        assert client.get("/").json() == {"message": "Welcome to Eye Memories API"}


def test_uploaded_variants_are_served_statically(app_settings, memory_engine):
    with TestClient(create_app(app_settings, engine=memory_engine)) as client:
        created = client.post(
            "/api/images/",
            files={"image": ("cat.png", make_image_bytes(size=(900, 600)), "image/png")},
            data={"title": "Cat"},
        ).json()

        full = client.get(created["image_url"])
        thumb = client.get(created["thumbnail_url"])

    assert full.status_code == 200
    assert full.headers["content-type"] == "image/jpeg"
    assert thumb.status_code == 200


def test_app_builds_engine_from_settings(tmp_path):
    app_settings = Settings(ROOT_DIR=tmp_path / "data")
    with TestClient(create_app(app_settings)) as client:
        assert client.get("/api/health").json()["database"] == "connected"
    assert app_settings.database_path.exists()


def test_settings_read_prefixed_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("EYE_MEMORIES_ROOT_DIR", str(tmp_path))
    monkeypatch.setenv("EYE_MEMORIES_MAX_UPLOAD_BYTES", "2048")
    monkeypatch.setenv("EYE_MEMORIES_BACKEND_CORS_ORIGINS", '["http://a.test", "http://b.test"]')

    configured = Settings()

    assert configured.ROOT_DIR == tmp_path
    assert configured.MAX_UPLOAD_BYTES == 2048
    assert configured.BACKEND_CORS_ORIGINS == ["http://a.test", "http://b.test"]
    assert configured.database_url == f"sqlite:///{tmp_path / 'meta' / 'gallery.db'}"


def test_explicit_database_url_wins(tmp_path):
    configured = Settings(ROOT_DIR=tmp_path, DATABASE_URL="sqlite://")
    assert configured.database_url == "sqlite://"


def test_max_upload_mb_rounds_down_but_never_below_one(tmp_path):
    assert UploadProcessor.from_settings(Settings(ROOT_DIR=tmp_path, MAX_UPLOAD_BYTES=10 * 1024 * 1024)).max_upload_mb == 10
    assert UploadProcessor.from_settings(Settings(ROOT_DIR=tmp_path, MAX_UPLOAD_BYTES=10)).max_upload_mb == 1


def test_app_enforces_its_configured_upload_cap(tmp_path, memory_engine):
    app_settings = Settings(ROOT_DIR=tmp_path / "data", MAX_UPLOAD_BYTES=1024 * 1024)
    payload = make_image_bytes(size=(1200, 1200), fmt="BMP")
    assert len(payload) > app_settings.MAX_UPLOAD_BYTES

    with TestClient(create_app(app_settings, engine=memory_engine)) as client:
        response = client.post("/api/images/", files={"image": ("big.bmp", payload, "image/bmp")})

    assert response.status_code == 413
    assert response.json()["message"] == "File size too large. Maximum 1MB allowed"
    assert list(app_settings.upload_dir.iterdir()) == []


def test_memory_engine_shares_one_connection():
    engine = create_db_engine("sqlite://")
    assert isinstance(engine.pool, StaticPool)


def test_file_engine_uses_wal(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'wal.db'}")
    with engine.connect() as conn:
        assert conn.exec_driver_sql("PRAGMA journal_mode").scalar() == "wal"
    engine.dispose()


def test_configure_logging_installs_one_handler():
    root = logging.getLogger()
    before = len(root.handlers)
    configure_logging("DEBUG")
    configure_logging("info")
    added = len(root.handlers) - before
    assert added in (0, 1)
    assert root.level == logging.INFO
    assert sum(1 for h in root.handlers if h.get_name() == "eye_memories") == 1


def test_cors_origins_accept_comma_separated_string():
    configured = Settings(BACKEND_CORS_ORIGINS="http://a.test, http://b.test")
    assert configured.BACKEND_CORS_ORIGINS == ["http://a.test", "http://b.test"]
