import io
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT_DIR))

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image as PILImage
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from eye_memories.api.endpoints import images
from eye_memories.core.error_handlers import register_error_handlers
from eye_memories.db.database import get_session
from eye_memories.models.image import ImageRecord  # noqa: F401  registers the table
from eye_memories.services.storage import UploadStorage
from eye_memories.services.upload_processor import UploadProcessor


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine


@pytest.fixture(autouse=True)
def clean_tables(engine):
    yield
    with Session(engine) as session:
        for table in reversed(SQLModel.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session
        session.rollback()


@pytest.fixture()
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture()
def storage(upload_dir):
    return UploadStorage(upload_dir, "/uploads")


@pytest.fixture()
def processor(storage):
    return UploadProcessor(storage)


@pytest.fixture()
def client(engine, processor):
    app = FastAPI()
    app.include_router(images.router, prefix="/api/images", tags=["images"])
    register_error_handlers(app)
    app.state.engine = engine
    app.state.upload_processor = processor

    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    return TestClient(app)


def make_image_bytes(size=(64, 48), fmt="PNG", mode="RGB", color=(200, 30, 30)) -> bytes:
    if mode == "RGBA" and len(color) == 3:
        color = color + (128,)
    img = PILImage.new(mode, size, color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture()
def image_bytes():
    return make_image_bytes


@pytest.fixture()
def upload(client, image_bytes):
    def _upload(filename="photo.png", data=None, content_type="image/png", **fields):
        payload = data if data is not None else image_bytes()
        return client.post(
            "/api/images/",
            files={"image": (filename, payload, content_type)},
            data={key: value for key, value in fields.items() if value is not None},
        )

    return _upload
