"""Turns an uploaded image buffer into stored variants and a gallery record."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import ValidationError
from sqlmodel import Session

from eye_memories.core.config import Settings
from eye_memories.models.image import ImageMetadata, ImageRecord, Position3D, parse_tags
from eye_memories.services import imaging
from eye_memories.services.storage import UploadStorage

logger = logging.getLogger(__name__)

DEFAULT_UPLOADER = "Anonymous"
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024

__all__ = ["UploadFields", "UploadProcessor", "parse_position", "parse_tags"]


def parse_position(raw: Optional[str]) -> Position3D:
    """Parse a ``{"x":..,"y":..,"z":..}`` JSON string.

    Anything malformed falls back to the origin with a warning; the upload
    itself never fails because of a bad position.
    """
    if raw is None or not raw.strip():
        return Position3D.origin()
    try:
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError("position must be a JSON object")
        return Position3D.model_validate(payload)
    except (ValueError, ValidationError):
        # JSONDecodeError is a ValueError
        logger.warning("Invalid position3D format, using origin", extra={"raw_position": raw[:200]})
        return Position3D.origin()


@dataclass
class UploadFields:
    title: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[str] = None
    position_3d: Optional[str] = None
    uploaded_by: Optional[str] = None


class UploadProcessor:
    def __init__(
        self,
        storage: UploadStorage,
        full_max_px: int = imaging.FULL_MAX_PX,
        full_quality: int = imaging.FULL_QUALITY,
        thumb_px: int = imaging.THUMBNAIL_PX,
        thumb_quality: int = imaging.THUMBNAIL_QUALITY,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage
        self.full_max_px = full_max_px
        self.full_quality = full_quality
        self.thumb_px = thumb_px
        self.thumb_quality = thumb_quality
        self.max_upload_bytes = max_upload_bytes
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "UploadProcessor":
        return cls(
            UploadStorage(settings.upload_dir, settings.UPLOAD_URL_PREFIX),
            full_max_px=settings.FULL_MAX_PX,
            full_quality=settings.FULL_QUALITY,
            thumb_px=settings.THUMB_PX,
            thumb_quality=settings.THUMB_QUALITY,
            max_upload_bytes=settings.MAX_UPLOAD_BYTES,
        )

    @property
    def max_upload_mb(self) -> int:
        return max(1, self.max_upload_bytes // (1024 * 1024))

    def process(
        self,
        session: Session,
        buffer: bytes,
        filename: Optional[str],
        fields: Optional[UploadFields] = None,
    ) -> ImageRecord:
        """Render both variants, store them, then persist the record.

        Decode, encode and I/O errors propagate unchanged. The record is only
        created after both files are on disk.
        """
        if not buffer:
            raise ValueError("No image file provided")
        fields = fields or UploadFields()

        # One variant at a time, no fan-out within a request
        full_bytes = imaging.render_full_variant(buffer, self.full_max_px, self.full_quality)
        thumb_bytes = imaging.render_thumbnail_variant(buffer, self.thumb_px, self.thumb_quality)
        info = imaging.read_raster_info(buffer)

        position = parse_position(fields.position_3d)
        tags = parse_tags(fields.tags)

        names = self.storage.build_filenames(filename, int(self.clock() * 1000))
        image_url, thumbnail_url = self.storage.write_pair(names, full_bytes, thumb_bytes)

        metadata = ImageMetadata(
            width=info.width,
            height=info.height,
            format=info.format,
            size=len(buffer),
            uploaded_by=(fields.uploaded_by or "").strip() or DEFAULT_UPLOADER,
        )
        record = ImageRecord(
            title=fields.title,
            description=fields.description,
            image_url=image_url,
            thumbnail_url=thumbnail_url,
            image_metadata=metadata.model_dump(),
            tags=tags,
            position_3d=position.model_dump(),
        )
        try:
            session.add(record)
            session.commit()
            session.refresh(record)
        except Exception:
            session.rollback()
            self.storage.remove(image_url)
            self.storage.remove(thumbnail_url)
            raise

        logger.info(
            "Stored upload",
            extra={
                "image_id": record.id,
                "image_url": image_url,
                "source_size": len(buffer),
                "source_dimensions": f"{info.width}x{info.height}",
            },
        )
        return record
