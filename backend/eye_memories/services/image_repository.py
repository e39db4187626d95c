"""Query and mutation helpers behind the image endpoints."""

from __future__ import annotations

import json
import logging
import math
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import String, case, cast, update
from sqlmodel import Session, func, or_, select

from eye_memories.models.image import ImageListParams, ImageRecord, ImageUpdate, PositionUpdate
from eye_memories.services.storage import UploadStorage

logger = logging.getLogger(__name__)

_LIKE_ESCAPE = "!"


class ImageNotFoundError(LookupError):
    def __init__(self, image_id: str):
        super().__init__(f"Image not found: {image_id}")
        self.image_id = image_id


def _escape_like(value: str) -> str:
    return (
        value.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


def _list_filters(params: ImageListParams) -> list:
    filters = []
    if params.tags:
        # Tags are stored as a JSON array; instr() finds the serialized tag case-sensitively
        tag_text = cast(ImageRecord.tags, String)
        filters.append(or_(*(func.instr(tag_text, json.dumps(tag)) > 0 for tag in params.tags)))
    if params.search:
        like = f"%{_escape_like(params.search.lower())}%"
        filters.append(
            or_(
                func.lower(func.coalesce(ImageRecord.title, "")).like(like, escape=_LIKE_ESCAPE),
                func.lower(func.coalesce(ImageRecord.description, "")).like(like, escape=_LIKE_ESCAPE),
            )
        )
    return filters


def list_images(session: Session, params: ImageListParams) -> Tuple[List[ImageRecord], int]:
    """Return one page of records plus the total number of matches."""
    filters = _list_filters(params)

    total = session.exec(select(func.count()).select_from(ImageRecord).where(*filters)).one()

    sort_column = getattr(ImageRecord, params.sort_by)
    order = sort_column.asc() if params.sort_dir == "asc" else sort_column.desc()
    stmt = (
        select(ImageRecord)
        .where(*filters)
        .order_by(order, ImageRecord.id)
        .offset(params.offset)
        .limit(params.limit)
    )
    return list(session.exec(stmt).all()), total


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def list_trending(session: Session, limit: int = 10) -> List[ImageRecord]:
    stmt = (
        select(ImageRecord)
        .order_by(ImageRecord.views.desc(), ImageRecord.likes.desc(), ImageRecord.created_at.desc())
        .limit(limit)
    )
    return list(session.exec(stmt).all())


def list_for_layout(
    session: Session,
    image_ids: Optional[Sequence[str]] = None,
    limit: Optional[int] = None,
) -> List[ImageRecord]:
    """Images in layout order: the requested ids in request order, or newest first."""
    if image_ids:
        records = session.exec(select(ImageRecord).where(ImageRecord.id.in_(list(image_ids)))).all()
        by_id = {record.id: record for record in records}
        missing = [image_id for image_id in image_ids if image_id not in by_id]
        if missing:
            raise ImageNotFoundError(missing[0])
        return [by_id[image_id] for image_id in image_ids]

    stmt = select(ImageRecord).order_by(ImageRecord.created_at.desc(), ImageRecord.id)
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.exec(stmt).all())


def get_image(session: Session, image_id: str) -> ImageRecord:
    record = session.get(ImageRecord, image_id)
    if record is None:
        raise ImageNotFoundError(image_id)
    return record


def view_image(session: Session, image_id: str) -> ImageRecord:
    """Fetch a record and count the view with a single UPDATE statement."""
    record = get_image(session, image_id)
    session.exec(
        update(ImageRecord).where(ImageRecord.id == image_id).values(views=ImageRecord.views + 1)
    )
    session.commit()
    session.refresh(record)
    return record


def adjust_likes(session: Session, image_id: str, increment: bool = True) -> ImageRecord:
    if increment:
        new_value = ImageRecord.likes + 1
    else:
        new_value = case((ImageRecord.likes > 0, ImageRecord.likes - 1), else_=0)
    result = session.exec(update(ImageRecord).where(ImageRecord.id == image_id).values(likes=new_value))
    if result.rowcount == 0:
        session.rollback()
        raise ImageNotFoundError(image_id)
    session.commit()
    return get_image(session, image_id)


def update_image(session: Session, image_id: str, changes: ImageUpdate) -> ImageRecord:
    record = get_image(session, image_id)
    data = changes.model_dump(exclude_unset=True)
    if "title" in data:
        record.title = data["title"]
    if "description" in data:
        record.description = data["description"]
    if data.get("tags") is not None:
        record.tags = list(data["tags"])
    if data.get("position_3d") is not None:
        record.position_3d = dict(data["position_3d"])
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def bulk_update_positions(session: Session, updates: Sequence[PositionUpdate]) -> int:
    """Overwrite many positions in one transaction; one unknown id aborts them all."""
    try:
        for item in updates:
            record = session.get(ImageRecord, item.id)
            if record is None:
                raise ImageNotFoundError(item.id)
            record.position_3d = item.position_3d.model_dump()
            session.add(record)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Updated image positions", extra={"count": len(updates)})
    return len(updates)


def delete_image(session: Session, storage: UploadStorage, image_id: str) -> List[str]:
    """Delete a record and, best-effort, its two files.

    File removal failures are logged and returned; they never block the
    metadata deletion.
    """
    record = get_image(session, image_id)
    file_errors = [url for url in (record.image_url, record.thumbnail_url) if not storage.remove(url)]
    if file_errors:
        logger.warning(
            "Deleting image record with files left behind",
            extra={"image_id": image_id, "file_errors": file_errors},
        )

    session.delete(record)
    session.commit()
    logger.info("Deleted image", extra={"image_id": image_id})
    return file_errors
