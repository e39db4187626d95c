import logging
import random
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from sqlmodel import Session

from eye_memories.db.database import get_session
from eye_memories.models.image import (
    BulkPositionRequest,
    BulkPositionResult,
    DeleteResult,
    ImageListParams,
    ImageListResponse,
    ImageRead,
    ImageRecord,
    ImageUpdate,
    LikeRequest,
    LikeResult,
    Pagination,
    Position3D,
    PositionUpdate,
    SortDirection,
    SortField,
)
from eye_memories.models.layout import LayoutRequest, LayoutResponse, PositionedImage
from eye_memories.services import image_repository
from eye_memories.services.layout.connections import web_connections
from eye_memories.services.layout.engine import layout_images, resolve_mode
from eye_memories.services.upload_processor import UploadFields, UploadProcessor

router = APIRouter()
logger = logging.getLogger(__name__)

_READ_CHUNK_BYTES = 1024 * 1024


def get_upload_processor(request: Request) -> UploadProcessor:
    return request.app.state.upload_processor


def list_params(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: SortField = Query("created_at"),
    sort_dir: SortDirection = Query("desc"),
    tags: Optional[str] = Query(None, description="Comma-separated; matches any"),
    search: Optional[str] = Query(None, description="Substring of title or description"),
) -> ImageListParams:
    return ImageListParams(page=page, limit=limit, sort_by=sort_by, sort_dir=sort_dir, tags=tags, search=search)


@router.get("/", response_model=ImageListResponse)
def read_images(params: ImageListParams = Depends(list_params), session: Session = Depends(get_session)):
    records, total = image_repository.list_images(session, params)
    return ImageListResponse(
        data=[ImageRead.from_record(record) for record in records],
        pagination=Pagination(
            total=total,
            page=params.page,
            pages=image_repository.page_count(total, params.limit),
            limit=params.limit,
        ),
    )


@router.get("/trending", response_model=List[ImageRead])
def read_trending(limit: int = Query(10, ge=1, le=100), session: Session = Depends(get_session)):
    return [ImageRead.from_record(record) for record in image_repository.list_trending(session, limit)]


def _build_layout(
    records: List[ImageRecord],
    mode: Optional[str],
    seed: Optional[int],
    neighbors: int,
) -> LayoutResponse:
    resolved = resolve_mode(mode)
    items = [ImageRead.from_record(record).model_dump() for record in records]
    positioned = layout_images(items, resolved, rng=random.Random(seed))

    connections = []
    if resolved == "web":
        connections = [
            (positioned[i]["id"], positioned[j]["id"])
            for i, j in web_connections(positioned, neighbors=neighbors)
        ]

    return LayoutResponse(
        mode=resolved,
        seed=seed,
        items=[PositionedImage(**item) for item in positioned],
        connections=connections,
    )


@router.get("/layout", response_model=LayoutResponse)
def read_layout(
    mode: str = Query("web", description="spiral, grid, sphere, wave or web; unknown values use web"),
    seed: Optional[int] = Query(None, description="Seed for the randomized layouts"),
    limit: int = Query(100, ge=1, le=500),
    neighbors: int = Query(2, ge=2, le=3),
    session: Session = Depends(get_session),
):
    records = image_repository.list_for_layout(session, limit=limit)
    return _build_layout(records, mode, seed, neighbors)


@router.post("/layout", response_model=LayoutResponse)
def apply_layout(req: LayoutRequest, session: Session = Depends(get_session)):
    """Compute a layout and optionally store every position in one transaction."""
    records = image_repository.list_for_layout(session, image_ids=req.image_ids)
    result = _build_layout(records, req.mode, req.seed, req.neighbors)

    if req.persist and result.items:
        updates = [
            PositionUpdate(id=item.id, position_3d=Position3D.from_sequence(item.position))
            for item in result.items
        ]
        image_repository.bulk_update_positions(session, updates)
        for item in result.items:
            item.position_3d = Position3D.from_sequence(item.position)
        result.persisted = True

    return result


@router.put("/positions/bulk", response_model=BulkPositionResult)
def bulk_update_positions(req: BulkPositionRequest, session: Session = Depends(get_session)):
    modified = image_repository.bulk_update_positions(session, req.positions)
    return BulkPositionResult(modified=modified)


@router.get("/{image_id}", response_model=ImageRead)
def read_image(image_id: str, session: Session = Depends(get_session)):
    return ImageRead.from_record(image_repository.view_image(session, image_id))


def _read_capped(upload: UploadFile, max_bytes: int, max_mb: int) -> bytes:
    chunks = []
    total = 0
    while True:
        chunk = upload.file.read(_READ_CHUNK_BYTES)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File size too large. Maximum {max_mb}MB allowed",
            )
        chunks.append(chunk)
    return b"".join(chunks)


@router.post("/", response_model=ImageRead, status_code=201)
def upload_image(
    image: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None, description="Comma-separated tags"),
    position_3d: Optional[str] = Form(None, description='JSON object, e.g. {"x": 0, "y": 0, "z": 0}'),
    uploaded_by: Optional[str] = Form(None),
    session: Session = Depends(get_session),
    processor: UploadProcessor = Depends(get_upload_processor),
):
    if image is None or not image.filename:
        raise HTTPException(status_code=400, detail="No image file provided")

    content_type = (image.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image files are allowed")

    try:
        buffer = _read_capped(image, processor.max_upload_bytes, processor.max_upload_mb)
    finally:
        image.file.close()
    if not buffer:
        raise HTTPException(status_code=400, detail="No image file provided")

    fields = UploadFields(
        title=title,
        description=description,
        tags=tags,
        position_3d=position_3d,
        uploaded_by=uploaded_by,
    )
    record = processor.process(session, buffer, image.filename, fields)
    return ImageRead.from_record(record)


@router.put("/{image_id}", response_model=ImageRead)
def update_image(image_id: str, changes: ImageUpdate, session: Session = Depends(get_session)):
    return ImageRead.from_record(image_repository.update_image(session, image_id, changes))


@router.delete("/{image_id}", response_model=DeleteResult)
def delete_image(
    image_id: str,
    session: Session = Depends(get_session),
    processor: UploadProcessor = Depends(get_upload_processor),
):
    file_errors = image_repository.delete_image(session, processor.storage, image_id)
    return DeleteResult(id=image_id, file_errors=file_errors)


@router.post("/{image_id}/like", response_model=LikeResult)
def toggle_like(image_id: str, req: Optional[LikeRequest] = None, session: Session = Depends(get_session)):
    increment = req.increment if req is not None else True
    record = image_repository.adjust_likes(session, image_id, increment=increment)
    return LikeResult(id=record.id, likes=record.likes)
