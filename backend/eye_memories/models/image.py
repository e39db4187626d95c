import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, validator
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def parse_tags(raw: Union[str, List[str], None]) -> List[str]:
    """Split a comma-separated tag string, trimming whitespace and dropping blanks."""
    if not raw:
        return []
    parts = raw.split(",") if isinstance(raw, str) else raw
    return [str(part).strip() for part in parts if str(part).strip()]


class Position3D(BaseModel):
    x: float = PydanticField(default=0.0, allow_inf_nan=False)
    y: float = PydanticField(default=0.0, allow_inf_nan=False)
    z: float = PydanticField(default=0.0, allow_inf_nan=False)

    @classmethod
    def origin(cls) -> "Position3D":
        return cls(x=0.0, y=0.0, z=0.0)

    @classmethod
    def from_sequence(cls, values) -> "Position3D":
        x, y, z = values
        return cls(x=x, y=y, z=z)


class ImageMetadata(BaseModel):
    width: int
    height: int
    format: str
    size: int
    uploaded_by: str = "Anonymous"


class ImageBase(SQLModel):
    title: Optional[str] = None
    description: Optional[str] = None


class ImageRecord(ImageBase, table=True):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True)
    image_url: str
    thumbnail_url: str
    # "metadata" is reserved on declarative models, so only the column carries that name
    image_metadata: Dict[str, Any] = Field(default_factory=dict, sa_column=Column("metadata", JSON))
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    position_3d: Dict[str, float] = Field(
        default_factory=lambda: Position3D.origin().model_dump(), sa_column=Column(JSON)
    )
    views: int = Field(default=0)
    likes: int = Field(default=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)


class ImageRead(BaseModel):
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: str
    thumbnail_url: str
    metadata: ImageMetadata
    tags: List[str]
    position_3d: Position3D
    views: int
    likes: int
    created_at: datetime

    @classmethod
    def from_record(cls, record: ImageRecord) -> "ImageRead":
        return cls(
            id=record.id,
            title=record.title,
            description=record.description,
            image_url=record.image_url,
            thumbnail_url=record.thumbnail_url,
            metadata=record.image_metadata,
            tags=record.tags or [],
            position_3d=record.position_3d or Position3D.origin(),
            views=record.views,
            likes=record.likes,
            created_at=record.created_at,
        )


class ImageUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    position_3d: Optional[Position3D] = None

    @validator("tags", pre=True)
    def split_tag_string(cls, v):
        if v is None:
            return v
        return parse_tags(v)


class LikeRequest(BaseModel):
    increment: bool = True


class LikeResult(BaseModel):
    id: str
    likes: int


class PositionUpdate(BaseModel):
    id: str
    position_3d: Position3D


class BulkPositionRequest(BaseModel):
    positions: List[PositionUpdate]


class BulkPositionResult(BaseModel):
    modified: int


class DeleteResult(BaseModel):
    id: str
    status: str = "deleted"
    file_errors: List[str] = PydanticField(default_factory=list)


SortField = Literal["created_at", "views", "likes", "title"]
SortDirection = Literal["asc", "desc"]


class ImageListParams(BaseModel):
    """Recognized query keys for the image listing; anything else is ignored."""

    page: int = PydanticField(default=1, ge=1)
    limit: int = PydanticField(default=20, ge=1, le=100)
    sort_by: SortField = "created_at"
    sort_dir: SortDirection = "desc"
    tags: List[str] = PydanticField(default_factory=list)
    search: Optional[str] = None

    @validator("tags", pre=True)
    def split_tag_string(cls, v):
        return parse_tags(v)

    @validator("search")
    def blank_search_is_none(cls, v):
        if v is None:
            return None
        return v.strip() or None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Pagination(BaseModel):
    total: int
    page: int
    pages: int
    limit: int


class ImageListResponse(BaseModel):
    data: List[ImageRead]
    pagination: Pagination
