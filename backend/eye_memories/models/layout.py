from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from eye_memories.models.image import ImageRead

Vec3 = Tuple[float, float, float]


class PositionedImage(ImageRead):
    position: Vec3
    rotation: Vec3


class LayoutRequest(BaseModel):
    mode: str = "web"
    seed: Optional[int] = None
    image_ids: Optional[List[str]] = None
    neighbors: int = Field(default=2, ge=2, le=3)
    persist: bool = False


class LayoutResponse(BaseModel):
    mode: str
    seed: Optional[int] = None
    items: List[PositionedImage]
    # Pairs of image ids, only filled for the web layout
    connections: List[Tuple[str, str]] = Field(default_factory=list)
    persisted: bool = False
