"""Pillow helpers for the upload pipeline.

Every uploaded picture is stored as two JPEG encodings derived from the
same source buffer: a "full" variant that fits inside a square cap and is
never upscaled, and a square "thumbnail" variant cropped around the centre.
Raster metadata is always read from the source, not from these outputs.
"""

from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image as PILImage, ImageOps

FULL_MAX_PX = 2048
FULL_QUALITY = 85
THUMBNAIL_PX = 512
THUMBNAIL_QUALITY = 80

_RESAMPLE = PILImage.Resampling.LANCZOS


@dataclass(frozen=True)
class RasterInfo:
    width: int
    height: int
    format: str


def read_raster_info(buffer: bytes) -> RasterInfo:
    """Return the stored width, height and lower-cased format of the source image."""
    with PILImage.open(io.BytesIO(buffer)) as img:
        return RasterInfo(
            width=img.width,
            height=img.height,
            format=(img.format or "unknown").lower(),
        )


def _load_rgb(buffer: bytes) -> PILImage.Image:
    img = PILImage.open(io.BytesIO(buffer))
    img.load()
    img = ImageOps.exif_transpose(img)
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        # Flatten transparency against white so JPEG output does not go black
        rgba = img.convert("RGBA")
        background = PILImage.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[3])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def _encode_jpeg(img: PILImage.Image, quality: int, progressive: bool = False) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality, progressive=progressive, optimize=True)
    return buf.getvalue()


def render_full_variant(buffer: bytes, max_px: int = FULL_MAX_PX, quality: int = FULL_QUALITY) -> bytes:
    """Fit the image inside max_px x max_px without enlarging it.

    Encoded as a progressive JPEG.
    """
    with _load_rgb(buffer) as img:
        # thumbnail() only ever shrinks and keeps the aspect ratio
        img.thumbnail((max_px, max_px), _RESAMPLE)
        return _encode_jpeg(img, quality, progressive=True)


def render_thumbnail_variant(buffer: bytes, size_px: int = THUMBNAIL_PX, quality: int = THUMBNAIL_QUALITY) -> bytes:
    """Crop around the centre and resize to exactly size_px x size_px."""
    with _load_rgb(buffer) as img:
        fitted = ImageOps.fit(img, (size_px, size_px), method=_RESAMPLE, centering=(0.5, 0.5))
        return _encode_jpeg(fitted, quality)
