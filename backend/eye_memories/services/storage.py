"""Filesystem storage for uploaded image variants."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

FULL_PREFIX = "full"
THUMB_PREFIX = "thumb"
VARIANT_EXTENSION = ".jpg"

_MAX_STEM_CHARS = 64
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_stem(filename: Optional[str]) -> str:
    """Reduce a client-supplied filename to a safe stem without extension."""
    base = os.path.basename((filename or "").replace("\\", "/"))
    stem = os.path.splitext(base)[0]
    cleaned = _UNSAFE_CHARS.sub("-", stem).strip("-.")
    return cleaned[:_MAX_STEM_CHARS] or "image"


@dataclass(frozen=True)
class VariantNames:
    full: str
    thumbnail: str


class UploadStorage:
    """Writes and removes files under a single upload directory.

    Files are addressed by public URLs of the form ``{url_prefix}/{filename}``.
    """

    def __init__(self, root: Path, url_prefix: str = "/uploads"):
        self.root = Path(root)
        self.url_prefix = "/" + url_prefix.strip("/")

    def build_filenames(self, original_name: Optional[str], timestamp_ms: int) -> VariantNames:
        stem = sanitize_stem(original_name)
        ts = int(timestamp_ms)
        while True:
            names = VariantNames(
                full=f"{FULL_PREFIX}-{ts}-{stem}{VARIANT_EXTENSION}",
                thumbnail=f"{THUMB_PREFIX}-{ts}-{stem}{VARIANT_EXTENSION}",
            )
            if not (self.root / names.full).exists() and not (self.root / names.thumbnail).exists():
                return names
            ts += 1

    def url_for(self, filename: str) -> str:
        return f"{self.url_prefix}/{filename}"

    def path_for_url(self, url: str) -> Optional[Path]:
        """Map a stored URL back to a file inside the upload root, or None if it points elsewhere."""
        if not url or not url.startswith(self.url_prefix + "/"):
            return None
        name = url[len(self.url_prefix) + 1:]
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            return None
        return self.root / name

    def write_pair(self, names: VariantNames, full_bytes: bytes, thumb_bytes: bytes) -> tuple[str, str]:
        """Write both variants and return their URLs.

        Either both files exist afterwards or the error propagates with
        whatever was written removed again.
        """
        self.root.mkdir(parents=True, exist_ok=True)
        full_path = self.root / names.full
        thumb_path = self.root / names.thumbnail

        written = []
        try:
            for path, data in ((full_path, full_bytes), (thumb_path, thumb_bytes)):
                written.append(path)
                path.write_bytes(data)
        except OSError:
            for path in written:
                self._unlink_quietly(path)
            raise

        return self.url_for(names.full), self.url_for(names.thumbnail)

    def remove(self, url: str) -> bool:
        """Best-effort removal of a stored file.

        Returns False when the file could not be removed; a file that is
        already gone counts as removed.
        """
        path = self.path_for_url(url)
        if path is None:
            logger.warning("Refusing to remove file outside upload root", extra={"url": url})
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return True
        except OSError:
            logger.warning("Failed to remove stored file", exc_info=True, extra={"path": str(path)})
            return False
        return True

    def _unlink_quietly(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Failed to clean up partial upload", exc_info=True, extra={"path": str(path)})
