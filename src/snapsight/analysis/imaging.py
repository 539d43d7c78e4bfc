"""Image preprocessing and content hashing."""

import base64
import hashlib
import io
from dataclasses import dataclass, field
from typing import Any

from PIL import Image, UnidentifiedImageError


def hash_bytes(data: bytes) -> str:
    """SHA256 hex digest, used as the dedup key for analyses."""
    return hashlib.sha256(data).hexdigest()


@dataclass
class PreparedImage:
    """An image resized and re-encoded as JPEG, plus facts about the original."""
    jpeg: bytes
    hash: str
    original_size: int
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def base64(self) -> str:
        return base64.b64encode(self.jpeg).decode("ascii")


def prepare_image(data: bytes, max_size: int = 1024, quality: int = 90) -> PreparedImage:
    """Fit the image inside max_size x max_size (never enlarging) and encode as JPEG.

    The hash is taken over the processed JPEG bytes, so the same picture
    uploaded in two formats usually dedups to one analysis.
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Not a readable image: {e}") from e

    has_alpha = img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)
    properties = {
        "width": img.width,
        "height": img.height,
        "format": (img.format or "unknown").lower(),
        "mode": img.mode,
        "has_alpha": has_alpha,
        "file_size_mb": round(len(data) / (1024 * 1024), 2),
    }

    img = img.convert("RGB")
    img.thumbnail((max_size, max_size))

    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    jpeg = buf.getvalue()

    return PreparedImage(jpeg=jpeg, hash=hash_bytes(jpeg), original_size=len(data), properties=properties)
