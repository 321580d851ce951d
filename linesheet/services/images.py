"""Image encoding for catalog documents.

Images are stored inline in project documents as JPEG data URIs, so they are
shrunk before embedding and checked against the document size budget.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Protocol, Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError

MAX_ENCODED_BYTES = 1_000_000
DEFAULT_MAX_DIMENSION = 600
DEFAULT_QUALITY = 70

ImageSource = Union[str, Path, bytes, BinaryIO]


class ImageEncodingError(RuntimeError):
    """Raised when an image cannot be read or encoded."""


class ImageEncoder(Protocol):
    async def encode(self, source: ImageSource) -> str: ...


def estimated_decoded_size(encoded: str) -> int:
    """Estimate decoded bytes as ``ceil(len(encoded) * 3 / 4)``."""

    return (len(encoded) * 3 + 3) // 4


def is_base64_too_large(encoded: str, limit: int = MAX_ENCODED_BYTES) -> bool:
    return estimated_decoded_size(encoded) > limit


def decode_data_uri(data_uri: str) -> Tuple[str, bytes]:
    """Split a ``data:<mime>;base64,<payload>`` URI into mime type and bytes."""

    header, sep, payload = data_uri.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ImageEncodingError("Not a base64 data URI")
    mime_type = header[len("data:"):-len(";base64")] or "application/octet-stream"
    try:
        return mime_type, base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ImageEncodingError(f"Invalid base64 payload: {exc}") from exc


class PillowImageEncoder:
    """Downscale images and encode them as JPEG data URIs."""

    def __init__(self, max_dimension: int = DEFAULT_MAX_DIMENSION, quality: int = DEFAULT_QUALITY) -> None:
        self.max_dimension = max_dimension
        self.quality = quality

    # ------------------------------------------------------------------
    # Image loading helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _open(source: ImageSource) -> Image.Image:
        if isinstance(source, bytes):
            source = BytesIO(source)
        try:
            img = Image.open(source)
            img.load()
            return ImageOps.exif_transpose(img)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            raise ImageEncodingError(f"Could not read image: {exc}") from exc

    @staticmethod
    def _flatten(img: Image.Image) -> Image.Image:
        if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
            rgba = img.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[-1])
            return background
        if img.mode != "RGB":
            return img.convert("RGB")
        return img

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------
    def encode_sync(self, source: ImageSource) -> str:
        img = self._flatten(self._open(source))
        # thumbnail() keeps the aspect ratio and never upscales.
        img.thumbnail((self.max_dimension, self.max_dimension), Image.Resampling.LANCZOS)
        buffer = BytesIO()
        img.save(buffer, format="JPEG", quality=self.quality, optimize=True)
        payload = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/jpeg;base64,{payload}"

    async def encode(self, source: ImageSource) -> str:
        return await asyncio.to_thread(self.encode_sync, source)
