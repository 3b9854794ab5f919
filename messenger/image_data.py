"""Glue between raw image bytes and the text-embedded image field."""

import base64
import binascii
import gzip
import io
import math
import mimetypes
import zlib
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from common.constants import MAX_IMAGE_FILE_BYTES, MAX_SEGMENT, WEBP_MAX_WIDTH, WEBP_QUALITY
from common.exceptions import ValidationError
from common.logging_config import get_logger

logger = get_logger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


@dataclass(frozen=True)
class PackedImage:
    """Image bytes ready to embed in a payload."""
    text: str
    content_type: str
    original_size: int
    packed_size: int

    @property
    def compression_ratio(self) -> float:
        if self.original_size == 0:
            return 0.0
        return (self.packed_size / self.original_size) * 100


def pack_image_bytes(raw: bytes, content_type: str = "image/webp") -> PackedImage:
    """
    Gzip image bytes once and encode them as base64 text.

    Args:
        raw: Encoded image bytes (e.g. WebP)
        content_type: MIME type of the image

    Returns:
        PackedImage with the base64 text and size statistics
    """
    compressed = gzip.compress(raw)
    text = base64.b64encode(compressed).decode('ascii')
    packed = PackedImage(
        text=text,
        content_type=content_type,
        original_size=len(raw),
        packed_size=len(compressed),
    )
    logger.debug(
        f"Packed image: {packed.original_size} -> {packed.packed_size} bytes "
        f"({packed.compression_ratio:.0f}%), {len(text)} characters"
    )
    return packed


def compress_image_to_webp(raw: bytes, max_width: int = WEBP_MAX_WIDTH, quality: int = WEBP_QUALITY) -> bytes:
    """
    Re-encode an image as WebP, scaled down to max_width.

    Smaller images keep their size; the aspect ratio is preserved.

    Raises:
        ValidationError: If the bytes are not a readable image
    """
    try:
        with Image.open(io.BytesIO(raw)) as source:
            source.load()
            image = source if source.mode in ("RGB", "RGBA") else source.convert("RGBA")
            width, height = image.size
            if width > max_width:
                scaled_height = max(1, round(height * max_width / width))
                image = image.resize((max_width, scaled_height), Image.Resampling.LANCZOS)
            buffer = io.BytesIO()
            image.save(buffer, format="WEBP", quality=quality)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ValidationError(f"Could not read image: {e}") from e

    webp = buffer.getvalue()
    logger.info(f"WebP conversion: {len(raw)} -> {len(webp)} bytes ({image.size[0]}x{image.size[1]})")
    return webp


def prepare_image_for_ledger(
    raw: bytes,
    max_width: int = WEBP_MAX_WIDTH,
    quality: int = WEBP_QUALITY,
) -> PackedImage:
    """
    WebP re-encode, then gzip and base64: the text that goes into a payload.

    Returns:
        PackedImage of content type image/webp; original_size is the input file size
    """
    webp = compress_image_to_webp(raw, max_width, quality)
    packed = pack_image_bytes(webp, "image/webp")
    return PackedImage(
        text=packed.text,
        content_type=packed.content_type,
        original_size=len(raw),
        packed_size=packed.packed_size,
    )


def unpack_image_data(text: str) -> bytes:
    """
    Reverse pack_image_bytes.

    Plain base64 (no gzip header) is returned as decoded bytes.

    Raises:
        ValidationError: If the text is not base64 or the gzip stream is corrupt
    """
    try:
        data = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Image data is not valid base64: {e}") from e

    if not data.startswith(GZIP_MAGIC):
        return data

    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise ValidationError(f"Image data gzip stream is corrupt: {e}") from e


def is_compression_beneficial(original_size: int, compressed_size: int) -> bool:
    """True when compression saves at least 10%."""
    return compressed_size < original_size * 0.9


def guess_content_type(path: Path) -> str:
    content_type, _ = mimetypes.guess_type(path.name)
    if content_type is None and path.suffix.lower() == ".webp":
        content_type = "image/webp"
    return content_type or "application/octet-stream"


def validate_image_file(path: Path, max_size_bytes: int = MAX_IMAGE_FILE_BYTES) -> str:
    """
    Check that path is an image file within the size limit.

    Returns:
        The guessed MIME type

    Raises:
        ValidationError: If the file is missing, not an image or too large
    """
    if not path.is_file():
        raise ValidationError(f"File not found: {path}")

    content_type = guess_content_type(path)
    if not content_type.startswith("image/"):
        raise ValidationError("File must be an image")

    size = path.stat().st_size
    if size > max_size_bytes:
        raise ValidationError(
            f"Image must be smaller than {max_size_bytes // (1024 * 1024)}MB"
        )
    return content_type


def create_data_url(text: str, content_type: str = "image/webp") -> str:
    return f"data:{content_type};base64,{text}"


def estimate_chunks_needed(length: int, max_segment: int = MAX_SEGMENT) -> int:
    return math.ceil(length / max_segment)
