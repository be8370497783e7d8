"""Lossy size reduction for images that exceed the upload limit."""

import io
import logging
from pathlib import Path
from typing import Tuple

from PIL import Image

from .constants import DOWNSCALE_FACTOR, JPEG_QUALITY, MIN_DIMENSION, TARGET_SIZE_MB

logger = logging.getLogger(__name__)


def _encode_jpeg(img: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def reduce_image_size(
    src: Path,
    dest: Path,
    max_mb: float = TARGET_SIZE_MB,
    quality: int = JPEG_QUALITY,
) -> Tuple[int, int]:
    """Re-encode src as JPEG under max_mb, downscaling 10% per pass if needed.

    Stops as soon as an encoding fits, or when the next downscale would take
    either dimension below 100 px; in that case the last encoding is written
    regardless of its size. The source file is never modified.

    Args:
        src: Image to reduce
        dest: Where to write the JPEG
        max_mb: Target size in MiB
        quality: JPEG quality for every pass

    Returns:
        (bytes written, number of encode passes)

    Raises:
        OSError: If the source cannot be decoded or dest cannot be written
    """
    target_bytes = int(max_mb * 1024 * 1024)

    with Image.open(src) as opened:
        # JPEG has no alpha channel
        current = opened.convert("RGB")

    passes = 0
    while True:
        data = _encode_jpeg(current, quality)
        passes += 1
        if len(data) <= target_bytes:
            break

        new_w = int(current.width * DOWNSCALE_FACTOR)
        new_h = int(current.height * DOWNSCALE_FACTOR)
        if new_w < MIN_DIMENSION or new_h < MIN_DIMENSION:
            logger.warning(
                "Could not bring %s under %.1f MB; sending %d bytes at %dx%d",
                Path(src).name, max_mb, len(data), current.width, current.height,
            )
            break

        logger.debug("%s is %d bytes, downscaling to %dx%d", Path(src).name, len(data), new_w, new_h)
        current = current.resize((new_w, new_h), Image.Resampling.LANCZOS)

    Path(dest).write_bytes(data)
    return len(data), passes
