"""
Downscale profile images before storage: limit long side, keep aspect ratio and original format.
Images Pillow cannot open are stored as uploaded.
"""
import io
import logging

from PIL import Image
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


def _shrink_sync(image_bytes: bytes, max_long_side: int) -> bytes:
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except Exception as e:
        logger.warning("images: could not open image, storing as uploaded: %s", e)
        return image_bytes

    fmt = img.format or "PNG"
    w, h = img.size
    if max(w, h) <= max_long_side:
        return image_bytes

    scale = max_long_side / max(w, h)
    img = img.resize((max(1, round(w * scale)), max(1, round(h * scale))), Image.Resampling.LANCZOS)
    if fmt == "JPEG" and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    buf = io.BytesIO()
    try:
        img.save(buf, format=fmt)
    except Exception as e:
        logger.warning("images: could not re-encode %s, storing as uploaded: %s", fmt, e)
        return image_bytes
    return buf.getvalue()


async def shrink_image(image_bytes: bytes, max_long_side: int = 1024) -> bytes:
    """Offloads the CPU-bound resize to a threadpool."""
    return await run_in_threadpool(_shrink_sync, image_bytes, max_long_side)
