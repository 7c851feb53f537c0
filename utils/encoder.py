import os
import tempfile
from typing import Any, Optional

import cv2
import numpy as np

from core.config import DEFAULT_SETTINGS, EnhancerSettings, logger
from utils.errors import EnhanceError, ErrorKind

SUPPORTED_FORMATS = ("png", "jpeg")

_EXTENSIONS = {"png": "png", "jpeg": "jpg"}
_CONTENT_TYPES = {"png": "image/png", "jpeg": "image/jpeg"}


def normalize_format(fmt: Optional[str]) -> str:
    """'png' | 'jpeg' from user input; 'jpg' is accepted. Raises ValueError otherwise."""
    f = (fmt or "").strip().lower()
    if f == "jpg":
        f = "jpeg"
    if f not in SUPPORTED_FORMATS:
        raise ValueError(f"unsupported output format: {fmt!r}")
    return f


def output_extension(fmt: str) -> str:
    return _EXTENSIONS[normalize_format(fmt)]


def content_type(fmt: str) -> str:
    return _CONTENT_TYPES[normalize_format(fmt)]


def resolve_jpeg_quality(value: Any, default: int = 95) -> int:
    """Keep an integer quality in 1..100, otherwise fall back to the default."""
    if isinstance(value, bool):
        return default
    try:
        q = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if isinstance(value, float) and value != q:
        return default
    if q < 1 or q > 100:
        return default
    return q


def encode_image(
    img_bgr: np.ndarray,
    fmt: str,
    quality: Any = None,
    settings: Optional[EnhancerSettings] = None,
) -> bytes:
    """Encode a BGR buffer. JPEG honours ``quality``; PNG always uses the configured compression."""
    settings = settings or DEFAULT_SETTINGS
    fmt = normalize_format(fmt)
    if fmt == "jpeg":
        q = resolve_jpeg_quality(quality, settings.jpeg_default_quality)
        params = [int(cv2.IMWRITE_JPEG_QUALITY), q]
    else:
        params = [int(cv2.IMWRITE_PNG_COMPRESSION), settings.png_compression]
    try:
        success, encoded = cv2.imencode("." + _EXTENSIONS[fmt], img_bgr, params)
    except cv2.error as e:
        raise EnhanceError(ErrorKind.ENCODE_FAILED, f"{fmt.upper()} encoding failed: {e}") from e
    if not success:
        raise EnhanceError(ErrorKind.ENCODE_FAILED, f"{fmt.upper()} encoding failed")
    return encoded.tobytes()


def write_artifact(path: str, data: bytes) -> None:
    """
    Persist bytes at ``path`` atomically.
    The bytes land in a temp file beside the target and are renamed over it,
    so a failed write never leaves a truncated file at the retrievable path.
    """
    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".partial-", dir=directory)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
        tmp_path = None
    except OSError as e:
        logger.error(f"[encoder] Failed to write {path}: {e}")
        raise EnhanceError(ErrorKind.ENCODE_FAILED, f"Failed to save enhanced image: {e}", {"path": path}) from e
    finally:
        if tmp_path and os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError:
                pass
