"""
Local artifact storage.
Every upload gets its own directory under UPLOAD_DIR named by a random
request id, so concurrent requests never share an input or output path.
"""
import os
import re
import shutil
import uuid
from typing import Optional

from core import config
from core.config import logger
from utils.encoder import output_extension

_REQUEST_ID_RE = re.compile(r"^[0-9a-f]{32}$")
_INPUT_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp', '.bmp', '.tif', '.tiff'}


def new_request_id() -> str:
    return uuid.uuid4().hex


def is_valid_request_id(request_id: Optional[str]) -> bool:
    return bool(request_id) and bool(_REQUEST_ID_RE.match(request_id))


def request_dir(request_id: str) -> str:
    if not is_valid_request_id(request_id):
        raise ValueError(f"invalid request id: {request_id!r}")
    return os.path.join(config.UPLOAD_DIR, request_id)


def input_path(request_id: str, filename: str = "") -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in _INPUT_EXTENSIONS:
        ext = ""
    return os.path.join(request_dir(request_id), f"uploaded{ext}")


def output_path(request_id: str, fmt: str) -> str:
    return os.path.join(request_dir(request_id), f"processed.{output_extension(fmt)}")


def suggested_filename(fmt: str) -> str:
    return f"processed.{output_extension(fmt)}"


def save_upload(request_id: str, filename: str, data: bytes) -> str:
    path = input_path(request_id, filename)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)
    return path


def remove_file(path: str) -> None:
    try:
        if path and os.path.isfile(path):
            os.remove(path)
    except OSError as ex:
        logger.warning(f"[storage] Failed to remove {path}: {ex}")


def read_artifact(request_id: Optional[str], fmt: str) -> Optional[bytes]:
    """Bytes of a processed artifact, or None if it was never produced."""
    if not is_valid_request_id(request_id):
        return None
    path = output_path(request_id, fmt)
    if not os.path.isfile(path):
        return None
    with open(path, "rb") as f:
        return f.read()


def remove_request_dir(request_id: str) -> None:
    """Drop everything stored for ``request_id``."""
    try:
        path = request_dir(request_id)
    except ValueError:
        return
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as ex:
        logger.warning(f"[storage] Failed to remove {path}: {ex}")
