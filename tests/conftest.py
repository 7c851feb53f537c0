"""
Pytest configuration and fixtures for the photo enhancer tests.
"""
import os

# Rate limiting would throttle the API tests; must be set before core.config loads
os.environ["PROCESSING_RATE_LIMIT_PER_HOUR"] = "0"

import cv2
import numpy as np
import pytest

from core import config
from utils.face_detect import FaceDetector, FaceRegion


class StubFaceDetector(FaceDetector):
    """Deterministic detector returning fixed rectangles."""

    def __init__(self, regions=None):
        self.regions = list(regions or [])
        self.calls = []

    def detect(self, gray, scale_factor, min_neighbors, min_size):
        self.calls.append({"shape": gray.shape, "scale_factor": scale_factor,
                           "min_neighbors": min_neighbors, "min_size": tuple(min_size)})
        return list(self.regions)


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    """Point artifact storage at a per-test directory."""
    d = tmp_path / "uploads"
    d.mkdir()
    monkeypatch.setattr(config, "UPLOAD_DIR", str(d))
    return d


@pytest.fixture
def gradient_image():
    """100x100 BGR gradient (no faces, smooth content)."""
    x = np.linspace(0, 255, 100, dtype=np.float32)
    xx, yy = np.meshgrid(x, x)
    b = xx
    g = yy
    r = (xx + yy) / 2.0
    return np.dstack([b, g, r]).astype(np.uint8)


@pytest.fixture
def noisy_image():
    """120x160 mid-grey image with gaussian noise."""
    rng = np.random.default_rng(1234)
    base = np.full((120, 160, 3), 128, dtype=np.float32)
    noise = rng.normal(0, 20, size=base.shape)
    return np.clip(base + noise, 0, 255).astype(np.uint8)


@pytest.fixture
def write_image(tmp_path):
    """Write a BGR buffer to a PNG file and return its path."""
    def _write(img, name="input.png"):
        path = tmp_path / name
        assert cv2.imwrite(str(path), img)
        return str(path)
    return _write


@pytest.fixture
def png_bytes(gradient_image):
    ok, buf = cv2.imencode(".png", gradient_image)
    assert ok
    return buf.tobytes()


@pytest.fixture
def no_face_detector():
    return StubFaceDetector([])


@pytest.fixture
def face_detector():
    """Stub reporting one 40x40 face at (20, 30)."""
    return StubFaceDetector([FaceRegion(20, 30, 40, 40)])


@pytest.fixture
def app():
    """FastAPI application."""
    from main import app as fastapi_app
    return fastapi_app


@pytest.fixture
def client(app, upload_dir):
    """FastAPI test client writing artifacts to a temporary directory."""
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
