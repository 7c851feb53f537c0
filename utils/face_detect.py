import os
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from core.config import FACE_CASCADE_PATH, logger


@dataclass(frozen=True)
class FaceRegion:
    x: int
    y: int
    width: int
    height: int

    def clamp(self, w: int, h: int) -> Optional["FaceRegion"]:
        x0 = max(0, min(self.x, w))
        y0 = max(0, min(self.y, h))
        x1 = max(0, min(self.x + self.width, w))
        y1 = max(0, min(self.y + self.height, h))
        if x1 <= x0 or y1 <= y0:
            return None
        return FaceRegion(x0, y0, x1 - x0, y1 - y0)


class FaceDetector:
    """
    Face detector capability used by the beautify stage.
    Implementations report whether their model is usable through ``available``;
    an unavailable detector makes beautify a no-op instead of failing the request.
    """

    available: bool = True

    def detect(
        self,
        gray: np.ndarray,
        scale_factor: float,
        min_neighbors: int,
        min_size: Tuple[int, int],
    ) -> List[FaceRegion]:
        raise NotImplementedError


class UnavailableFaceDetector(FaceDetector):
    """Stand-in used when the cascade model cannot be loaded."""

    available = False

    def __init__(self, reason: str = "face detector not configured"):
        self.reason = reason

    def detect(self, gray, scale_factor, min_neighbors, min_size) -> List[FaceRegion]:
        return []


class HaarFaceDetector(FaceDetector):
    def __init__(self, cascade: "cv2.CascadeClassifier", source: str = ""):
        self._cascade = cascade
        # CascadeClassifier is shared across request threads
        self._lock = threading.Lock()
        self.source = source

    def detect(self, gray, scale_factor, min_neighbors, min_size) -> List[FaceRegion]:
        with self._lock:
            rects = self._cascade.detectMultiScale(
                gray,
                scaleFactor=scale_factor,
                minNeighbors=min_neighbors,
                minSize=tuple(min_size),
            )
        return [FaceRegion(int(x), int(y), int(w), int(h)) for (x, y, w, h) in rects]


def load_face_detector(path: Optional[str] = None) -> FaceDetector:
    """Load a Haar cascade from disk, or return an unavailable detector if it can't be used."""
    path = path or FACE_CASCADE_PATH
    if not path or not os.path.isfile(path):
        logger.warning(f"[beautify] Face cascade not found at: {path}")
        return UnavailableFaceDetector(f"cascade file missing: {path}")
    try:
        cascade = cv2.CascadeClassifier(path)
    except cv2.error as e:
        logger.warning(f"[beautify] Failed to load face cascade {path}: {e}")
        return UnavailableFaceDetector(f"cascade failed to load: {e}")
    if cascade.empty():
        logger.warning(f"[beautify] Face cascade at {path} is empty or invalid")
        return UnavailableFaceDetector(f"cascade is empty: {path}")
    logger.info(f"[beautify] Face cascade loaded from: {path}")
    return HaarFaceDetector(cascade, source=path)


_default_detector: Optional[FaceDetector] = None
_default_lock = threading.Lock()


def get_default_detector() -> FaceDetector:
    """Process-wide detector, loaded once on first use."""
    global _default_detector
    if _default_detector is None:
        with _default_lock:
            if _default_detector is None:
                _default_detector = load_face_detector()
    return _default_detector
