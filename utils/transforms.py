"""
Enhancement stages.

Each stage takes a BGR uint8 buffer plus the shared EnhancerSettings and
returns a new BGR uint8 buffer. Stages never depend on one another; the
order they run in is decided by utils.pipeline.
"""
from typing import Tuple

import cv2
import numpy as np

from core.config import EnhancerSettings, logger
from utils.errors import EnhanceError, ErrorKind
from utils.face_detect import FaceDetector


def ensure_bgr8(img: np.ndarray, stage: str) -> np.ndarray:
    """Raise STAGE_FAILED unless img is a non-empty 3-channel 8-bit buffer."""
    if not isinstance(img, np.ndarray) or img.ndim != 3 or img.shape[2] != 3 or img.dtype != np.uint8:
        shape = getattr(img, "shape", None)
        dtype = getattr(img, "dtype", None)
        raise EnhanceError(
            ErrorKind.STAGE_FAILED,
            f"{stage}: expected a 3-channel uint8 image",
            {"shape": list(shape) if shape is not None else None, "dtype": str(dtype)},
        )
    if img.shape[0] == 0 or img.shape[1] == 0:
        raise EnhanceError(ErrorKind.STAGE_FAILED, f"{stage}: image is empty", {"shape": list(img.shape)})
    return img


# ---------------- SHARPEN ----------------
def sharpen(img_bgr: np.ndarray, settings: EnhancerSettings) -> np.ndarray:
    """Unsharp mask: image*(1+a) - gaussian(image)*a, saturated to 0..255."""
    amount = settings.sharpen_amount
    blur = cv2.GaussianBlur(img_bgr, (0, 0), sigmaX=settings.sharpen_sigma)
    return cv2.addWeighted(img_bgr, 1.0 + amount, blur, -amount, 0)


# ---------------- DENOISE ----------------
def denoise(img_bgr: np.ndarray, settings: EnhancerSettings) -> Tuple[np.ndarray, dict]:
    """
    Non-local means colour denoising that stays fast on large photos.

    Inputs whose longer side exceeds ``denoise_max_dimension`` are denoised on
    an INTER_AREA downscaled proxy, then brought back to the exact original
    size with INTER_CUBIC. The returned buffer always has the input's size.
    """
    h, w = img_bgr.shape[:2]
    limit = settings.denoise_max_dimension
    scale = 1.0
    work = img_bgr
    if w > limit or h > limit:
        scale = min(limit / float(w), limit / float(h))
        work_w = max(1, int(round(w * scale)))
        work_h = max(1, int(round(h * scale)))
        work = cv2.resize(img_bgr, (work_w, work_h), interpolation=cv2.INTER_AREA)

    den = cv2.fastNlMeansDenoisingColored(
        work,
        None,
        settings.denoise_h_luma,
        settings.denoise_h_color,
        settings.denoise_template_window,
        settings.denoise_search_window,
    )

    working_size = (den.shape[1], den.shape[0])
    if scale < 1.0:
        den = cv2.resize(den, (w, h), interpolation=cv2.INTER_CUBIC)

    return den, {"input_size": (w, h), "working_size": working_size, "scale": scale}


# ---------------- COLOR CORRECTION ----------------
def color_correct(img_bgr: np.ndarray, settings: EnhancerSettings) -> np.ndarray:
    """CLAHE on the L* channel only; a*/b* pass through untouched."""
    lab = cv2.cvtColor(img_bgr, cv2.COLOR_BGR2LAB)
    L, A, B = cv2.split(lab)
    clahe = cv2.createCLAHE(clipLimit=settings.clahe_clip_limit, tileGridSize=tuple(settings.clahe_tile_grid))
    L2 = clahe.apply(L)
    return cv2.cvtColor(cv2.merge([L2, A, B]), cv2.COLOR_LAB2BGR)


# ---------------- SUPER-RESOLUTION ----------------
def upscale(img_bgr: np.ndarray, factor: int) -> np.ndarray:
    """
    Bicubic integer upscale.

    Any replacement (e.g. a learned SR model) must keep this signature and
    return the buffer scaled by exactly ``factor``.
    """
    h, w = img_bgr.shape[:2]
    return cv2.resize(img_bgr, (w * factor, h * factor), interpolation=cv2.INTER_CUBIC)


# ---------------- BEAUTIFY ----------------
def beautify(img_bgr: np.ndarray, detector: FaceDetector, settings: EnhancerSettings) -> Tuple[np.ndarray, dict]:
    """Edge-preserving skin smoothing restricted to detected face rectangles."""
    if not detector.available:
        reason = getattr(detector, "reason", "unavailable")
        logger.warning(f"[beautify] Face detector unavailable ({reason}); skipping smoothing")
        return img_bgr, {"detector_available": False, "faces": 0}

    h, w = img_bgr.shape[:2]
    gray = cv2.cvtColor(img_bgr, cv2.COLOR_BGR2GRAY)
    faces = detector.detect(
        gray,
        settings.face_scale_factor,
        settings.face_min_neighbors,
        settings.face_min_size,
    )

    out = img_bgr.copy()
    smoothed = 0
    for face in faces:
        r = face.clamp(w, h)
        if r is None:
            continue
        roi = np.ascontiguousarray(out[r.y:r.y + r.height, r.x:r.x + r.width])
        out[r.y:r.y + r.height, r.x:r.x + r.width] = cv2.bilateralFilter(
            roi,
            d=settings.smooth_diameter,
            sigmaColor=settings.smooth_sigma_color,
            sigmaSpace=settings.smooth_sigma_space,
        )
        smoothed += 1

    return out, {"detector_available": True, "faces": smoothed}
