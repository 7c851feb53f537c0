import os
import logging
from dataclasses import dataclass
from typing import Tuple

import cv2
from dotenv import load_dotenv

# Load .env from project root
try:
    load_dotenv(dotenv_path=os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".env")))
except Exception:
    try:
        load_dotenv()
    except Exception:
        pass


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)) or default)
    except ValueError:
        return default


# Storage
UPLOAD_DIR = os.path.abspath(os.getenv("UPLOAD_DIR", "") or os.path.join(os.path.dirname(__file__), "..", "uploads"))
KEEP_UPLOADED_INPUT = (os.getenv("KEEP_UPLOADED_INPUT", "") or "").strip().lower() in ("1", "true", "yes")

# Limits
MAX_IMAGE_FILE_SIZE_MB = _env_int("MAX_IMAGE_FILE_SIZE_MB", 50)
PROCESSING_RATE_LIMIT_PER_HOUR = _env_int("PROCESSING_RATE_LIMIT_PER_HOUR", 60)  # 0 disables the limiter

# Face detector model (Haar cascade shipped with opencv-python)
FACE_CASCADE_PATH = (os.getenv("FACE_CASCADE_PATH", "") or "").strip() or os.path.join(
    cv2.data.haarcascades, "haarcascade_frontalface_default.xml"
)

# CORS - the original service answered every origin
ALLOWED_ORIGINS = [o.strip() for o in (os.getenv("ALLOWED_ORIGINS", "*") or "*").split(",") if o.strip()]

# Logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
logger = logging.getLogger("photo_enhancer")


@dataclass(frozen=True)
class EnhancerSettings:
    """
    Every tunable constant used by the enhancement stages.

    Built once (usually via ``from_env``) and handed to each stage by reference.
    Values are range-checked on construction; a bad value raises ValueError.
    """

    # Sharpen (unsharp mask)
    sharpen_sigma: float = 2.0          # gaussian sigma of the blurred copy
    sharpen_amount: float = 0.7         # alpha in image*(1+a) - blurred*a

    # Adaptive denoise
    denoise_max_dimension: int = 1600   # longer inputs are denoised on a downscaled proxy
    denoise_h_luma: float = 2.0
    denoise_h_color: float = 2.0
    denoise_template_window: int = 5    # odd
    denoise_search_window: int = 11     # odd

    # Color correction (CLAHE on L*)
    clahe_clip_limit: float = 2.0
    clahe_tile_grid: Tuple[int, int] = (8, 8)

    # Super-resolution
    upscale_factor: int = 2

    # Beautify
    face_scale_factor: float = 1.1
    face_min_neighbors: int = 3
    face_min_size: Tuple[int, int] = (80, 80)
    smooth_diameter: int = 9
    smooth_sigma_color: float = 40.0
    smooth_sigma_space: float = 40.0

    # Encoder
    jpeg_default_quality: int = 95
    png_compression: int = 3

    def __post_init__(self):
        if self.sharpen_sigma <= 0:
            raise ValueError("sharpen_sigma must be > 0")
        if not 0.0 <= self.sharpen_amount <= 5.0:
            raise ValueError("sharpen_amount must be within 0..5")
        if self.denoise_max_dimension < 16:
            raise ValueError("denoise_max_dimension must be >= 16")
        if self.denoise_h_luma < 0 or self.denoise_h_color < 0:
            raise ValueError("denoise strengths must be >= 0")
        for name in ("denoise_template_window", "denoise_search_window"):
            v = getattr(self, name)
            if v < 3 or v % 2 == 0:
                raise ValueError(f"{name} must be odd and >= 3")
        if self.denoise_search_window < self.denoise_template_window:
            raise ValueError("denoise_search_window must not be smaller than the template window")
        if self.clahe_clip_limit <= 0:
            raise ValueError("clahe_clip_limit must be > 0")
        if len(self.clahe_tile_grid) != 2 or min(self.clahe_tile_grid) < 1:
            raise ValueError("clahe_tile_grid must be two positive integers")
        if not 1 <= self.upscale_factor <= 8:
            raise ValueError("upscale_factor must be within 1..8")
        if self.face_scale_factor <= 1.0:
            raise ValueError("face_scale_factor must be > 1.0")
        if self.face_min_neighbors < 0:
            raise ValueError("face_min_neighbors must be >= 0")
        if len(self.face_min_size) != 2 or min(self.face_min_size) < 1:
            raise ValueError("face_min_size must be two positive integers")
        if self.smooth_diameter < 1:
            raise ValueError("smooth_diameter must be >= 1")
        if self.smooth_sigma_color <= 0 or self.smooth_sigma_space <= 0:
            raise ValueError("smoothing sigmas must be > 0")
        if not 1 <= self.jpeg_default_quality <= 100:
            raise ValueError("jpeg_default_quality must be within 1..100")
        if not 0 <= self.png_compression <= 9:
            raise ValueError("png_compression must be within 0..9")

    @classmethod
    def from_env(cls) -> "EnhancerSettings":
        return cls(
            denoise_max_dimension=_env_int("DENOISE_MAX_DIMENSION", 1600),
            upscale_factor=_env_int("UPSCALE_FACTOR", 2),
        )


DEFAULT_SETTINGS = EnhancerSettings.from_env()
