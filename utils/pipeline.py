"""
Enhancement pipeline.

Stages always run in this order, whichever of them are enabled:

    sharpen -> denoise -> color_correction -> super_resolution -> beautify

Denoise runs before upscaling so it works on the smaller buffer, colour
correction sees denoised data, and beautify detects and smooths faces at the
final resolution.
"""
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import cv2
import numpy as np

from core.config import DEFAULT_SETTINGS, EnhancerSettings, logger
from models.options import EnhancementOptions
from utils import transforms
from utils.encoder import encode_image, write_artifact
from utils.errors import EnhanceError, ErrorKind
from utils.face_detect import FaceDetector, get_default_detector

STAGE_ORDER = ("sharpen", "denoise", "color_correction", "super_resolution", "beautify")

Upscaler = Callable[[np.ndarray, int], np.ndarray]


@dataclass
class StageRecord:
    name: str
    input_shape: Tuple[int, ...]
    output_shape: Tuple[int, ...]
    elapsed: float
    details: dict = field(default_factory=dict)


@dataclass
class EnhanceResult:
    ok: bool
    output_path: Optional[str] = None
    output_format: Optional[str] = None
    width: int = 0
    height: int = 0
    stages: List[StageRecord] = field(default_factory=list)
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    details: dict = field(default_factory=dict)

    @classmethod
    def failure(cls, error: EnhanceError, stages: Optional[List[StageRecord]] = None) -> "EnhanceResult":
        return cls(
            ok=False,
            error_kind=error.kind,
            message=error.message,
            details=error.details,
            stages=stages or [],
        )

    def to_error(self) -> EnhanceError:
        return EnhanceError(self.error_kind or ErrorKind.STAGE_FAILED, self.message, self.details)


def load_image(path: str) -> np.ndarray:
    """Decode an image file as BGR uint8. Raises DECODE_FAILED if unreadable."""
    img = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if img is None or img.size == 0:
        raise EnhanceError(ErrorKind.DECODE_FAILED, "Cannot load image", {"path": str(path)})
    return img


def _enabled(options: EnhancementOptions, stage: str) -> bool:
    return bool(getattr(options, stage))


def enhance_image(
    image: np.ndarray,
    options: EnhancementOptions,
    settings: Optional[EnhancerSettings] = None,
    face_detector: Optional[FaceDetector] = None,
    upscaler: Optional[Upscaler] = None,
) -> Tuple[np.ndarray, List[StageRecord]]:
    """
    Run the enabled stages over ``image`` in STAGE_ORDER.

    Returns the final buffer and one StageRecord per stage that ran. Any stage
    that errors or hands back a malformed or wrongly sized buffer raises
    EnhanceError(STAGE_FAILED); nothing downstream sees it.
    """
    settings = settings or DEFAULT_SETTINGS
    upscaler = upscaler or transforms.upscale
    current = transforms.ensure_bgr8(image, "input")
    records: List[StageRecord] = []

    for stage in STAGE_ORDER:
        if not _enabled(options, stage):
            continue
        in_shape = tuple(current.shape)
        t0 = time.perf_counter()
        details: dict = {}
        try:
            if stage == "sharpen":
                out = transforms.sharpen(current, settings)
            elif stage == "denoise":
                out, details = transforms.denoise(current, settings)
            elif stage == "color_correction":
                out = transforms.color_correct(current, settings)
            elif stage == "super_resolution":
                out = upscaler(current, settings.upscale_factor)
            else:
                detector = face_detector if face_detector is not None else get_default_detector()
                out, details = transforms.beautify(current, detector, settings)
        except EnhanceError:
            raise
        except cv2.error as e:
            logger.error(f"[pipeline] Stage {stage} failed: {e}")
            raise EnhanceError(ErrorKind.STAGE_FAILED, f"{stage} failed: {e}", {"stage": stage}) from e
        except Exception as e:
            logger.exception(f"[pipeline] Stage {stage} raised unexpectedly")
            raise EnhanceError(ErrorKind.STAGE_FAILED, f"{stage} failed: {e}", {"stage": stage}) from e

        out = transforms.ensure_bgr8(out, stage)
        h, w = in_shape[:2]
        if stage == "super_resolution":
            expected = (h * settings.upscale_factor, w * settings.upscale_factor)
        else:
            expected = (h, w)
        if tuple(out.shape[:2]) != expected:
            raise EnhanceError(
                ErrorKind.STAGE_FAILED,
                f"{stage} returned a {out.shape[1]}x{out.shape[0]} image, expected {expected[1]}x{expected[0]}",
                {"stage": stage},
            )

        elapsed = time.perf_counter() - t0
        records.append(StageRecord(stage, in_shape, tuple(out.shape), elapsed, details))
        logger.info(f"[pipeline] {stage}: {w}x{h} -> {out.shape[1]}x{out.shape[0]} in {elapsed:.3f}s {details or ''}".rstrip())
        current = out

    return current, records


def enhance(
    input_path: str,
    output_path: str,
    options: EnhancementOptions,
    settings: Optional[EnhancerSettings] = None,
    face_detector: Optional[FaceDetector] = None,
    upscaler: Optional[Upscaler] = None,
) -> EnhanceResult:
    """
    Load ``input_path``, enhance it and write the encoded result to ``output_path``.

    Never raises for pipeline failures; the outcome (including the error kind)
    is returned as an EnhanceResult.
    """
    settings = settings or DEFAULT_SETTINGS
    records: List[StageRecord] = []
    try:
        image = load_image(input_path)
        logger.info(f"[pipeline] Loaded {input_path} ({image.shape[1]}x{image.shape[0]})")
        result, records = enhance_image(image, options, settings, face_detector, upscaler)
        data = encode_image(result, options.output_format, options.jpeg_quality, settings)
        write_artifact(output_path, data)
    except EnhanceError as e:
        logger.error(f"[pipeline] {e.kind.value}: {e.message}")
        return EnhanceResult.failure(e, records)

    logger.info(f"[pipeline] Saved {output_path} ({len(data)} bytes, {options.output_format})")
    return EnhanceResult(
        ok=True,
        output_path=output_path,
        output_format=options.output_format,
        width=int(result.shape[1]),
        height=int(result.shape[0]),
        stages=records,
    )
