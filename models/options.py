import json
from typing import Any, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from utils.encoder import normalize_format, resolve_jpeg_quality
from utils.errors import EnhanceError, ErrorKind


class EnhancementOptions(BaseModel):
    """
    Per-request enhancement toggles.
    Accepts the front end's camelCase keys (and the legacy ``upscale`` key);
    frozen once built.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    sharpen: bool = False
    denoise: bool = False
    color_correction: bool = Field(
        False,
        validation_alias=AliasChoices("colorCorrection", "color_correction"),
        serialization_alias="colorCorrection",
    )
    super_resolution: bool = Field(
        False,
        validation_alias=AliasChoices("superResolution", "super_resolution", "upscale"),
        serialization_alias="superResolution",
    )
    beautify: bool = False
    output_format: str = Field(
        "png",
        validation_alias=AliasChoices("outputFormat", "output_format"),
        serialization_alias="outputFormat",
    )
    jpeg_quality: int = Field(
        95,
        validation_alias=AliasChoices("jpegQuality", "jpeg_quality"),
        serialization_alias="jpegQuality",
    )

    @field_validator("sharpen", "denoise", "color_correction", "super_resolution", "beautify", mode="before")
    @classmethod
    def _null_is_false(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("output_format", mode="before")
    @classmethod
    def _normalize_format(cls, v: Any) -> str:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "png"
        if not isinstance(v, str):
            raise ValueError("outputFormat must be 'png' or 'jpeg'")
        return normalize_format(v)

    @field_validator("jpeg_quality", mode="before")
    @classmethod
    def _clamp_quality(cls, v: Any) -> int:
        return resolve_jpeg_quality(v)

    def any_enabled(self) -> bool:
        return any((self.sharpen, self.denoise, self.color_correction, self.super_resolution, self.beautify))


def parse_options(raw: Union[str, bytes, dict, None]) -> EnhancementOptions:
    """Decode the ``options`` form field (a JSON object) into EnhancementOptions."""
    if raw is None:
        raise EnhanceError(ErrorKind.INVALID_OPTIONS, "Missing or empty 'options' field")
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        if not raw.strip():
            raise EnhanceError(ErrorKind.INVALID_OPTIONS, "Missing or empty 'options' field")
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise EnhanceError(ErrorKind.INVALID_OPTIONS, "Invalid JSON format", {"reason": str(e)}) from e
    if not isinstance(raw, dict):
        raise EnhanceError(ErrorKind.INVALID_OPTIONS, "'options' must be a JSON object")
    try:
        return EnhancementOptions.model_validate(raw)
    except ValidationError as e:
        errors = [{"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")} for err in e.errors()]
        raise EnhanceError(ErrorKind.INVALID_OPTIONS, "Invalid enhancement options", {"errors": errors}) from e
