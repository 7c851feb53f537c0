"""
Tests for decoding the per-request enhancement options.
"""
import json

import pytest
from pydantic import ValidationError

from models.options import EnhancementOptions, parse_options
from utils.errors import EnhanceError, ErrorKind


class TestDefaults:
    """Missing fields fall back to documented defaults."""

    def test_empty_object(self):
        opts = parse_options("{}")
        assert not opts.any_enabled()
        assert opts.output_format == "png"
        assert opts.jpeg_quality == 95

    def test_null_flags_are_false(self):
        opts = parse_options('{"sharpen": null, "denoise": true}')
        assert opts.sharpen is False
        assert opts.denoise is True


class TestFieldNames:
    """Front-end camelCase keys are understood."""

    def test_camel_case_keys(self):
        raw = json.dumps({
            "sharpen": True,
            "denoise": True,
            "colorCorrection": True,
            "superResolution": True,
            "beautify": True,
            "outputFormat": "jpeg",
            "jpegQuality": 80,
        })
        opts = parse_options(raw)
        assert opts.sharpen and opts.denoise and opts.color_correction
        assert opts.super_resolution and opts.beautify
        assert opts.output_format == "jpeg"
        assert opts.jpeg_quality == 80

    def test_legacy_upscale_key(self):
        opts = parse_options('{"upscale": true}')
        assert opts.super_resolution is True

    def test_unknown_keys_ignored(self):
        opts = parse_options('{"vignette": true, "sharpen": true}')
        assert opts.sharpen is True

    def test_serializes_with_wire_names(self):
        dumped = EnhancementOptions(super_resolution=True).model_dump(by_alias=True)
        assert dumped["superResolution"] is True
        assert "outputFormat" in dumped

    def test_accepts_bytes(self):
        assert parse_options(b'{"beautify": true}').beautify is True


class TestJpegQuality:
    """jpegQuality outside 1..100 or non-numeric falls back to 95."""

    @pytest.mark.parametrize("value", [0, -5, "abc", None, 101, 12.5, True])
    def test_falls_back_to_default(self, value):
        opts = parse_options(json.dumps({"jpegQuality": value}))
        assert opts.jpeg_quality == 95

    @pytest.mark.parametrize("raw", ['{"jpegQuality": 1e400}', '{"jpegQuality": -1e400}', '{"jpegQuality": NaN}'])
    def test_non_finite_falls_back_to_default(self, raw):
        opts = parse_options('{"outputFormat": "jpeg", ' + raw[1:])
        assert opts.jpeg_quality == 95

    def test_omitted(self):
        assert parse_options('{"outputFormat": "jpeg"}').jpeg_quality == 95

    def test_valid_value_kept(self):
        assert parse_options('{"jpegQuality": 42}').jpeg_quality == 42

    def test_numeric_string_kept(self):
        assert parse_options('{"jpegQuality": "42"}').jpeg_quality == 42


class TestOutputFormat:
    def test_jpg_alias(self):
        assert parse_options('{"outputFormat": "JPG"}').output_format == "jpeg"

    def test_blank_defaults_to_png(self):
        assert parse_options('{"outputFormat": ""}').output_format == "png"

    def test_unsupported_rejected(self):
        with pytest.raises(EnhanceError) as exc:
            parse_options('{"outputFormat": "gif"}')
        assert exc.value.kind is ErrorKind.INVALID_OPTIONS


class TestMalformedInput:
    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_missing(self, raw):
        with pytest.raises(EnhanceError) as exc:
            parse_options(raw)
        assert exc.value.kind is ErrorKind.INVALID_OPTIONS
        assert "options" in exc.value.message

    def test_invalid_json(self):
        with pytest.raises(EnhanceError) as exc:
            parse_options("{sharpen: true")
        assert exc.value.message == "Invalid JSON format"

    def test_not_an_object(self):
        with pytest.raises(EnhanceError):
            parse_options("[true, false]")

    def test_bad_flag_type(self):
        with pytest.raises(EnhanceError) as exc:
            parse_options('{"sharpen": {"on": 1}}')
        assert exc.value.details["errors"]


class TestImmutability:
    def test_frozen(self):
        opts = parse_options('{"sharpen": true}')
        with pytest.raises(ValidationError):
            opts.sharpen = False
