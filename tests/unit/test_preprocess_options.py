import pytest

from dococr.preprocessing.exceptions import InvalidPreprocessOptionsError
from dococr.preprocessing.options import (
    PRESETS,
    PreprocessOptions,
    Preset,
    get_preset,
    resolve_options,
)


class TestPresets:
    def test_document_preset(self) -> None:
        preset = get_preset("document")

        assert preset.grayscale is True
        assert preset.contrast is True
        assert preset.dpi == 300

    def test_scan_preset(self) -> None:
        preset = get_preset("scan")

        assert preset.binarize is True
        assert preset.denoise is True
        assert preset.threshold == 140

    def test_photo_keeps_color(self) -> None:
        assert get_preset(Preset.PHOTO).grayscale is False

    def test_low_quality_accepts_camel_case(self) -> None:
        assert get_preset("lowQuality") == PRESETS[Preset.LOW_QUALITY]
        assert get_preset("lowQuality").dpi == 400

    def test_unknown_preset_raises(self) -> None:
        with pytest.raises(InvalidPreprocessOptionsError, match="Unknown preset"):
            get_preset("fax")


class TestResolveOptions:
    def test_empty_bag_gives_defaults(self) -> None:
        assert resolve_options({}) == PreprocessOptions()
        assert resolve_options(None) == PreprocessOptions()

    def test_preset_with_overrides(self) -> None:
        options = resolve_options({"preset": "scan", "denoise": False, "threshold": 100})

        assert options.binarize is True
        assert options.denoise is False
        assert options.threshold == 100

    def test_override_wins_only_for_its_field(self) -> None:
        options = resolve_options({"preset": "document", "sharpen": False})

        assert options == PRESETS[Preset.DOCUMENT].merged({"sharpen": False})
        assert options.grayscale is True

    def test_nested_forms(self) -> None:
        options = resolve_options(
            {
                "resize": {"width": 800},
                "binarize": {"threshold": 90},
                "rotate": {"degrees": 90},
                "borderMargin": 5,
                "autoRotate": False,
            }
        )

        assert options.resize_width == 800
        assert options.resize_height is None
        assert options.has_explicit_resize
        assert options.binarize is True
        assert options.threshold == 90
        assert options.rotate == 90.0
        assert options.border_margin == 5
        assert options.auto_rotate is False

    def test_adaptive_override(self) -> None:
        options = resolve_options({"preset": "scan", "adaptive": True})

        assert options.binarize is True
        assert options.adaptive is True

    def test_deskew_is_ignored(self) -> None:
        assert resolve_options({"deskew": True}) == PreprocessOptions()

    def test_does_not_mutate_input(self) -> None:
        raw = {"preset": "scan", "sharpen": False}

        resolve_options(raw)

        assert raw == {"preset": "scan", "sharpen": False}

    @pytest.mark.parametrize(
        "raw",
        [
            {"colorize": True},
            {"grayscale": "yes"},
            {"threshold": -1},
            {"threshold": True},
            {"resize": 800},
            {"rotate": "left"},
        ],
    )
    def test_invalid_options_raise(self, raw: dict[str, object]) -> None:
        with pytest.raises(InvalidPreprocessOptionsError):
            resolve_options(raw)

    def test_invalid_options_are_value_errors(self) -> None:
        with pytest.raises(ValueError):
            resolve_options({"colorize": True})
