"""Preprocessing configuration: closed preset set plus explicit field overrides."""

from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from enum import StrEnum
from typing import Any

from dococr.preprocessing.exceptions import InvalidPreprocessOptionsError

DEFAULT_THRESHOLD = 128
DEFAULT_DPI = 300

# Accepted but without effect: deskew is not implemented.
IGNORED_KEYS = frozenset({"deskew"})

_ALIASES = {
    "autoRotate": "auto_rotate",
    "borderMargin": "border_margin",
    "normalize": "contrast",
}


class Preset(StrEnum):
    DOCUMENT = "document"
    SCAN = "scan"
    PHOTO = "photo"
    LOW_QUALITY = "low_quality"

    @classmethod
    def parse(cls, value: str) -> "Preset":
        normalized = "low_quality" if value == "lowQuality" else value
        try:
            return cls(normalized)
        except ValueError as exc:
            raise InvalidPreprocessOptionsError(
                f"Unknown preset '{value}'. Choose from: {[p.value for p in cls]}"
            ) from exc


@dataclass(frozen=True)
class PreprocessOptions:
    """Fully specified preprocessing configuration."""

    enabled: bool = True
    resize_width: int | None = None
    resize_height: int | None = None
    grayscale: bool = True
    contrast: bool = True
    sharpen: bool = False
    binarize: bool = False
    adaptive: bool = False
    threshold: int = DEFAULT_THRESHOLD
    denoise: bool = False
    rotate: float = 0.0
    auto_rotate: bool = True
    border_margin: int = 0
    dpi: int = DEFAULT_DPI

    @property
    def has_explicit_resize(self) -> bool:
        return self.resize_width is not None or self.resize_height is not None

    def merged(self, overrides: Mapping[str, Any]) -> "PreprocessOptions":
        """Return a copy with each recognized override field replacing this one's."""
        return replace(self, **_coerce_overrides(overrides))


PRESETS: dict[Preset, PreprocessOptions] = {
    Preset.DOCUMENT: PreprocessOptions(
        grayscale=True, contrast=True, sharpen=True, binarize=False, denoise=False, dpi=300
    ),
    Preset.SCAN: PreprocessOptions(
        grayscale=True,
        contrast=True,
        sharpen=True,
        binarize=True,
        threshold=140,
        denoise=True,
        dpi=300,
    ),
    Preset.PHOTO: PreprocessOptions(
        grayscale=False, contrast=True, sharpen=False, binarize=False, denoise=True, dpi=300
    ),
    Preset.LOW_QUALITY: PreprocessOptions(
        grayscale=True,
        contrast=True,
        sharpen=True,
        binarize=True,
        threshold=120,
        denoise=True,
        dpi=400,
    ),
}


def get_preset(preset: Preset | str) -> PreprocessOptions:
    """Return the fixed option set bound to a preset name."""
    key = preset if isinstance(preset, Preset) else Preset.parse(preset)
    return PRESETS[key]


def resolve_options(raw: Mapping[str, Any] | None) -> PreprocessOptions:
    """Resolve a queue item's option bag into a PreprocessOptions record.

    A ``preset`` key selects the base record (defaults otherwise); every other
    recognized key overrides the matching field of that base.

    Raises:
        InvalidPreprocessOptionsError: on unknown keys or malformed values.
    """
    raw = dict(raw or {})
    preset_name = raw.pop("preset", None)
    base = get_preset(str(preset_name)) if preset_name else PreprocessOptions()
    return base.merged(raw)


_FIELD_NAMES = frozenset(f.name for f in fields(PreprocessOptions))


def _coerce_overrides(overrides: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for raw_key, value in overrides.items():
        key = _ALIASES.get(raw_key, raw_key)
        if key in IGNORED_KEYS:
            continue
        if key == "resize":
            result.update(_coerce_resize(value))
        elif key == "binarize":
            result.update(_coerce_binarize(value))
        elif key == "rotate":
            result["rotate"] = _coerce_rotate(value)
        elif key in ("threshold", "dpi", "border_margin", "resize_width", "resize_height"):
            result[key] = _coerce_int(key, value)
        elif key in _FIELD_NAMES:
            if not isinstance(value, bool):
                raise InvalidPreprocessOptionsError(f"Option '{raw_key}' must be a boolean")
            result[key] = value
        else:
            raise InvalidPreprocessOptionsError(f"Unknown preprocessing option '{raw_key}'")
    return result


def _coerce_resize(value: Any) -> dict[str, Any]:
    if value is None or value is False:
        return {"resize_width": None, "resize_height": None}
    if not isinstance(value, Mapping):
        raise InvalidPreprocessOptionsError("Option 'resize' must be an object {width, height}")
    width = value.get("width")
    height = value.get("height")
    return {
        "resize_width": None if width is None else _coerce_int("resize.width", width),
        "resize_height": None if height is None else _coerce_int("resize.height", height),
    }


def _coerce_binarize(value: Any) -> dict[str, Any]:
    if isinstance(value, bool):
        return {"binarize": value}
    if isinstance(value, Mapping):
        result: dict[str, Any] = {"binarize": True}
        if "threshold" in value:
            result["threshold"] = _coerce_int("binarize.threshold", value["threshold"])
        return result
    raise InvalidPreprocessOptionsError("Option 'binarize' must be a boolean or {threshold}")


def _coerce_rotate(value: Any) -> float:
    if isinstance(value, Mapping):
        value = value.get("degrees", 0)
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise InvalidPreprocessOptionsError("Option 'rotate' must be a number of degrees")
    return float(value)


def _coerce_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise InvalidPreprocessOptionsError(f"Option '{name}' must be a number")
    number = int(value)
    if number < 0:
        raise InvalidPreprocessOptionsError(f"Option '{name}' must not be negative")
    return number
