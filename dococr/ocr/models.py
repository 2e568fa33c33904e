from dataclasses import dataclass, field
from enum import IntEnum, StrEnum
from typing import Any


class RowLevel(IntEnum):
    """Hierarchy levels of Tesseract's positional table."""

    PAGE = 1
    BLOCK = 2
    PARAGRAPH = 3
    LINE = 4
    WORD = 5


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in page pixel space."""

    x0: int
    y0: int
    x1: int
    y1: int

    def __post_init__(self) -> None:
        if self.x1 < self.x0 or self.y1 < self.y0:
            raise ValueError(f"Invalid bounding box: {self}")

    def to_dict(self) -> dict[str, int]:
        return {"x0": self.x0, "y0": self.y0, "x1": self.x1, "y1": self.y1}


@dataclass(frozen=True)
class Word:
    """A recognized token with its position and confidence (0-100)."""

    text: str
    bbox: BoundingBox
    confidence: float

    def to_dict(self) -> dict[str, object]:
        return {"text": self.text, "bbox": self.bbox.to_dict(), "conf": self.confidence}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Word":
        bbox = data["bbox"]
        return cls(
            text=str(data["text"]),
            bbox=BoundingBox(
                x0=int(bbox["x0"]), y0=int(bbox["y0"]), x1=int(bbox["x1"]), y1=int(bbox["y1"])
            ),
            confidence=float(data["conf"]),
        )


@dataclass(frozen=True)
class PositionalRow:
    """One row of the engine's positional table."""

    level: int
    left: int = 0
    top: int = 0
    width: int = 0
    height: int = 0
    conf: float = 0.0
    text: str = ""
    page_num: int = 1
    block_num: int = 0
    par_num: int = 0
    line_num: int = 0
    word_num: int = 0


@dataclass(frozen=True)
class RecognitionOutput:
    """Engine-native result: positional table plus the engine's own text extraction."""

    rows: list[PositionalRow] = field(default_factory=list)
    text: str = ""
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class ParsedPage:
    """Typed view over a positional table."""

    words: list[Word] = field(default_factory=list)
    avg_confidence: float = 0.0
    text: str = ""


@dataclass
class TextLine:
    """Words grouped by vertical proximity."""

    y: int
    words: list[Word] = field(default_factory=list)
    text: str = ""

    def to_dict(self) -> dict[str, object]:
        return {"y": self.y, "text": self.text, "words": [w.to_dict() for w in self.words]}


class QualityRating(StrEnum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


@dataclass(frozen=True)
class QualityAssessment:
    """Rating band and recommendations for a page's recognition confidence."""

    score: float
    rating: QualityRating
    recommendations: list[str] = field(default_factory=list)
