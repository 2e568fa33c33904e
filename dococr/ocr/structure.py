from collections.abc import Iterable

from dococr.ocr.models import TextLine, Word

LINE_THRESHOLD_PX = 10


def build_lines(words: Iterable[Word], threshold: int = LINE_THRESHOLD_PX) -> list[TextLine]:
    """Group words into lines by vertical proximity of their top edge.

    Single top-to-bottom pass: a word joins the first line whose anchor ``y``
    is within ``threshold`` pixels of the word's ``y0``, otherwise it anchors
    a new line. Pixel proximity only, no column detection.
    """
    lines: list[TextLine] = []
    for word in words:
        line = next(
            (ln for ln in lines if abs(ln.y - word.bbox.y0) < threshold),
            None,
        )
        if line is None:
            lines.append(TextLine(y=word.bbox.y0, words=[word]))
        else:
            line.words.append(word)

    lines.sort(key=lambda ln: ln.y)
    for line in lines:
        line.words.sort(key=lambda w: w.bbox.x0)
        line.text = " ".join(w.text for w in line.words)
    return lines
