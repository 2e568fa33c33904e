"""Turns the engine's positional table into typed words, confidence and text."""

from collections.abc import Iterable, Mapping, Sequence

from dococr.ocr.models import (
    BoundingBox,
    ParsedPage,
    PositionalRow,
    RecognitionOutput,
    RowLevel,
    Word,
)

# Column names of pytesseract Output.DICT, as in Tesseract TSV.
DATA_COLUMNS = (
    "level",
    "page_num",
    "block_num",
    "par_num",
    "line_num",
    "word_num",
    "left",
    "top",
    "width",
    "height",
    "conf",
    "text",
)


def parse(output: RecognitionOutput) -> ParsedPage:
    """Parse an engine result into words, average confidence and full text."""
    return parse_rows(output.rows)


def parse_rows(rows: Sequence[PositionalRow]) -> ParsedPage:
    """Parse positional rows. An empty table yields an empty page, never an error."""
    words = [
        _row_to_word(row)
        for row in rows
        if row.level == RowLevel.WORD and row.text.strip()
    ]
    avg_confidence = sum(w.confidence for w in words) / len(words) if words else 0.0

    page_rows = [row for row in rows if row.level == RowLevel.PAGE]
    if page_rows:
        text = "\n".join(row.text for row in page_rows).strip()
    else:
        text = " ".join(w.text for w in words)

    return ParsedPage(words=words, avg_confidence=avg_confidence, text=text)


def rows_from_columns(data: Mapping[str, Sequence[object]]) -> list[PositionalRow]:
    """Build rows from a column-oriented dict (pytesseract ``Output.DICT``)."""
    count = len(data.get("level", []))
    records = [
        {key: data[key][i] for key in DATA_COLUMNS if key in data and i < len(data[key])}
        for i in range(count)
    ]
    return rows_from_records(records)


def rows_from_records(records: Iterable[Mapping[str, object]]) -> list[PositionalRow]:
    """Build rows from row-oriented records, coercing malformed numbers to 0."""
    rows = []
    for record in records:
        level = _to_int(record.get("level"))
        if level == 0:
            continue
        rows.append(
            PositionalRow(
                level=level,
                page_num=_to_int(record.get("page_num")),
                block_num=_to_int(record.get("block_num")),
                par_num=_to_int(record.get("par_num")),
                line_num=_to_int(record.get("line_num")),
                word_num=_to_int(record.get("word_num")),
                left=_to_int(record.get("left")),
                top=_to_int(record.get("top")),
                width=_to_int(record.get("width")),
                height=_to_int(record.get("height")),
                conf=_to_float(record.get("conf")),
                text=str(record.get("text") or ""),
            )
        )
    return rows


def _row_to_word(row: PositionalRow) -> Word:
    width = max(row.width, 0)
    height = max(row.height, 0)
    return Word(
        text=row.text.strip(),
        bbox=BoundingBox(
            x0=row.left,
            y0=row.top,
            x1=row.left + width,
            y1=row.top + height,
        ),
        confidence=row.conf,
    )


def _to_int(value: object) -> int:
    try:
        return int(float(str(value)))
    except (TypeError, ValueError):
        return 0


def _to_float(value: object) -> float:
    try:
        return float(str(value))
    except (TypeError, ValueError):
        return 0.0
