import io
from dataclasses import replace

import pytesseract
from PIL import Image, UnidentifiedImageError

from dococr.ocr.base import BaseRecognizer, ProgressSink, RecognitionProgress
from dococr.ocr.exceptions import RecognitionError
from dococr.ocr.models import RecognitionOutput, RowLevel
from dococr.ocr.parser import rows_from_columns


class TesseractAdapter(BaseRecognizer):
    """Runs Tesseract through pytesseract and returns its positional table."""

    def __init__(self, tesseract_cmd: str = "", config: str = "") -> None:
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self._config = config

    def recognize(
        self,
        image_bytes: bytes,
        languages: str,
        on_progress: ProgressSink | None = None,
    ) -> RecognitionOutput:
        try:
            with Image.open(io.BytesIO(image_bytes)) as image:
                image.load()
                width, height = image.size
                _notify(on_progress, "recognizing text", 0.0)
                data = pytesseract.image_to_data(
                    image,
                    lang=languages,
                    config=self._config,
                    output_type=pytesseract.Output.DICT,
                )
                _notify(on_progress, "recognizing text", 0.5)
                text = pytesseract.image_to_string(image, lang=languages, config=self._config)
                _notify(on_progress, "recognizing text", 1.0)
        except pytesseract.TesseractNotFoundError as exc:
            raise RecognitionError(f"Tesseract is not installed: {exc}") from exc
        except pytesseract.TesseractError as exc:
            raise RecognitionError(f"Tesseract failed: {exc}") from exc
        except (UnidentifiedImageError, OSError) as exc:
            raise RecognitionError(f"Cannot decode image for recognition: {exc}") from exc

        # image_to_data leaves page-level text empty; carry the engine's text on it.
        rows = [
            replace(row, text=text) if row.level == RowLevel.PAGE else row
            for row in rows_from_columns(data)
        ]
        return RecognitionOutput(rows=rows, text=text, width=width, height=height)


def _notify(sink: ProgressSink | None, status: str, progress: float) -> None:
    if sink is not None:
        sink(RecognitionProgress(status=status, progress=progress))
