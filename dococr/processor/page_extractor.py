import tempfile
from pathlib import Path

from dococr.logging.logger import Log
from dococr.pdf.base import BaseRasterizer
from dococr.processor.models import RasterPage

PDF_MIME_TYPE = "application/pdf"


def is_pdf(path: Path, mime_type: str) -> bool:
    return mime_type.lower() == PDF_MIME_TYPE or path.suffix.lower() == ".pdf"


class PageExtractor:
    """Turns an artifact into an ordered list of raster pages."""

    def __init__(self, rasterizer: BaseRasterizer, dpi: int = 300) -> None:
        self._rasterizer = rasterizer
        self._dpi = dpi

    def extract(self, path: Path, mime_type: str) -> list[RasterPage]:
        """Rasterize a PDF page by page, or wrap a single image as page 1.

        Raises:
            RasterizationError: if the rasterizer fails.
        """
        if not is_pdf(path, mime_type):
            return [RasterPage(number=1, image_bytes=path.read_bytes())]

        with tempfile.TemporaryDirectory(prefix="dococr-pages-") as out_dir:
            image_paths = self._rasterizer.rasterize(path, Path(out_dir), self._dpi)
            pages = [
                RasterPage(number=index, image_bytes=image_path.read_bytes())
                for index, image_path in enumerate(image_paths, start=1)
            ]
        Log.info(f"Rasterized {len(pages)} pages from {path.name}")
        return pages
