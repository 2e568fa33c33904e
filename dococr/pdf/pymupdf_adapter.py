from pathlib import Path

import pymupdf

from dococr.pdf.base import BaseRasterizer
from dococr.pdf.exceptions import RasterizationError

POINTS_PER_INCH = 72


class PyMuPdfAdapter(BaseRasterizer):
    """Renders PDF pages in-process with PyMuPDF."""

    def rasterize(self, pdf_path: Path, out_dir: Path, dpi: int) -> list[Path]:
        zoom = dpi / POINTS_PER_INCH
        paths: list[Path] = []
        try:
            with pymupdf.open(pdf_path) as doc:  # type: ignore[no-untyped-call]
                for index, page in enumerate(doc, start=1):
                    pixmap = page.get_pixmap(matrix=pymupdf.Matrix(zoom, zoom), alpha=False)
                    path = out_dir / f"page-{index}.png"
                    pixmap.save(str(path))
                    paths.append(path)
        except Exception as exc:
            raise RasterizationError(f"pymupdf rasterization failed: {exc}") from exc
        return paths
