from abc import ABC, abstractmethod
from pathlib import Path


class BaseRasterizer(ABC):
    """Contract for all PDF-to-image rasterizer adapters."""

    @abstractmethod
    def rasterize(self, pdf_path: Path, out_dir: Path, dpi: int) -> list[Path]:
        """Render every page of a PDF to an image file.

        Args:
            pdf_path: Path of the PDF artifact.
            out_dir: Existing directory that receives one image per page.
            dpi: Render resolution.

        Returns:
            Image paths in page order.

        Raises:
            RasterizationError: if rendering fails for any reason.
        """
