from dococr.config.settings import Settings
from dococr.pdf.base import BaseRasterizer
from dococr.pdf.pdftoppm_adapter import PdftoppmAdapter
from dococr.pdf.pymupdf_adapter import PyMuPdfAdapter


class RasterizerFactory:
    """Creates the correct PDF rasterizer based on settings."""

    ADAPTERS: tuple[str, ...] = ("pdftoppm", "pymupdf")

    @classmethod
    def create(cls, settings: Settings) -> BaseRasterizer:
        engine = settings.rasterizer.lower()
        if engine == "pdftoppm":
            return PdftoppmAdapter(executable=settings.pdftoppm_path)
        if engine == "pymupdf":
            return PyMuPdfAdapter()
        raise ValueError(
            f"Unknown rasterizer '{engine}'. Choose from: {list(cls.ADAPTERS)}"
        )
