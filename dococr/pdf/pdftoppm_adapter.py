import re
import subprocess
from pathlib import Path

from dococr.logging.logger import Log
from dococr.pdf.base import BaseRasterizer
from dococr.pdf.exceptions import RasterizationError

_PAGE_NUMBER = re.compile(r"-(\d+)\.png$")


class PdftoppmAdapter(BaseRasterizer):
    """Renders PDF pages with poppler's pdftoppm as an external process."""

    OUTPUT_PREFIX = "page"

    def __init__(self, executable: str = "pdftoppm", timeout_seconds: int | None = None) -> None:
        self._executable = executable
        self._timeout_seconds = timeout_seconds

    def rasterize(self, pdf_path: Path, out_dir: Path, dpi: int) -> list[Path]:
        cmd = [
            self._executable,
            "-png",
            "-r",
            str(dpi),
            str(pdf_path),
            str(out_dir / self.OUTPUT_PREFIX),
        ]
        Log.debug(f"Running {' '.join(cmd)}")
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout_seconds,
                check=False,
            )
        except FileNotFoundError as exc:
            raise RasterizationError(f"pdftoppm not found: {self._executable}") from exc
        except subprocess.TimeoutExpired as exc:
            raise RasterizationError(f"pdftoppm timed out after {exc.timeout}s") from exc

        if proc.returncode != 0:
            stderr = (proc.stderr or "").strip()
            raise RasterizationError(
                f"pdftoppm failed code {proc.returncode}" + (f": {stderr}" if stderr else "")
            )
        return _collect_pages(out_dir)


def _collect_pages(out_dir: Path) -> list[Path]:
    """Return rendered pages ordered by their numeric page suffix."""
    numbered = []
    for path in out_dir.glob("*.png"):
        match = _PAGE_NUMBER.search(path.name)
        if match:
            numbered.append((int(match.group(1)), path))
    return [path for _, path in sorted(numbered)]
