"""
Pillow-based enhancement pipeline applied to a raster page before recognition.

Each step is toggled by PreprocessOptions. The input buffer is never modified;
every call decodes it and returns a freshly encoded PNG, so the result is a pure
function of the input bytes and the options.
"""

import io

from PIL import Image, ImageChops, ImageFilter, ImageOps, UnidentifiedImageError

from dococr.logging.logger import Log
from dococr.preprocessing.exceptions import PreprocessingError
from dococr.preprocessing.options import PreprocessOptions

MAX_DIMENSION = 3000
MEDIAN_SIZE = 3
ADAPTIVE_RADIUS = 15
ADAPTIVE_OFFSET = 10
WHITE = 255


class ImagePreprocessor:
    """Applies the configured enhancement steps and encodes the result losslessly."""

    def preprocess(self, image_bytes: bytes, options: PreprocessOptions) -> bytes:
        """Run the enhancement pipeline.

        Raises:
            PreprocessingError: if the buffer cannot be decoded or processed.
        """
        try:
            with Image.open(io.BytesIO(image_bytes)) as source:
                source.load()
                return encode_png(self._apply(source, options), options.dpi)
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise PreprocessingError(f"Preprocessing failed: {exc}") from exc

    def _apply(self, image: Image.Image, options: PreprocessOptions) -> Image.Image:
        if options.auto_rotate:
            image = ImageOps.exif_transpose(image)
        image = _normalize_mode(image)

        if options.has_explicit_resize:
            image = fit_inside(image, options.resize_width, options.resize_height)
        elif image.width > MAX_DIMENSION or image.height > MAX_DIMENSION:
            Log.debug(f"Auto-downsizing {image.width}x{image.height} to fit {MAX_DIMENSION}px")
            image = fit_inside(image, MAX_DIMENSION, MAX_DIMENSION)

        if options.border_margin:
            image = remove_borders(image, options.border_margin)
        if options.grayscale:
            image = image.convert("L")
        if options.contrast:
            image = ImageOps.autocontrast(image)
        if options.sharpen:
            image = image.filter(ImageFilter.SHARPEN)
        if options.binarize and options.adaptive:
            image = adaptive_binarize(image)
        elif options.binarize:
            image = binarize(image, options.threshold)
        if options.denoise:
            image = image.filter(ImageFilter.MedianFilter(MEDIAN_SIZE))
        if options.rotate:
            image = image.rotate(
                -options.rotate,
                expand=True,
                resample=Image.Resampling.BICUBIC,
                fillcolor=WHITE if image.mode == "L" else (WHITE, WHITE, WHITE),
            )
        return image


def fit_inside(image: Image.Image, width: int | None, height: int | None) -> Image.Image:
    """Scale down to fit within width x height preserving aspect ratio. Never upscales."""
    scale = 1.0
    if width:
        scale = min(scale, width / image.width)
    if height:
        scale = min(scale, height / image.height)
    if scale >= 1.0:
        return image.copy()
    size = (max(1, round(image.width * scale)), max(1, round(image.height * scale)))
    return image.resize(size, Image.Resampling.LANCZOS)


def binarize(image: Image.Image, threshold: int) -> Image.Image:
    """Map pixels to black or white; luminance >= threshold becomes white."""
    gray = image.convert("L") if image.mode != "L" else image
    return gray.point(lambda value: WHITE if value >= threshold else 0)


def adaptive_binarize(
    image: Image.Image, radius: int = ADAPTIVE_RADIUS, offset: int = ADAPTIVE_OFFSET
) -> Image.Image:
    """Threshold each pixel against the mean of its neighbourhood.

    A pixel becomes black when it is darker than the local mean by more than offset.
    """
    gray = image.convert("L") if image.mode != "L" else image
    local_mean = gray.filter(ImageFilter.BoxBlur(radius))
    darker_by = ImageChops.subtract(local_mean, gray)
    return darker_by.point(lambda value: 0 if value > offset else WHITE)


def remove_borders(image: Image.Image, margin: int = 10) -> Image.Image:
    """Crop a fixed margin from every edge. Images too small to crop are returned as-is."""
    if image.width <= margin * 2 or image.height <= margin * 2:
        return image
    return image.crop((margin, margin, image.width - margin, image.height - margin))


def encode_png(image: Image.Image, dpi: int) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG", dpi=(dpi, dpi))
    return buf.getvalue()


def _normalize_mode(image: Image.Image) -> Image.Image:
    if image.mode in ("L", "RGB"):
        return image
    if image.mode in ("1", "I", "I;16", "F"):
        return image.convert("L")
    if image.mode in ("RGBA", "LA", "P", "PA"):
        background = Image.new("RGB", image.size, (WHITE, WHITE, WHITE))
        rgba = image.convert("RGBA")
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")
