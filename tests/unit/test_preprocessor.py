import io

import pytest
from PIL import Image

from dococr.preprocessing.exceptions import PreprocessingError
from dococr.preprocessing.options import PreprocessOptions, get_preset
from dococr.preprocessing.preprocessor import (
    MAX_DIMENSION,
    ImagePreprocessor,
    adaptive_binarize,
    binarize,
    fit_inside,
    remove_borders,
)


def _open(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


class TestPreprocess:
    def test_is_deterministic(self, text_image_bytes: bytes) -> None:
        preprocessor = ImagePreprocessor()
        options = get_preset("scan")

        first = preprocessor.preprocess(text_image_bytes, options)
        second = preprocessor.preprocess(text_image_bytes, options)

        assert first == second

    def test_does_not_modify_input(self, text_image_bytes: bytes) -> None:
        original = bytes(text_image_bytes)

        ImagePreprocessor().preprocess(text_image_bytes, get_preset("document"))

        assert text_image_bytes == original

    def test_output_is_png_with_dpi(self, text_image_bytes: bytes) -> None:
        result = ImagePreprocessor().preprocess(text_image_bytes, get_preset("low_quality"))

        image = _open(result)
        assert image.format == "PNG"
        assert round(image.info["dpi"][0]) == 400

    def test_grayscale(self, text_image_bytes: bytes) -> None:
        result = ImagePreprocessor().preprocess(text_image_bytes, PreprocessOptions(grayscale=True))

        assert _open(result).mode == "L"

    def test_photo_keeps_color(self, text_image_bytes: bytes) -> None:
        result = ImagePreprocessor().preprocess(text_image_bytes, get_preset("photo"))

        assert _open(result).mode == "RGB"

    def test_binarized_output_has_two_levels(self, gradient_image_bytes: bytes) -> None:
        options = PreprocessOptions(contrast=False, binarize=True, threshold=128)

        result = ImagePreprocessor().preprocess(gradient_image_bytes, options)

        assert set(_open(result).getdata()) == {0, 255}

    def test_auto_downsizes_large_images(self, large_image_bytes: bytes) -> None:
        result = ImagePreprocessor().preprocess(large_image_bytes, PreprocessOptions())

        assert _open(result).size == (MAX_DIMENSION, 1500)

    def test_explicit_resize_never_upscales(self, text_image_bytes: bytes) -> None:
        options = PreprocessOptions(resize_width=2000)

        result = ImagePreprocessor().preprocess(text_image_bytes, options)

        assert _open(result).size == (400, 120)

    def test_rotation_expands_canvas(self, text_image_bytes: bytes) -> None:
        result = ImagePreprocessor().preprocess(text_image_bytes, PreprocessOptions(rotate=90))

        assert _open(result).size == (120, 400)

    def test_undecodable_bytes_raise(self) -> None:
        with pytest.raises(PreprocessingError):
            ImagePreprocessor().preprocess(b"not an image", PreprocessOptions())

    def test_transparent_image_flattened_on_white(self) -> None:
        image = Image.new("RGBA", (10, 10), (0, 0, 0, 0))
        buf = io.BytesIO()
        image.save(buf, format="PNG")
        options = PreprocessOptions(grayscale=False, contrast=False)

        result = ImagePreprocessor().preprocess(buf.getvalue(), options)

        flattened = _open(result)
        assert flattened.mode == "RGB"
        assert flattened.getpixel((5, 5)) == (255, 255, 255)


class TestHelpers:
    def test_fit_inside_keeps_aspect_ratio(self) -> None:
        image = Image.new("L", (1000, 500))

        assert fit_inside(image, 500, None).size == (500, 250)
        assert fit_inside(image, 800, 100).size == (200, 100)

    def test_fit_inside_without_limits_copies(self) -> None:
        image = Image.new("L", (100, 50))

        assert fit_inside(image, None, None).size == (100, 50)

    def test_binarize_threshold(self) -> None:
        image = Image.new("L", (2, 1))
        image.putdata([127, 128])

        assert list(binarize(image, 128).getdata()) == [0, 255]

    def test_remove_borders(self) -> None:
        image = Image.new("L", (100, 80))

        assert remove_borders(image, 10).size == (80, 60)

    def test_remove_borders_skips_small_images(self) -> None:
        image = Image.new("L", (15, 15))

        assert remove_borders(image, 10).size == (15, 15)

    def test_adaptive_binarize_keeps_dark_mark_on_light_ground(self) -> None:
        image = Image.new("L", (60, 60), 255)
        image.paste(40, (28, 28, 32, 32))

        result = adaptive_binarize(image)

        assert result.getpixel((30, 30)) == 0
        assert result.getpixel((2, 2)) == 255

    def test_adaptive_binarize_flat_image_is_white(self) -> None:
        image = Image.new("L", (40, 40), 90)

        assert set(adaptive_binarize(image).getdata()) == {255}

    def test_adaptive_option_selects_local_threshold(self) -> None:
        image = Image.new("L", (60, 60), 100)
        image.paste(40, (28, 28, 32, 32))
        buf = io.BytesIO()
        image.save(buf, format="PNG")
        options = PreprocessOptions(contrast=False, binarize=True, adaptive=True, threshold=128)

        result = _open(ImagePreprocessor().preprocess(buf.getvalue(), options))

        assert result.getpixel((2, 2)) == 255
        assert result.getpixel((30, 30)) == 0
