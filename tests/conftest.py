import io

import pytest
from PIL import Image, ImageDraw
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas


@pytest.fixture()
def sample_pdf_bytes() -> bytes:
    """Generate a minimal single-page PDF with known text content."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 720, "Hello PDF World")
    c.save()
    return buf.getvalue()


@pytest.fixture()
def three_page_pdf_bytes() -> bytes:
    """Generate a three-page PDF with known text on each page."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    for number in (1, 2, 3):
        c.setFont("Helvetica", 28)
        c.drawString(72, 680, f"Page {number} content")
        c.showPage()
    c.save()
    return buf.getvalue()


@pytest.fixture()
def text_image_bytes() -> bytes:
    """Generate a PNG with dark text on a light, slightly grey background."""
    image = Image.new("RGB", (400, 120), (230, 230, 230))
    draw = ImageDraw.Draw(image)
    draw.text((20, 40), "Invoice 2024 total 42", fill=(20, 20, 20))
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture()
def gradient_image_bytes() -> bytes:
    """Generate a grayscale PNG whose columns run from black to white."""
    image = Image.new("L", (256, 32))
    image.putdata([x for _ in range(32) for x in range(256)])
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture()
def large_image_bytes() -> bytes:
    """Generate a PNG larger than the automatic downsizing limit."""
    image = Image.new("RGB", (4000, 2000), (255, 255, 255))
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()
