from dataclasses import dataclass


@dataclass(frozen=True)
class RasterPage:
    """One page rendered to an encoded image, numbered from 1 in extraction order."""

    number: int
    image_bytes: bytes
