class RasterizationError(Exception):
    """Raised when a PDF cannot be rendered to page images."""
