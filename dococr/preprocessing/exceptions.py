class PreprocessingError(Exception):
    """Base exception for image preprocessing failures."""


class InvalidPreprocessOptionsError(PreprocessingError, ValueError):
    """Raised when a preprocessing option bag contains unknown keys or bad values."""
