class RecognitionError(Exception):
    """Raised when the recognition engine fails (engine error, bad language, corrupt image)."""


class UnsupportedLanguageError(RecognitionError):
    """Raised when a language specifier contains a code outside the supported set."""
