from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from dococr.ocr.models import RecognitionOutput


@dataclass(frozen=True)
class RecognitionProgress:
    """Incremental progress reported by the engine during a recognition call."""

    status: str
    progress: float


ProgressSink = Callable[[RecognitionProgress], None]


class BaseRecognizer(ABC):
    """Contract for all recognition engine adapters."""

    @abstractmethod
    def recognize(
        self,
        image_bytes: bytes,
        languages: str,
        on_progress: ProgressSink | None = None,
    ) -> RecognitionOutput:
        """Run the engine on a raster image.

        Args:
            image_bytes: Encoded raster image (PNG after preprocessing).
            languages: Validated language specifier, e.g. ``"eng+fra"``.
            on_progress: Optional sink, invoked synchronously while recognizing.

        Returns:
            RecognitionOutput with the positional table and full text.

        Raises:
            RecognitionError: on any engine failure.
        """
