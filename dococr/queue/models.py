from dataclasses import dataclass, field
from typing import Any

DEFAULT_LANGUAGES = "eng"
DEFAULT_MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class QueueItem:
    """Work item a producer hands to the queue."""

    document_id: int
    artifact_ref: str
    languages: str = DEFAULT_LANGUAGES
    preprocess_options: dict[str, Any] = field(default_factory=dict)
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
