class ProcessorError(Exception):
    """Base exception for all processor-related errors."""


class DocumentNotFoundError(ProcessorError):
    """Raised when a document cannot be found in the database."""


class JobNotFoundError(ProcessorError):
    """Raised when an OCR job cannot be found in the database."""


class ArtifactNotFoundError(ProcessorError):
    """Raised when a document's stored artifact is missing from disk."""


class PersistenceError(ProcessorError):
    """Raised when a state store write fails."""


class JobCancelledError(ProcessorError):
    """Raised between pages when the job has been cancelled."""


class LeaseNotAcquiredError(ProcessorError):
    """Raised when another worker holds the document lease."""


class InvalidJobTransitionError(ProcessorError):
    """Raised when a cancel or retry request does not apply to the job's status."""
