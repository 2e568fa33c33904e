class QueueDeliveryExhausted(Exception):
    """Raised when a queue item has used all of its delivery attempts."""

    def __init__(self, item_id: int, document_id: int, attempts: int, reason: str) -> None:
        super().__init__(
            f"Queue item {item_id} for document {document_id} exhausted "
            f"after {attempts} attempts: {reason}"
        )
        self.item_id = item_id
        self.document_id = document_id
        self.attempts = attempts
