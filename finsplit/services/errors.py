"""Error taxonomy for the receipt-intake pipeline.

Every error carries a machine-readable code used as the webhook outcome and
in log lines. Terminal errors end the pipeline with exactly one reply.
"""


class IntakeError(Exception):
    """Base intake error."""

    def __init__(self, message: str, code: str):
        """Initialize error."""
        self.message = message
        self.code = code
        super().__init__(message)


class UnknownSender(IntakeError):
    """No account is registered for the sender identity."""

    def __init__(self, sender_identity: str):
        self.sender_identity = sender_identity
        super().__init__(f"No account for sender {sender_identity}", "unknown_sender")


class EntitlementError(IntakeError):
    """Tenant is not entitled to use the channel (only raised when enforcement is on)."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Entitlement check failed: {reason}", f"entitlement_{reason}")


class MediaFetchError(IntakeError):
    """Attached media could not be downloaded or is not a usable image."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Media fetch failed: {reason}", "media_fetch_error")


class ExtractionFailure(IntakeError):
    """An extractor could not produce structured receipt data."""

    def __init__(self, reason: str, quota_exceeded: bool = False):
        self.reason = reason
        self.quota_exceeded = quota_exceeded
        super().__init__(f"Extraction failed: {reason}", "extraction_failure")


class ReceiptValidationError(IntakeError):
    """Extraction is missing fields required to record an expense."""

    def __init__(self, missing_fields: list[str]):
        self.missing_fields = list(missing_fields)
        super().__init__(
            f"Missing required fields: {', '.join(self.missing_fields)}", "validation_error"
        )


class PersistenceError(IntakeError):
    """Database write failed; the transaction has been rolled back."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Persistence failure during {operation}", "persistence_error")


__all__ = [
    "IntakeError",
    "UnknownSender",
    "EntitlementError",
    "MediaFetchError",
    "ExtractionFailure",
    "ReceiptValidationError",
    "PersistenceError",
]
