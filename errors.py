class CertificateError(Exception):
    """Base class for failures that abort a whole generation call."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> dict:
        return {"data": None, "error": self.message, "code": self.code}


class ValidationError(CertificateError):
    code = "VALIDATION_ERROR"
    status_code = 400


class BatchLimitExceededError(ValidationError):
    code = "BATCH_LIMIT_EXCEEDED"

    def __init__(self, limit: int, received: int) -> None:
        super().__init__(
            f"Batch limit exceeded: maximum {limit} certificates per request (received {received})",
            {"limit": limit, "received": received},
        )
        self.limit = limit
        self.received = received


class FontResolutionError(CertificateError):
    """Raised inside the font loader when a strategy cannot produce font bytes.

    FontLoader.resolve() catches it and degrades to the fallback font.
    """

    code = "FONT_RESOLUTION_ERROR"

    def __init__(self, family: str, reason: str) -> None:
        super().__init__(f"Font '{family}' could not be loaded: {reason}")
        self.family = family
        self.reason = reason


class PdfGenerationError(CertificateError):
    code = "PDF_GENERATION_ERROR"
    status_code = 500
