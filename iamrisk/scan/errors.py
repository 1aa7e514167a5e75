"""Errors raised while validating scan requests."""


class ScanRequestError(Exception):
    """
    Raised when a scan request is rejected before any analysis starts.

    Attributes:
        status_code: HTTP status the caller should answer with (400 or 401)
        message: Human-readable reason
    """

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
