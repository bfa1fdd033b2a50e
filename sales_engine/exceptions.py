"""
Custom exception hierarchy for the sales reporting engine.

Exception Hierarchy:
    SalesEngineError (base)
    └── ExportError            - Export requested in an unknown format/kind

    ValidationError            - Caller-supplied parameter failed validation

Malformed upstream records (orders, products, attendance) never raise;
they are skipped and surfaced through diagnostics instead.
"""


class SalesEngineError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ExportError(SalesEngineError):
    """
    Export could not be produced.

    Raised for unknown report kinds or formats, never for empty data.
    """

    def __init__(self, message: str, details: str = None, fmt: str = None):
        super().__init__(message, details)
        self.fmt = fmt


class ValidationError(Exception):
    """
    Input validation failed.

    Used for validating request parameters before processing.
    """

    def __init__(self, field: str, message: str, value: any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"
