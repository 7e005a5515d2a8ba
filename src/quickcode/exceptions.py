"""Custom exceptions for QuickCode."""


class QuickCodeError(Exception):
    """Base exception for all QuickCode errors."""

    pass


class ConfigurationError(QuickCodeError):
    """Raised when configuration is invalid or missing."""

    pass


class ValidationError(QuickCodeError):
    """Raised when a request is malformed. Carries every violation found."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid request")


class NotFoundError(QuickCodeError):
    """Base class for lookups that came back empty."""

    pass


class MissingColumnError(NotFoundError):
    """Raised when the live header row lacks a column the operation needs."""

    pass


class RecordNotFoundError(NotFoundError):
    """Raised when no ledger row carries the requested identifier."""

    def __init__(self, record_id: str, message: str | None = None):
        self.record_id = record_id
        super().__init__(message or f"Record ID {record_id} not found")


class ConservationError(QuickCodeError):
    """Raised when split lines add up to more than the parent amount."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class AuthenticationError(QuickCodeError):
    """Raised when an identity token is missing, invalid or expired."""

    pass


class DomainNotAllowedError(AuthenticationError):
    """Raised when a verified e-mail is outside the allowed domain."""

    pass


class UpstreamError(QuickCodeError):
    """Base class for failures of external collaborators."""

    pass


class SheetsAPIError(UpstreamError):
    """Raised when a Google Sheets API request fails."""

    pass


class PartialCommitError(UpstreamError):
    """Raised when child rows were appended but the parent could not be marked.

    The ledger is left with both the children and an unchanged parent; nothing
    is rolled back.
    """

    def __init__(self, parent_id: str, appended: int, message: str | None = None):
        self.parent_id = parent_id
        self.appended = appended
        super().__init__(
            message
            or f"Appended {appended} child row(s) but failed to mark parent "
            f"{parent_id} as Split; the ledger needs manual repair"
        )
