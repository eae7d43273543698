"""Exception hierarchy for procmon."""


class ProcmonError(Exception):
    """Base class for all procmon errors."""


class StorageUnavailable(ProcmonError):
    """The history store cannot be opened, created or written."""


class QueryError(ProcmonError):
    """A history query failed or returned rows that cannot be decoded."""


class EmptyInputError(ProcmonError):
    """Statistics were requested for an empty record set."""


class InvalidTimestampError(ProcmonError, ValueError):
    """A time filter is not a valid ISO-8601 date-time."""

    def __init__(self, text: str) -> None:
        super().__init__(
            f"Invalid timestamp format: '{text}'. "
            "Expected ISO 8601 (e.g., 2026-01-05T14:00:00+09:00)"
        )
        self.text = text


class ReportError(ProcmonError):
    """User-facing failure of the analysis report."""
