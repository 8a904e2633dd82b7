"""
Statement Import Errors

Every failure that aborts a whole import derives from StatementImportError.
Row-level problems never raise; they are skipped and reported as warnings.
"""


class StatementImportError(Exception):
    """Base class for import failures."""


class ParserNotFoundError(StatementImportError):
    """Raised when no parser is registered for a source id."""

    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Parser not found for source: {source_id}")


class EmptyContentError(StatementImportError):
    """Raised when the uploaded content has no usable data."""


class ExtractionError(StatementImportError):
    """Raised when the external document extraction fails or returns garbage."""
