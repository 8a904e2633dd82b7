"""
Statement Import Module

Parses credit card statements (CSV exports, AI-extracted PDF invoices),
normalizes them, and reconciles every row against the user's ledger.
"""

from .config import ImportSettings
from .exceptions import (
    EmptyContentError,
    ExtractionError,
    ParserNotFoundError,
    StatementImportError,
)
from .extraction import ClaudeExtractor, DocumentExtractor
from .hashing import content_bytes, content_hash
from .importer import StatementImporter
from .models import (
    ImportRecord,
    ImportResult,
    NormalizedTransaction,
    ParseContext,
    ParseOutput,
    ReconciliationOutcome,
    StoredExpense,
)
from .normalizers import Installment, parse_date, parse_installment, parse_number
from .parsers import (
    BaseStatementParser,
    C6CSVParser,
    ParserRegistry,
    PDFInvoiceParser,
    build_default_registry,
)
from .reconciliation import ExpenseStore, ReconciliationEngine
from .store import SQLExpenseStore

__all__ = [
    # Orchestration
    "StatementImporter",
    "ImportResult",
    "ImportRecord",
    # Models
    "NormalizedTransaction",
    "StoredExpense",
    "ReconciliationOutcome",
    "ParseContext",
    "ParseOutput",
    # Normalization
    "Installment",
    "parse_date",
    "parse_number",
    "parse_installment",
    "content_bytes",
    "content_hash",
    # Parsers
    "BaseStatementParser",
    "C6CSVParser",
    "PDFInvoiceParser",
    "ParserRegistry",
    "build_default_registry",
    # Extraction
    "ClaudeExtractor",
    "DocumentExtractor",
    # Reconciliation
    "ExpenseStore",
    "ReconciliationEngine",
    "SQLExpenseStore",
    # Configuration
    "ImportSettings",
    # Errors
    "StatementImportError",
    "ParserNotFoundError",
    "EmptyContentError",
    "ExtractionError",
]
