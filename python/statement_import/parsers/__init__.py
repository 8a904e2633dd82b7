"""
Statement parsers, one per import source.
"""

from .base import BaseStatementParser
from .c6 import C6CSVParser
from .pdf_invoice import EXTRACTION_PROMPT, ExtractionPayload, PDFInvoiceParser
from .registry import ParserRegistry, build_default_registry

__all__ = [
    "BaseStatementParser",
    "C6CSVParser",
    "PDFInvoiceParser",
    "ExtractionPayload",
    "EXTRACTION_PROMPT",
    "ParserRegistry",
    "build_default_registry",
]
