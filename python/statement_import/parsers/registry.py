"""
Parser Registry

Maps source identifiers to parser instances.
"""

import logging

from ..config import ImportSettings
from ..exceptions import ParserNotFoundError
from .base import BaseStatementParser
from .c6 import C6CSVParser
from .pdf_invoice import PDFInvoiceParser

logger = logging.getLogger(__name__)


class ParserRegistry:
    """Lookup table of statement parsers, in registration order."""

    def __init__(self):
        self._parsers: dict[str, BaseStatementParser] = {}

    def register(self, parser: BaseStatementParser) -> None:
        """Register a parser under its bank_id.

        Raises:
            ValueError: If the id is already registered
        """
        if parser.bank_id in self._parsers:
            raise ValueError(f"Parser already registered for source: {parser.bank_id}")
        self._parsers[parser.bank_id] = parser
        logger.debug(f"Registered parser {parser.bank_id} ({parser.file_type})")

    def get_parser(self, source_id: str) -> BaseStatementParser:
        """Return the parser for a source id.

        Raises:
            ParserNotFoundError: If no parser is registered for the id
        """
        try:
            return self._parsers[source_id]
        except KeyError:
            raise ParserNotFoundError(source_id) from None

    def list_supported(self) -> list[dict]:
        """Return id/display_name/file_type for every registered source."""
        return [
            {"id": p.bank_id, "display_name": p.bank_name, "file_type": p.file_type}
            for p in self._parsers.values()
        ]

    def __contains__(self, source_id: str) -> bool:
        return source_id in self._parsers

    def __len__(self) -> int:
        return len(self._parsers)


def build_default_registry(settings: ImportSettings | None = None) -> ParserRegistry:
    """Build the registry of all supported statement sources."""
    settings = settings or ImportSettings.load()

    registry = ParserRegistry()
    registry.register(C6CSVParser(settings))
    registry.register(PDFInvoiceParser("c6_pdf", "Banco C6 (PDF)", settings))
    registry.register(PDFInvoiceParser("nubank_pdf", "Nubank (PDF)", settings))
    return registry
