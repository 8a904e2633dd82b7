"""
Statement Importer Module

Runs one import end to end: parser lookup, parsing, content hashing,
reconciliation and the check for an earlier import of the same file.
Nothing is written; the caller previews the ImportResult and commits it
through the store when the user confirms.
"""

import logging

from .config import ImportSettings
from .extraction import DocumentExtractor
from .hashing import content_hash
from .models import ImportResult, ParseContext
from .parsers.registry import ParserRegistry, build_default_registry
from .reconciliation import ExpenseStore, ReconciliationEngine

logger = logging.getLogger(__name__)


class StatementImporter:
    """Orchestrates statement imports against an expense store."""

    def __init__(
        self,
        store: ExpenseStore,
        registry: ParserRegistry | None = None,
        extractor: DocumentExtractor | None = None,
        settings: ImportSettings | None = None,
    ):
        """Initialize the importer.

        Args:
            store: Expense store used for match queries
            registry: Parser registry (default sources if omitted)
            extractor: Document extractor for PDF sources
            settings: Import settings used to build the default registry
        """
        self.settings = settings or ImportSettings.load()
        self.registry = registry or build_default_registry(self.settings)
        self.extractor = extractor
        self.store = store
        self.engine = ReconciliationEngine(store)

    def list_sources(self) -> list[dict]:
        """Return the import sources available to users."""
        return self.registry.list_supported()

    async def run_import(
        self,
        source_id: str,
        content: bytes | str,
        user_id: str,
        filename: str | None = None,
    ) -> ImportResult:
        """Parse and classify one statement file.

        Args:
            source_id: Registered source identifier (e.g. "c6")
            content: Raw file content
            user_id: Importing user
            filename: Original filename, used by sources that read the
                billing month from it

        Returns:
            ImportResult with one outcome per parsed row

        Raises:
            ParserNotFoundError: Unknown source id
            EmptyContentError: Empty or unreadable content
            ExtractionError: Document extraction failed
        """
        parser = self.registry.get_parser(source_id)
        digest = content_hash(content)

        logger.info(
            f"Importing {source_id} file {filename or '<unnamed>'} "
            f"for user {user_id} (hash: {digest[:16]})"
        )

        context = ParseContext(user_id=user_id, filename=filename, extractor=self.extractor)
        parsed = await parser.parse(content, context)

        outcomes = self.engine.reconcile(user_id, parsed.transactions)
        previous = self.store.find_import_by_hash(user_id, digest)
        if previous:
            logger.warning(
                f"File {filename or digest[:16]} was already imported as {previous.id}"
            )

        result = ImportResult(
            source_id=source_id,
            content_hash=digest,
            outcomes=outcomes,
            billing_month=parsed.billing_month,
            warnings=parsed.warnings,
            filename=filename,
            previous_import_id=previous.id if previous else None,
        )
        logger.info(f"Import preview for user {user_id}: {result.summary}")
        return result
