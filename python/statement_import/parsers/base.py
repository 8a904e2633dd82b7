"""
Base Statement Parser Module

Abstract base class shared by every statement source (CSV exports,
AI-extracted PDF invoices).
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from ..config import ImportSettings
from ..models import NormalizedTransaction, ParseContext, ParseOutput
from ..normalizers import clean_text, parse_installment


class BaseStatementParser(ABC):
    """Abstract base class for statement parsers.

    Instances are shared through the registry, so parse() must keep all
    per-import state in its ParseOutput.
    """

    BANK_ID: str = "unknown"
    BANK_NAME: str = "Unknown"
    FILE_TYPE: str = "csv"

    def __init__(self, settings: ImportSettings | None = None):
        self.settings = settings or ImportSettings()

    @property
    def bank_id(self) -> str:
        return self.BANK_ID

    @property
    def bank_name(self) -> str:
        return self.BANK_NAME

    @property
    def file_type(self) -> str:
        return self.FILE_TYPE

    @abstractmethod
    async def parse(self, content: bytes | str, context: ParseContext) -> ParseOutput:
        """Parse raw statement content into normalized transactions.

        Args:
            content: Raw file content
            context: Per-call context (user, filename, extractor)

        Returns:
            ParseOutput with transactions in source order
        """

    def parse_billing_month(self, filename: str | None) -> str | None:
        """Derive the billing month (YYYY-MM) from a filename.

        Sources whose billing month comes from the content return None.
        """
        return None

    def _build_transaction(
        self,
        purchase_date: str,
        description: str | None,
        value_local: Decimal,
        is_refund: bool,
        card_holder: str | None = None,
        card_last_four: str | None = None,
        bank_category: str | None = None,
        installment: str | None = None,
        value_foreign: Decimal = Decimal("0"),
        exchange_rate: Decimal = Decimal("0"),
    ) -> NormalizedTransaction:
        """Assemble a NormalizedTransaction with shared text/installment rules."""
        placeholders = self.settings.placeholder_values
        installment_raw = clean_text(installment, placeholders)
        parsed = parse_installment(installment_raw, self.settings.single_installment_markers)

        return NormalizedTransaction(
            purchase_date=purchase_date,
            description=(description or "").strip(),
            value_local=value_local,
            card_holder=clean_text(card_holder, placeholders),
            card_last_four=clean_text(card_last_four, placeholders),
            bank_category=clean_text(bank_category, placeholders),
            installment_raw=installment_raw if parsed else None,
            installment_number=parsed.number if parsed else None,
            installment_total=parsed.total if parsed else None,
            value_foreign=value_foreign,
            exchange_rate=exchange_rate,
            is_refund=is_refund,
        )
