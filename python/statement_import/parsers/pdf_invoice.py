"""
PDF Invoice Parser

Parses credit card invoice PDFs by delegating extraction to an AI document
extractor and normalizing the JSON it returns.
"""

import logging
import re
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ValidationError, field_validator

from ..config import ImportSettings
from ..exceptions import EmptyContentError, ExtractionError
from ..hashing import content_bytes
from ..models import ParseContext, ParseOutput
from ..normalizers import clean_text, parse_date, parse_number
from .base import BaseStatementParser

logger = logging.getLogger(__name__)

ISO_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
BILLING_MONTH = re.compile(r'^(\d{4})-(\d{2})$')

EXTRACTION_PROMPT = """Extract every transaction from this credit card invoice (fatura).

For each transaction, identify:
1. purchase_date (DD/MM/YYYY, as printed)
2. description (merchant or label exactly as printed)
3. installment ("NN/MM" when the purchase is paid in installments, otherwise null)
4. value_brl (amount in BRL as a number)
5. value_usd (foreign amount as a number, 0 if none)
6. exchange_rate (conversion rate as a number, 0 if none)
7. is_refund (true for credits, refunds and reversals, otherwise false)
8. card_holder and card_last_four (when the invoice groups rows by card)
9. category (category printed by the bank, or null)

Also extract:
- card_holder: main card holder name
- card_last_four: last 4 digits of the main card
- billing_month: invoice reference month in YYYY-MM format

Output ONLY a valid JSON object with this structure:
{
  "card_holder": "string or null",
  "card_last_four": "1234",
  "billing_month": "YYYY-MM",
  "transactions": [
    {
      "purchase_date": "DD/MM/YYYY",
      "description": "string",
      "installment": "03/10",
      "value_brl": 0.00,
      "value_usd": 0.00,
      "exchange_rate": 0.00,
      "is_refund": false,
      "card_holder": "string or null",
      "card_last_four": "string or null",
      "category": "string or null"
    }
  ]
}

IMPORTANT:
- Output ONLY the JSON, no markdown formatting, no explanation
- Do not include payments of the previous invoice, balances or totals
- Extract ALL transactions visible in the document"""


class ExtractedRow(BaseModel):
    """One transaction as returned by the extractor."""

    purchase_date: str | None = None
    description: str | None = None
    installment: str | None = None
    value_brl: float | str | None = None
    value_usd: float | str | None = None
    exchange_rate: float | str | None = None
    is_refund: bool | None = False
    card_holder: str | None = None
    card_last_four: str | None = None
    category: str | None = None

    @field_validator("installment", "card_last_four", mode="before")
    @classmethod
    def _coerce_to_str(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class ExtractionPayload(BaseModel):
    """Top-level extraction result."""

    transactions: list[ExtractedRow]
    card_holder: str | None = None
    card_last_four: str | None = None
    billing_month: str | None = None

    @field_validator("card_last_four", mode="before")
    @classmethod
    def _coerce_card(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class PDFInvoiceParser(BaseStatementParser):
    """Parser for PDF invoices read through an AI document extractor."""

    FILE_TYPE = "pdf"

    def __init__(
        self,
        bank_id: str,
        bank_name: str,
        settings: ImportSettings | None = None,
        prompt: str | None = None,
    ):
        """Initialize the parser.

        Args:
            bank_id: Source identifier used by the registry
            bank_name: Display name
            settings: Import settings
            prompt: Extraction instruction (defaults to EXTRACTION_PROMPT)
        """
        super().__init__(settings)
        self._bank_id = bank_id
        self._bank_name = bank_name
        self.prompt = prompt or EXTRACTION_PROMPT

    @property
    def bank_id(self) -> str:
        return self._bank_id

    @property
    def bank_name(self) -> str:
        return self._bank_name

    async def parse(self, content: bytes | str, context: ParseContext) -> ParseOutput:
        """Extract and normalize the transactions of one PDF invoice.

        Raises:
            EmptyContentError: If the document is empty
            ExtractionError: If the extractor fails or its payload is malformed
        """
        content = content_bytes(content)
        if not content:
            raise EmptyContentError("PDF document is empty")
        if context.extractor is None:
            raise ExtractionError(f"No document extractor configured for {self.bank_id}")

        try:
            raw = await context.extractor.extract(content, self.prompt)
        except ExtractionError:
            raise
        except Exception as e:
            logger.warning(f"{self.bank_id}: extraction call failed: {e}")
            raise ExtractionError(f"Extraction failed: {e}") from e

        if not raw:
            raise ExtractionError("Extraction returned no payload")

        try:
            payload = ExtractionPayload.model_validate(raw)
        except ValidationError as e:
            raise ExtractionError(f"Extraction payload is missing a transactions array: {e}") from e

        placeholders = self.settings.placeholder_values
        output = ParseOutput(
            billing_month=self._normalize_billing_month(payload.billing_month),
            card_holder=payload.card_holder,
            card_last_four=payload.card_last_four,
        )

        for index, row in enumerate(payload.transactions, start=1):
            purchase_date = self._parse_extracted_date(row.purchase_date)
            if not purchase_date:
                output.warnings.append(
                    f"Transaction {index}: invalid purchase date '{row.purchase_date}'"
                )
                continue

            # Extractors report refunds signed or unsigned; the flag decides the sign
            is_refund = bool(row.is_refund)
            amount = abs(parse_number(row.value_brl))
            value_local = -amount if is_refund else amount

            output.transactions.append(
                self._build_transaction(
                    purchase_date=purchase_date,
                    description=row.description,
                    value_local=value_local,
                    is_refund=is_refund,
                    card_holder=clean_text(row.card_holder, placeholders) or payload.card_holder,
                    card_last_four=(
                        clean_text(row.card_last_four, placeholders) or payload.card_last_four
                    ),
                    bank_category=row.category,
                    installment=row.installment,
                    value_foreign=parse_number(row.value_usd),
                    exchange_rate=parse_number(row.exchange_rate),
                )
            )

        logger.info(
            f"{self.bank_id}: extracted {output.transaction_count} transaction(s), "
            f"billing month {output.billing_month}"
        )
        return output

    def _parse_extracted_date(self, raw: str | None) -> str | None:
        """Accept DD/MM/YYYY or an already-ISO date."""
        if not raw:
            return None
        raw = raw.strip()
        if ISO_DATE.match(raw):
            return parse_date("/".join(reversed(raw.split("-"))))
        return parse_date(raw)

    def _normalize_billing_month(self, raw: str | None) -> str | None:
        if not raw:
            return None
        match = BILLING_MONTH.match(raw.strip())
        if not match or not 1 <= int(match.group(2)) <= 12:
            logger.warning(f"{self.bank_id}: ignoring malformed billing month '{raw}'")
            return None
        return raw.strip()
