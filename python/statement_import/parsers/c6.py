"""
C6 CSV Parser

Parses Banco C6 credit card invoice CSV exports.

Layout (semicolon-delimited, header on the first line):
Data de Compra;Nome no Cartão;Final do Cartão;Categoria;Descrição;Parcela;
Valor (em US$);Cotação (em R$);Valor (em R$)
"""

import csv
import logging
import re
from io import StringIO
from pathlib import PurePath

from ..exceptions import EmptyContentError
from ..models import ParseContext, ParseOutput
from ..normalizers import parse_date, parse_number
from .base import BaseStatementParser

logger = logging.getLogger(__name__)


class C6CSVParser(BaseStatementParser):
    """Parser for C6 invoice CSV exports."""

    BANK_ID = "c6"
    BANK_NAME = "Banco C6"
    FILE_TYPE = "csv"

    # Column positions
    COL_PURCHASE_DATE = 0
    COL_CARD_HOLDER = 1
    COL_CARD_LAST_FOUR = 2
    COL_CATEGORY = 3
    COL_DESCRIPTION = 4
    COL_INSTALLMENT = 5
    COL_VALUE_FOREIGN = 6
    COL_EXCHANGE_RATE = 7
    COL_VALUE_LOCAL = 8
    COLUMN_COUNT = 9

    # Billing month patterns tried against the filename, in order
    BILLING_MONTH_PATTERNS = [
        (re.compile(r'(\d{4})[-_](\d{2})(?!\d)'), "year_first"),
        (re.compile(r'(?<!\d)(\d{2})[-_](\d{4})'), "month_first"),
    ]

    async def parse(self, content: bytes | str, context: ParseContext) -> ParseOutput:
        """Parse a C6 CSV export."""
        text = self._preprocess_content(self._decode(content))
        delimiter = self.settings.csv_delimiter
        min_columns = self.settings.csv_min_columns

        reader = csv.reader(StringIO(text), delimiter=delimiter)
        # Keep the physical line number of each non-blank record
        records = [
            (reader.line_num, columns)
            for columns in reader
            if any(column.strip() for column in columns)
        ]

        if len(records) < 2:
            raise EmptyContentError("CSV file is empty or has no data rows")

        output = ParseOutput(billing_month=self.parse_billing_month(context.filename))

        # First record is the header
        for line_num, columns in records[1:]:
            if len(columns) < min_columns:
                output.warnings.append(
                    f"Line {line_num}: expected {min_columns} columns, got {len(columns)}"
                )
                continue
            if len(columns) > self.COLUMN_COUNT:
                # An unquoted delimiter inside a field shifts every column after it
                output.warnings.append(
                    f"Line {line_num}: expected {self.COLUMN_COUNT} columns, got {len(columns)}"
                )
                continue
            columns += [""] * (self.COLUMN_COUNT - len(columns))

            purchase_date = parse_date(columns[self.COL_PURCHASE_DATE])
            if not purchase_date:
                output.warnings.append(
                    f"Line {line_num}: invalid purchase date "
                    f"'{columns[self.COL_PURCHASE_DATE].strip()}'"
                )
                continue

            value_local = parse_number(columns[self.COL_VALUE_LOCAL])

            output.transactions.append(
                self._build_transaction(
                    purchase_date=purchase_date,
                    description=columns[self.COL_DESCRIPTION],
                    value_local=value_local,
                    is_refund=value_local < 0,
                    card_holder=columns[self.COL_CARD_HOLDER],
                    card_last_four=columns[self.COL_CARD_LAST_FOUR],
                    bank_category=columns[self.COL_CATEGORY],
                    installment=columns[self.COL_INSTALLMENT],
                    value_foreign=parse_number(columns[self.COL_VALUE_FOREIGN]),
                    exchange_rate=parse_number(columns[self.COL_EXCHANGE_RATE]),
                )
            )

        if output.warnings:
            logger.warning(
                f"C6 CSV: skipped {len(output.warnings)} malformed line(s) "
                f"for user {context.user_id}"
            )
        logger.info(
            f"C6 CSV: parsed {output.transaction_count} transaction(s), "
            f"billing month {output.billing_month}"
        )
        return output

    def parse_billing_month(self, filename: str | None) -> str | None:
        """Derive YYYY-MM from names like "Fatura_2026-02-10.csv" or "fatura-02-2026.csv"."""
        if not filename:
            return None

        name = PurePath(filename).name
        for pattern, order in self.BILLING_MONTH_PATTERNS:
            match = pattern.search(name)
            if not match:
                continue
            if order == "year_first":
                year, month = match.group(1), match.group(2)
            else:
                month, year = match.group(1), match.group(2)
            if 1 <= int(month) <= 12:
                return f"{year}-{month}"

        return None

    def _decode(self, content: bytes | str) -> str:
        """Decode raw bytes, accepting UTF-8 (with or without BOM) or Latin-1."""
        if isinstance(content, str):
            return content
        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError:
            return content.decode("latin-1")

    def _preprocess_content(self, content: str) -> str:
        """Strip BOM and normalize line endings."""
        if content.startswith('\ufeff'):
            content = content[1:]
        return content.replace('\r\n', '\n').replace('\r', '\n')
