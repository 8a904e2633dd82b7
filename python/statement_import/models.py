"""
Statement Import Data Models

Canonical transaction shape produced by every parser, the stored expense
shape read back from the ledger, and the per-row reconciliation outcome.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from .extraction import DocumentExtractor

PROJECTED_SOURCE = "projected"
IMPORT_SOURCE = "import"


@dataclass
class NormalizedTransaction:
    """A statement row in canonical form."""

    purchase_date: str  # YYYY-MM-DD
    description: str
    value_local: Decimal
    card_holder: str | None = None
    card_last_four: str | None = None
    bank_category: str | None = None
    installment_raw: str | None = None
    installment_number: int | None = None
    installment_total: int | None = None
    value_foreign: Decimal = Decimal("0")
    exchange_rate: Decimal = Decimal("0")
    is_refund: bool = False

    def __post_init__(self):
        if (self.installment_number is None) != (self.installment_total is None):
            raise ValueError("installment_number and installment_total must be set together")
        if self.installment_number is not None and not (
            1 <= self.installment_number <= self.installment_total
        ):
            raise ValueError(
                f"Invalid installment {self.installment_number}/{self.installment_total}"
            )

    @property
    def has_installment(self) -> bool:
        return self.installment_number is not None

    @property
    def natural_key(self) -> tuple[str, str, Decimal, str | None]:
        """(purchase_date, description, value_local, card_last_four)."""
        return (self.purchase_date, self.description, self.value_local, self.card_last_four)

    def to_dict(self) -> dict:
        return {
            "purchase_date": self.purchase_date,
            "card_holder": self.card_holder,
            "card_last_four": self.card_last_four,
            "bank_category": self.bank_category,
            "description": self.description,
            "installment": self.installment_raw,
            "installment_number": self.installment_number,
            "installment_total": self.installment_total,
            "value_foreign": float(self.value_foreign),
            "exchange_rate": float(self.exchange_rate),
            "value_local": float(self.value_local),
            "is_refund": self.is_refund,
        }


@dataclass
class StoredExpense:
    """An expense row already present in the user's ledger."""

    id: str
    user_id: str
    purchase_date: str
    description: str
    value_local: Decimal
    source: str
    card_holder: str | None = None
    card_last_four: str | None = None
    bank_category: str | None = None
    installment_raw: str | None = None
    installment_number: int | None = None
    installment_total: int | None = None
    value_foreign: Decimal = Decimal("0")
    exchange_rate: Decimal = Decimal("0")
    is_refund: bool = False
    installment_group_id: str | None = None
    deleted_at: datetime | None = None

    @property
    def is_projected(self) -> bool:
        return self.source == PROJECTED_SOURCE

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "StoredExpense":
        """Build from a database row mapping."""
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            purchase_date=str(row["purchase_date"]),
            description=row["description"],
            value_local=Decimal(str(row["value_local"])),
            source=row["source"],
            card_holder=row.get("card_holder"),
            card_last_four=row.get("card_last_four"),
            bank_category=row.get("bank_category"),
            installment_raw=row.get("installment"),
            installment_number=row.get("installment_number"),
            installment_total=row.get("installment_total"),
            value_foreign=Decimal(str(row.get("value_foreign") or 0)),
            exchange_rate=Decimal(str(row.get("exchange_rate") or 0)),
            is_refund=bool(row.get("is_refund")),
            installment_group_id=row.get("installment_group_id"),
            deleted_at=row.get("deleted_at"),
        )


@dataclass
class ParseContext:
    """Per-call inputs handed to a parser."""

    user_id: str
    filename: str | None = None
    extractor: "DocumentExtractor | None" = None


@dataclass
class ParseOutput:
    """Everything a single parse call produced.

    Billing month and document metadata live here rather than on the
    parser, since parser instances are shared between imports.
    """

    transactions: list[NormalizedTransaction] = field(default_factory=list)
    billing_month: str | None = None  # YYYY-MM
    card_holder: str | None = None
    card_last_four: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)


@dataclass
class ReconciliationOutcome:
    """Classification of one incoming row against the ledger."""

    row: NormalizedTransaction
    is_duplicate: bool = False
    is_reconciliation: bool = False
    matched_expense_id: str | None = None
    installment_group_id: str | None = None

    def __post_init__(self):
        if self.is_duplicate and self.is_reconciliation:
            raise ValueError("A row cannot be both a duplicate and a reconciliation")

    @property
    def is_new(self) -> bool:
        return not (self.is_duplicate or self.is_reconciliation)

    @property
    def status(self) -> str:
        if self.is_reconciliation:
            return "reconciliation"
        if self.is_duplicate:
            return "duplicate"
        return "new"

    def to_dict(self) -> dict:
        return {
            "row": self.row.to_dict(),
            "status": self.status,
            "is_duplicate": self.is_duplicate,
            "is_reconciliation": self.is_reconciliation,
            "matched_expense_id": self.matched_expense_id,
            "installment_group_id": self.installment_group_id,
        }


@dataclass
class ImportResult:
    """Preview of one import: per-row outcomes plus file-level metadata."""

    source_id: str
    content_hash: str
    outcomes: list[ReconciliationOutcome] = field(default_factory=list)
    billing_month: str | None = None
    warnings: list[str] = field(default_factory=list)
    filename: str | None = None
    # Earlier committed import of the same file, if any
    previous_import_id: str | None = None

    @property
    def new_count(self) -> int:
        return sum(1 for o in self.outcomes if o.is_new)

    @property
    def duplicate_count(self) -> int:
        return sum(1 for o in self.outcomes if o.is_duplicate)

    @property
    def reconciled_count(self) -> int:
        return sum(1 for o in self.outcomes if o.is_reconciliation)

    @property
    def summary(self) -> dict:
        return {
            "total_rows": len(self.outcomes),
            "new": self.new_count,
            "duplicates": self.duplicate_count,
            "reconciled": self.reconciled_count,
            "total_value": float(sum(o.row.value_local for o in self.outcomes if o.is_new)),
        }

    def to_dict(self) -> dict:
        return {
            "source_id": self.source_id,
            "content_hash": self.content_hash,
            "filename": self.filename,
            "previous_import_id": self.previous_import_id,
            "billing_month": self.billing_month,
            "summary": self.summary,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "warnings": self.warnings,
        }


@dataclass
class ImportRecord:
    """A committed import, kept as import history."""

    id: str
    user_id: str
    source_id: str
    content_hash: str
    filename: str | None = None
    billing_month: str | None = None
    imported_count: int = 0
    reconciled_count: int = 0
    skipped_count: int = 0
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ImportRecord":
        """Build from a database row mapping."""
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            source_id=row["source_id"],
            content_hash=row["content_hash"],
            filename=row.get("filename"),
            billing_month=row.get("billing_month"),
            imported_count=row.get("imported_count") or 0,
            reconciled_count=row.get("reconciled_count") or 0,
            skipped_count=row.get("skipped_count") or 0,
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "filename": self.filename,
            "content_hash": self.content_hash,
            "billing_month": self.billing_month,
            "imported_count": self.imported_count,
            "reconciled_count": self.reconciled_count,
            "skipped_count": self.skipped_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
