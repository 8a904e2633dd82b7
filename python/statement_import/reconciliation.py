"""
Statement Reconciliation Module

Classifies each incoming statement row against the user's ledger as a new
expense, a duplicate of one already stored, or the confirmation of a
projected installment.
"""

import logging
from decimal import Decimal
from typing import Protocol

from .models import (
    PROJECTED_SOURCE,
    ImportRecord,
    NormalizedTransaction,
    ReconciliationOutcome,
    StoredExpense,
)

logger = logging.getLogger(__name__)


class ExpenseStore(Protocol):
    """Read access to stored expenses and import history.

    Implementations must only consider rows of the given user with
    deleted_at unset, and compare card_last_four null-safely.
    """

    def find_stored_by_natural_key(
        self,
        user_id: str,
        purchase_date: str,
        description: str,
        value_local: Decimal,
        card_last_four: str | None,
        exclude_source: str = PROJECTED_SOURCE,
    ) -> StoredExpense | None:
        ...

    def find_projected_by_installment(
        self,
        user_id: str,
        description: str,
        purchase_date: str,
        value_local: Decimal,
        card_last_four: str | None,
        installment_number: int,
        installment_total: int,
    ) -> StoredExpense | None:
        ...

    def find_import_by_hash(self, user_id: str, content_hash: str) -> ImportRecord | None:
        ...


class ReconciliationEngine:
    """Two-phase matcher: projected installments first, then duplicates."""

    def __init__(self, store: ExpenseStore):
        """Initialize the engine.

        Args:
            store: Expense store queried for matches
        """
        self.store = store

    def reconcile(
        self,
        user_id: str,
        rows: list[NormalizedTransaction],
    ) -> list[ReconciliationOutcome]:
        """Classify every row, preserving source order.

        Args:
            user_id: Owner of the ledger to match against
            rows: Normalized statement rows

        Returns:
            One ReconciliationOutcome per row
        """
        outcomes = [self.reconcile_row(user_id, row) for row in rows]

        logger.info(
            f"Reconciled {len(outcomes)} row(s) for user {user_id}: "
            f"{sum(1 for o in outcomes if o.is_new)} new, "
            f"{sum(1 for o in outcomes if o.is_duplicate)} duplicate, "
            f"{sum(1 for o in outcomes if o.is_reconciliation)} reconciled"
        )
        return outcomes

    def reconcile_row(self, user_id: str, row: NormalizedTransaction) -> ReconciliationOutcome:
        """Classify a single row.

        A projected installment match wins over a plain duplicate, so a
        statement confirming a forecast never double-counts the expense.
        """
        if row.has_installment:
            projected = self.store.find_projected_by_installment(
                user_id,
                row.description,
                row.purchase_date,
                row.value_local,
                row.card_last_four,
                row.installment_number,
                row.installment_total,
            )
            if projected:
                logger.debug(
                    f"Row {row.purchase_date} '{row.description}' "
                    f"{row.installment_number}/{row.installment_total} "
                    f"confirms projected expense {projected.id}"
                )
                return ReconciliationOutcome(
                    row=row,
                    is_reconciliation=True,
                    matched_expense_id=projected.id,
                    installment_group_id=projected.installment_group_id,
                )

        existing = self.store.find_stored_by_natural_key(
            user_id,
            row.purchase_date,
            row.description,
            row.value_local,
            row.card_last_four,
            exclude_source=PROJECTED_SOURCE,
        )
        if existing:
            logger.debug(
                f"Row {row.purchase_date} '{row.description}' duplicates expense {existing.id}"
            )
            return ReconciliationOutcome(
                row=row,
                is_duplicate=True,
                matched_expense_id=existing.id,
                installment_group_id=existing.installment_group_id,
            )

        return ReconciliationOutcome(row=row)
