"""
Expense Store Module

SQLAlchemy-backed access to the expenses and imports tables: the match
queries used by the reconciliation engine, the commit step that applies an
import, and the import history.
"""

import logging
import os
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    create_engine,
    delete,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .models import (
    IMPORT_SOURCE,
    PROJECTED_SOURCE,
    ImportRecord,
    ImportResult,
    StoredExpense,
)

logger = logging.getLogger(__name__)

# Database URL from environment
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('POSTGRES_USER', 'finance')}:"
    f"{os.getenv('POSTGRES_PASSWORD', 'password')}@"
    f"{os.getenv('POSTGRES_HOST', 'localhost')}:"
    f"{os.getenv('POSTGRES_PORT', '5432')}/"
    f"{os.getenv('POSTGRES_DB', 'finance')}"
)

metadata = MetaData()

expenses_table = Table(
    "expenses",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("purchase_date", String(10), nullable=False),
    Column("description", String(255), nullable=False),
    Column("value_local", Numeric(12, 2), nullable=False),
    Column("card_holder", String(120)),
    Column("card_last_four", String(4)),
    Column("bank_category", String(120)),
    Column("installment", String(16)),
    Column("installment_number", Integer),
    Column("installment_total", Integer),
    Column("value_foreign", Numeric(12, 2), default=0),
    Column("exchange_rate", Numeric(12, 4), default=0),
    Column("is_refund", Boolean, nullable=False, default=False),
    Column("source", String(20), nullable=False),
    Column("installment_group_id", String(36)),
    Column("import_id", String(36)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True)),
    Column("deleted_at", DateTime(timezone=True)),
)

imports_table = Table(
    "imports",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("source_id", String(32), nullable=False),
    Column("filename", String(255)),
    Column("content_hash", String(64), nullable=False, index=True),
    Column("billing_month", String(7)),
    Column("imported_count", Integer, nullable=False, default=0),
    Column("reconciled_count", Integer, nullable=False, default=0),
    Column("skipped_count", Integer, nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

EXPENSE_COLUMNS = """
    id, user_id, purchase_date, description, value_local, card_holder,
    card_last_four, bank_category, installment, installment_number,
    installment_total, value_foreign, exchange_rate, is_refund, source,
    installment_group_id, deleted_at
"""


def create_session_factory(database_url: str | None = None) -> sessionmaker:
    """Create a session factory for the given database URL."""
    engine = create_engine(database_url or DATABASE_URL, pool_pre_ping=True)
    return sessionmaker(autoflush=False, bind=engine)


def create_schema(engine: Engine) -> None:
    """Create the expenses and imports tables if missing (tests and local setups)."""
    metadata.create_all(engine)


class SQLExpenseStore:
    """Expense store over a SQL database.

    When several rows match, the oldest (created_at, then id) wins.
    """

    def __init__(self, session_factory: sessionmaker | None = None):
        """Initialize the store.

        Args:
            session_factory: SQLAlchemy session factory (built from DATABASE_URL if omitted)
        """
        self.session_factory = session_factory or create_session_factory()

    def find_stored_by_natural_key(
        self,
        user_id: str,
        purchase_date: str,
        description: str,
        value_local,
        card_last_four: str | None,
        exclude_source: str = PROJECTED_SOURCE,
    ) -> StoredExpense | None:
        """Find a non-deleted expense with the same natural key."""
        query = f"""
            SELECT {EXPENSE_COLUMNS}
            FROM expenses
            WHERE user_id = :user_id
              AND deleted_at IS NULL
              AND source != :exclude_source
              AND purchase_date = :purchase_date
              AND description = :description
              AND value_local = :value_local
              AND {self._card_clause(card_last_four)}
            ORDER BY created_at ASC, id ASC
            LIMIT 1
        """
        params = {
            "user_id": user_id,
            "exclude_source": exclude_source,
            "purchase_date": purchase_date,
            "description": description,
            "value_local": float(value_local),
            "card_last_four": card_last_four,
        }
        return self._fetch_one(query, params)

    def find_projected_by_installment(
        self,
        user_id: str,
        description: str,
        purchase_date: str,
        value_local,
        card_last_four: str | None,
        installment_number: int,
        installment_total: int,
    ) -> StoredExpense | None:
        """Find a non-deleted projected expense for the same installment."""
        query = f"""
            SELECT {EXPENSE_COLUMNS}
            FROM expenses
            WHERE user_id = :user_id
              AND deleted_at IS NULL
              AND source = :projected
              AND description = :description
              AND purchase_date = :purchase_date
              AND value_local = :value_local
              AND installment_number = :installment_number
              AND installment_total = :installment_total
              AND {self._card_clause(card_last_four)}
            ORDER BY created_at ASC, id ASC
            LIMIT 1
        """
        params = {
            "user_id": user_id,
            "projected": PROJECTED_SOURCE,
            "description": description,
            "purchase_date": purchase_date,
            "value_local": float(value_local),
            "installment_number": installment_number,
            "installment_total": installment_total,
            "card_last_four": card_last_four,
        }
        return self._fetch_one(query, params)

    def apply_import(
        self,
        user_id: str,
        result: ImportResult,
        import_id: str | None = None,
    ) -> dict:
        """Commit a previewed import in a single transaction.

        Duplicates are skipped, reconciliations turn the projected row into
        an imported one, and new rows are inserted (multi-installment rows
        get a fresh installment group). A projected row deleted since the
        preview can no longer be confirmed, so its statement row is inserted
        instead, keeping the projection's installment group. The import is
        recorded in the imports table in the same transaction.

        Args:
            user_id: Owner of the import
            result: ImportResult returned by StatementImporter.run_import
            import_id: Id for the import record (generated if omitted)

        Returns:
            Import id plus counts of imported, reconciled and skipped rows
        """
        import_id = import_id or str(uuid.uuid4())
        counts = {"imported": 0, "reconciled": 0, "skipped": 0}
        now = datetime.now(timezone.utc)

        with self.session_factory() as session, session.begin():
            for outcome in result.outcomes:
                if outcome.is_duplicate:
                    counts["skipped"] += 1
                    continue

                values = self._row_values(outcome.row)
                values.update(source=IMPORT_SOURCE, import_id=import_id)

                if outcome.is_reconciliation:
                    updated = session.execute(
                        update(expenses_table)
                        .where(expenses_table.c.id == outcome.matched_expense_id)
                        .where(expenses_table.c.user_id == user_id)
                        .where(expenses_table.c.deleted_at.is_(None))
                        .values(updated_at=now, **values)
                    )
                    if updated.rowcount:
                        counts["reconciled"] += 1
                        continue
                    logger.warning(
                        f"Projected expense {outcome.matched_expense_id} is gone, "
                        f"inserting '{outcome.row.description}' as a new expense"
                    )
                    group_id = outcome.installment_group_id
                elif outcome.row.installment_total and outcome.row.installment_total > 1:
                    group_id = str(uuid.uuid4())
                else:
                    group_id = None

                session.execute(
                    insert(expenses_table).values(
                        id=str(uuid.uuid4()),
                        user_id=user_id,
                        installment_group_id=group_id,
                        created_at=now,
                        **values,
                    )
                )
                counts["imported"] += 1

            session.execute(
                insert(imports_table).values(
                    id=import_id,
                    user_id=user_id,
                    source_id=result.source_id,
                    filename=result.filename,
                    content_hash=result.content_hash,
                    billing_month=result.billing_month,
                    imported_count=counts["imported"],
                    reconciled_count=counts["reconciled"],
                    skipped_count=counts["skipped"],
                    created_at=now,
                )
            )

        logger.info(
            f"Applied import {import_id} for user {user_id}: "
            f"{counts['imported']} imported, {counts['reconciled']} reconciled, "
            f"{counts['skipped']} skipped"
        )
        return {"import_id": import_id, **counts}

    def find_import_by_hash(self, user_id: str, content_hash: str) -> ImportRecord | None:
        """Return the earliest committed import of a file with this hash."""
        query = (
            select(imports_table)
            .where(imports_table.c.user_id == user_id)
            .where(imports_table.c.content_hash == content_hash)
            .order_by(imports_table.c.created_at.asc(), imports_table.c.id.asc())
            .limit(1)
        )
        with self.session_factory() as session:
            row = session.execute(query).mappings().first()
        return ImportRecord.from_row(row) if row else None

    def list_imports(self, user_id: str) -> list[ImportRecord]:
        """Return the user's import history, newest first."""
        query = (
            select(imports_table)
            .where(imports_table.c.user_id == user_id)
            .order_by(imports_table.c.created_at.desc(), imports_table.c.id.desc())
        )
        with self.session_factory() as session:
            rows = session.execute(query).mappings().all()
        return [ImportRecord.from_row(row) for row in rows]

    def delete_import(self, user_id: str, import_id: str) -> int:
        """Remove an import record and soft-delete the expenses it wrote.

        Returns:
            Number of expenses deleted
        """
        now = datetime.now(timezone.utc)
        with self.session_factory() as session, session.begin():
            deleted = session.execute(
                update(expenses_table)
                .where(expenses_table.c.import_id == import_id)
                .where(expenses_table.c.user_id == user_id)
                .where(expenses_table.c.deleted_at.is_(None))
                .values(deleted_at=now, updated_at=now)
            ).rowcount
            session.execute(
                delete(imports_table)
                .where(imports_table.c.id == import_id)
                .where(imports_table.c.user_id == user_id)
            )

        logger.info(f"Deleted import {import_id} for user {user_id}: {deleted} expense(s) removed")
        return deleted

    def _fetch_one(self, query: str, params: dict) -> StoredExpense | None:
        with self.session_factory() as session:
            row = session.execute(text(query), params).mappings().first()
        return StoredExpense.from_row(row) if row else None

    @staticmethod
    def _card_clause(card_last_four: str | None) -> str:
        if card_last_four is None:
            return "card_last_four IS NULL"
        return "card_last_four = :card_last_four"

    @staticmethod
    def _row_values(row) -> dict:
        return {
            "purchase_date": row.purchase_date,
            "description": row.description,
            "value_local": row.value_local,
            "card_holder": row.card_holder,
            "card_last_four": row.card_last_four,
            "bank_category": row.bank_category,
            "installment": row.installment_raw,
            "installment_number": row.installment_number,
            "installment_total": row.installment_total,
            "value_foreign": row.value_foreign,
            "exchange_rate": row.exchange_rate,
            "is_refund": row.is_refund,
        }
