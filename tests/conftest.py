"""
Pytest configuration and fixtures for statement import tests.
"""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "python"))

from statement_import.config import ImportSettings  # noqa: E402
from statement_import.models import PROJECTED_SOURCE, ImportRecord, StoredExpense  # noqa: E402

C6_HEADER = (
    "Data de Compra;Nome no Cartão;Final do Cartão;Categoria;Descrição;Parcela;"
    "Valor (em US$);Cotação (em R$);Valor (em R$)"
)


class FakeExpenseStore:
    """In-memory expense store; the first matching row in insertion order wins."""

    def __init__(self, expenses: list[StoredExpense] | None = None):
        self.expenses: list[StoredExpense] = list(expenses or [])
        self.calls: list[tuple] = []
        self.imports: list[ImportRecord] = []

    def add(self, **fields) -> StoredExpense:
        fields.setdefault("id", f"exp-{len(self.expenses) + 1}")
        fields.setdefault("user_id", "user-1")
        fields.setdefault("source", "import")
        expense = StoredExpense(**fields)
        self.expenses.append(expense)
        return expense

    def find_stored_by_natural_key(
        self,
        user_id,
        purchase_date,
        description,
        value_local,
        card_last_four,
        exclude_source=PROJECTED_SOURCE,
    ):
        self.calls.append(("natural_key", user_id, purchase_date, description))
        for e in self.expenses:
            if (
                e.user_id == user_id
                and e.deleted_at is None
                and e.source != exclude_source
                and e.purchase_date == purchase_date
                and e.description == description
                and e.value_local == value_local
                and e.card_last_four == card_last_four
            ):
                return e
        return None

    def find_projected_by_installment(
        self,
        user_id,
        description,
        purchase_date,
        value_local,
        card_last_four,
        installment_number,
        installment_total,
    ):
        self.calls.append(("projected", user_id, purchase_date, description))
        for e in self.expenses:
            if (
                e.user_id == user_id
                and e.deleted_at is None
                and e.source == PROJECTED_SOURCE
                and e.description == description
                and e.purchase_date == purchase_date
                and e.value_local == value_local
                and e.card_last_four == card_last_four
                and e.installment_number == installment_number
                and e.installment_total == installment_total
            ):
                return e
        return None

    def find_import_by_hash(self, user_id, content_hash):
        for record in self.imports:
            if record.user_id == user_id and record.content_hash == content_hash:
                return record
        return None


class FakeExtractor:
    """Document extractor returning a canned payload."""

    def __init__(self, payload=None, error: Exception | None = None):
        self.payload = payload
        self.error = error
        self.calls: list[tuple[bytes, str]] = []

    async def extract(self, document: bytes, instruction: str) -> dict:
        self.calls.append((document, instruction))
        if self.error:
            raise self.error
        return self.payload


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def config_dir() -> Path:
    """Return the config directory path."""
    return PROJECT_ROOT / "config"


@pytest.fixture
def settings(config_dir: Path) -> ImportSettings:
    """Load the import settings shipped with the project."""
    return ImportSettings.load(config_dir)


@pytest.fixture
def fake_store() -> FakeExpenseStore:
    """Return an empty in-memory expense store."""
    return FakeExpenseStore()


@pytest.fixture
def sample_csv_content() -> str:
    """Return a C6 CSV export with three purchases."""
    return "\n".join([
        C6_HEADER,
        "15/01/2026;JOAO;1234;-;MERCADO;03/10;0;0;150,00",
        "16/01/2026;JOAO;1234;Restaurante;PADARIA REAL;Única;0;0;32,90",
        "18/01/2026;MARIA;5678;Serviços;NETFLIX.COM;Única;15,99;5,45;87,15",
    ]) + "\n"


@pytest.fixture
def sample_extraction_payload() -> dict:
    """Return a payload shaped like the PDF extraction response."""
    return {
        "card_holder": "JOAO SILVA",
        "card_last_four": "4321",
        "billing_month": "2026-02",
        "transactions": [
            {
                "purchase_date": "10/01/2026",
                "description": "LOJA ABC",
                "installment": "02/05",
                "value_brl": 200.0,
                "value_usd": 0,
                "exchange_rate": 0,
                "is_refund": False,
                "card_holder": None,
                "card_last_four": None,
                "category": "Vestuário",
            },
            {
                "purchase_date": "12/01/2026",
                "description": "ESTORNO LOJA XYZ",
                "installment": None,
                "value_brl": "45,50",
                "is_refund": True,
                "card_holder": "MARIA SILVA",
                "card_last_four": "8765",
                "category": "-",
            },
        ],
    }


@pytest.fixture
def fake_extractor(sample_extraction_payload) -> FakeExtractor:
    """Return an extractor answering with the sample payload."""
    return FakeExtractor(payload=sample_extraction_payload)


@pytest.fixture
def sql_store(tmp_path):
    """Return a SQLExpenseStore backed by a SQLite file."""
    from sqlalchemy import create_engine, insert
    from sqlalchemy.orm import sessionmaker

    from statement_import.store import SQLExpenseStore, create_schema, expenses_table

    engine = create_engine(f"sqlite:///{tmp_path / 'expenses.db'}")
    create_schema(engine)
    store = SQLExpenseStore(sessionmaker(bind=engine))

    def add(**fields):
        fields.setdefault("user_id", "user-1")
        fields.setdefault("source", "import")
        fields.setdefault("is_refund", False)
        fields.setdefault("created_at", datetime(2026, 1, 1, tzinfo=timezone.utc))
        with engine.begin() as conn:
            conn.execute(insert(expenses_table).values(**fields))

    store.add = add
    store.engine = engine
    yield store
    engine.dispose()


# Environment setup for tests
@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Keep extraction overrides from the developer's shell out of tests."""
    monkeypatch.delenv("STATEMENT_IMPORT_MODEL", raising=False)
    monkeypatch.delenv("STATEMENT_IMPORT_TIMEOUT", raising=False)
    monkeypatch.delenv("STATEMENT_IMPORT_MAX_TOKENS", raising=False)
    if not os.getenv("ANTHROPIC_API_KEY"):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
    yield
