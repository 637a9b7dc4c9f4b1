"""
Pytest configuration and shared fixtures for the Budget Office test suite.
"""
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Generator

import pytest

from budgeting.valuation import budget_total
from models.budget import Budget, PublicationLine


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="budget_office_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a test configuration with isolated directories and no Sheets credentials."""
    monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS", raising=False)
    monkeypatch.delenv("GOOGLE_SHEETS_SHEET_ID", raising=False)
    from config import Config

    config = Config()
    config.output_dir = temp_dir / "output"
    config.config_dir = temp_dir / "config"
    config.db_path = config.output_dir / "budgets.db"
    return config


@pytest.fixture
def test_db(test_config) -> "Database":
    """Provide a test database instance."""
    from budgeting.database import Database
    return Database(test_config.db_path)


def line(vendor=None, rate=None, fmt=None, include=False) -> PublicationLine:
    return PublicationLine(
        vendor_name=vendor,
        unit_rate=rate,
        format_multiplier=fmt,
        include_in_total=include,
    )


_sequence = iter(range(1, 1_000_000))


def make_budget(
    client: str = "Acme",
    lines=(),
    design_fee="0",
    total=None,
    approved: bool = False,
    rejected: bool = False,
    publication_date: datetime = datetime(2024, 3, 10, 9, 0),
) -> Budget:
    """Build an in-memory Budget; total_value defaults to the computed total."""
    number = next(_sequence)
    lines = list(lines)
    return Budget(
        id=f"b{number}",
        sequence_number=number,
        client_name=client,
        client_email=f"{client.lower().replace(' ', '.')}@example.com",
        lines=lines,
        design_fee=design_fee,
        total_value=total if total is not None else budget_total(
            [l for l in lines if isinstance(l, PublicationLine)], design_fee
        ),
        publication_date=publication_date,
        approved=approved,
        rejected=rejected,
    )


@pytest.fixture
def budget_factory():
    """Expose make_budget to tests as a fixture."""
    return make_budget


@pytest.fixture
def line_factory():
    return line


@pytest.fixture
def sample_budget_payload() -> dict:
    """JSON body for POST /api/budgets: one included line + design fee = 70.00."""
    return {
        "client_name": "Acme Ltda",
        "client_email": "contato@acme.com.br",
        "lines": [
            {"vendor_name": "Diário X", "unit_rate": "10.00",
             "format_multiplier": "2.0", "include_in_total": True},
        ],
        "design_fee": "50.00",
        "publication_date": "2024-03-10T00:00:00",
        "notes": "Edital de convocação",
    }


@pytest.fixture
def registry_rows() -> list[list[str]]:
    """Rows as returned by the client registry spreadsheet (range A2:G)."""
    return [
        ["91.338.558/0001-37", "Acme Ltda", "Rua A, 100", "Porto Alegre", "90000-000", "RS", "fin@acme.com.br"],
        ["11222333000181", "Zenith SA", "Av. B, 200", "São Paulo", "01000-000", "SP"],
        [],
    ]


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API tests")

