"""Shared pytest fixtures for ws-actual tests.

Provides reusable fixtures for:
- Fixture file paths (scraped JSON and CSV export samples).
- sample_config: An AppConfig with exact and regex account mappings.
- ledger_accounts / ledger_payees: A small ledger directory with transfer
  payees for the two mapped cash accounts.
- fake_sink: An in-memory LedgerSink that records every batch it receives.
- tmp_project_dir: A temporary directory with a populated config.toml.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from ws_actual.ledger import LedgerError
from ws_actual.models import AccountMapping, AppConfig

# ---------------------------------------------------------------------------
# Path constants
# ---------------------------------------------------------------------------

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def scraped_sample_json() -> Path:
    """Path to the scraped blocks JSON fixture file."""
    return FIXTURES_DIR / "scraped_sample.json"


@pytest.fixture
def csv_sample() -> Path:
    """Path to the WealthSimple CSV export fixture file."""
    return FIXTURES_DIR / "ws_export_sample.csv"


# ---------------------------------------------------------------------------
# Configuration and ledger data
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_mappings() -> list[AccountMapping]:
    """Mappings for Chequing, Savings and any TFSA account."""
    return [
        AccountMapping(ws_account_name="Chequing", actual_account_id="acct-chq"),
        AccountMapping(ws_account_name="Savings", actual_account_id="acct-sav"),
        AccountMapping(ws_account_name="TFSA.*", actual_account_id="acct-tfsa"),
    ]


@pytest.fixture
def sample_config(sample_mappings) -> AppConfig:
    return AppConfig(
        server_url="http://localhost:5007",
        budget_sync_id="budget-123",
        accounts=sample_mappings,
    )


@pytest.fixture
def ledger_accounts() -> list[dict]:
    return [
        {"id": "acct-chq", "name": "Budget Chequing", "closed": False, "offbudget": False},
        {"id": "acct-sav", "name": "Budget Savings", "closed": False, "offbudget": False},
        {"id": "acct-tfsa", "name": "TFSA", "closed": False, "offbudget": True},
        {"id": "acct-old", "name": "Old Card", "closed": True, "offbudget": False},
        {"id": "acct-visa", "name": "Visa", "closed": False, "offbudget": False},
    ]


@pytest.fixture
def ledger_payees() -> list[dict]:
    return [
        {"id": "payee-chq", "name": "Budget Chequing", "transfer_acct": "acct-chq"},
        {"id": "payee-sav", "name": "Budget Savings", "transfer_acct": "acct-sav"},
        {"id": "payee-coffee", "name": "Coffee Shop", "transfer_acct": None},
    ]


class FakeLedgerSink:
    """In-memory LedgerSink.

    Every record it receives is reported as added unless the account is
    listed in ``fail_accounts`` (the call raises) or ``responses`` holds a
    canned response for it.
    """

    def __init__(
        self,
        accounts: list[dict],
        payees: list[dict],
        balances: dict[str, int] | None = None,
    ) -> None:
        self.accounts = accounts
        self.payees = payees
        self.balances = balances or {}
        self.fail_accounts: set[str] = set()
        self.responses: dict[str, dict] = {}
        self.batches: list[tuple[str, list[dict]]] = []

    def list_accounts(self) -> list[dict]:
        return self.accounts

    def list_payees(self) -> list[dict]:
        return self.payees

    def batch_import(self, account_id: str, records: list[dict]) -> dict:
        self.batches.append((account_id, records))
        if account_id in self.fail_accounts:
            raise LedgerError(f"Ledger returned HTTP 500 for {account_id}")
        if account_id in self.responses:
            return self.responses[account_id]
        return {"added": [r["imported_id"] for r in records], "updated": [], "errors": []}

    def account_balance(self, account_id: str) -> int:
        if account_id not in self.balances:
            raise LedgerError(f"No balance for {account_id}")
        return self.balances[account_id]

    def records_for(self, account_id: str) -> list[dict]:
        return [r for acct, records in self.batches if acct == account_id for r in records]


@pytest.fixture
def fake_sink(ledger_accounts, ledger_payees) -> FakeLedgerSink:
    return FakeLedgerSink(ledger_accounts, ledger_payees)


# ---------------------------------------------------------------------------
# tmp_project_dir -- temp directory with a config.toml
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Create a temporary project directory with a populated config.toml."""
    (tmp_path / "config.toml").write_text(
        """\
[server]
url = "http://localhost:5007"
budget_sync_id = "budget-123"
api_key_env = "TEST_ACTUAL_KEY"

[import]
brand_payee = "WealthSimple"

[[accounts]]
ws_account_name = "Chequing"
actual_account_id = "acct-chq"

[[accounts]]
ws_account_name = "Savings"
actual_account_id = "acct-sav"
""",
        encoding="utf-8",
    )
    return tmp_path
