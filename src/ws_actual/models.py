"""Core data models for ws-actual.

This module defines all dataclasses and utility functions used throughout the
import pipeline. It has zero internal imports -- everything depends on it, but
it depends on nothing within the package.
"""

from __future__ import annotations

import hashlib
import json
import math
from dataclasses import dataclass, field
from decimal import Decimal


def generate_imported_id(txn: CanonicalTransaction) -> str:
    """Generate the deterministic ``imported_id`` used for deduplication.

    The ID is ``"ws_"`` followed by the first 16 hex characters of a SHA-256
    hash over a compact JSON object with the keys ``account``, ``amount``,
    ``date``, ``notes`` and ``payee``, in that order.

    The key order is pinned with ``sort_keys`` (the five keys happen to be
    alphabetical) so the serialized text, and therefore the hash, is stable
    across runs and interpreter versions.  Re-importing the same
    transaction therefore yields the same ID, which the ledger uses to
    skip duplicates.

    Args:
        txn: A canonical transaction.

    Returns:
        A 19-character string such as ``"ws_0123456789abcdef"``.
    """
    payload = {
        "account": txn.account,
        "amount": txn.amount,
        "date": txn.date,
        "notes": txn.notes,
        "payee": txn.payee,
    }
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return "ws_" + hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


@dataclass
class RawField:
    """One label/value row scraped from a transaction details panel."""

    name: str
    value: str | None = None


@dataclass
class ScrapedBlock:
    """Everything the scraper extracted for one transaction block.

    Attributes:
        fields: Label/value rows in DOM order.
        description: Full text of the transaction summary button.
        subheading: Emphasized text from the summary, usually the
            transaction type (e.g. "Interac e-Transfer").
    """

    fields: list[RawField] = field(default_factory=list)
    description: str | None = None
    subheading: str | None = None


@dataclass
class RawTransaction:
    """A transaction as read from the brokerage, before normalization.

    Every attribute is optional because the source pages show a different
    set of rows per transaction kind.  Dates are ``YYYY-MM-DD`` strings.
    ``amount`` is a signed :class:`~decimal.Decimal` once it has been
    through the field parser.

    Attributes:
        account: Account the block was rendered under.
        from_account: Source account of a transfer ("From" row).
        to_account: Destination account of a transfer ("To" row).
        status: e.g. "Completed", "Pending".
        transaction_type: e.g. "Deposit", "Market buy".
        email: Counterparty e-mail for e-transfers.
        message: Free-text message attached to a transfer.
        entered_quantity: Order quantity as entered.
        filled_quantity: Order quantity as filled, e.g. "10 shares".
        account_number: Masked account number.
        transaction_id: Brokerage reference ID.
        date: Transaction date.
        submitted: Order submission date.
        filled: Order fill date.
        amount: Signed amount in major currency units.
        amount_currency: 3-letter currency code of ``amount``.
        original_amount: Amount in the original currency (FX purchases).
        original_currency: Currency of ``original_amount``.
        exchange_rate: FX rate applied.
        spend_rewards: Cash-back rewards amount.
        spend_rewards_currency: Currency of ``spend_rewards``.
        description: Summary text of the transaction.
        subheading: Emphasized summary text.
    """

    account: str | None = None
    from_account: str | None = None
    to_account: str | None = None
    status: str | None = None
    transaction_type: str | None = None
    email: str | None = None
    message: str | None = None
    entered_quantity: str | None = None
    filled_quantity: str | None = None
    account_number: str | None = None
    transaction_id: str | None = None
    date: str | None = None
    submitted: str | None = None
    filled: str | None = None
    amount: Decimal | str | None = None
    amount_currency: str | None = None
    original_amount: Decimal | None = None
    original_currency: str | None = None
    exchange_rate: Decimal | None = None
    spend_rewards: Decimal | None = None
    spend_rewards_currency: str | None = None
    description: str | None = None
    subheading: str | None = None


@dataclass(frozen=True)
class CanonicalTransaction:
    """A ledger-ready transaction.

    ``amount`` is an integer number of cents, negative for debits.  It is
    ``math.nan`` when the source had no usable amount; such records are
    dropped by the batch transformer.

    ``is_transfer`` and ``transfer_to_account`` are internal metadata for
    the importer and are not part of :meth:`public_dict`.
    """

    date: str | None
    account: str | None
    payee: str
    notes: str
    amount: int | float
    is_transfer: bool = False
    transfer_to_account: str | None = None

    def public_dict(self) -> dict:
        """Return the five externally visible fields."""
        return {
            "Date": self.date,
            "Account": self.account,
            "Payee": self.payee,
            "Notes": self.notes,
            "Amount": self.amount,
        }

    @property
    def has_finite_amount(self) -> bool:
        return isinstance(self.amount, (int, float)) and math.isfinite(self.amount)


@dataclass
class ImportRecord:
    """A transaction in the ledger's batch-import wire shape."""

    date: str | None
    amount: int
    imported_id: str
    cleared: bool = False
    account: str | None = None
    payee: str | None = None
    payee_name: str | None = None
    notes: str | None = None
    category: str | None = None

    def to_dict(self) -> dict:
        """Serialize, leaving out optional keys that are unset."""
        data: dict = {
            "date": self.date,
            "amount": self.amount,
            "imported_id": self.imported_id,
            "cleared": self.cleared,
        }
        for key in ("account", "payee", "payee_name", "notes", "category"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class StageResult:
    """Return type for every pipeline stage function.

    Each stage processes what it can and reports what it could not. The
    pipeline accumulates warnings and errors across all stages for the
    final summary.

    Attributes:
        items: The records produced by this stage (raw or canonical
            transactions, depending on the stage).
        warnings: Non-fatal issues encountered during processing, such
            as unparseable dates or dropped records.
        errors: Fatal issues for individual files, such as unreadable
            files or format mismatches. The stage still returns whatever
            it could process successfully.
    """

    items: list = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class ImportFailure:
    """A record the ledger did not accept."""

    transaction: CanonicalTransaction
    error: str


@dataclass
class ImportResult:
    """Tallies from one run of the importer.

    Attributes:
        imported: Records newly added by the ledger.
        updated: Records the ledger matched and updated.
        duplicates: Records the ledger already had and left untouched.
        failed: Records rejected by the ledger or lost to a failed
            batch call.
        warnings: Degradations such as transfers posted as ordinary
            transactions.
    """

    imported: int = 0
    updated: int = 0
    duplicates: int = 0
    failed: list[ImportFailure] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class AccountMapping:
    """Maps a brokerage account name pattern to a ledger account ID.

    Attributes:
        ws_account_name: Plain name (exact, case-insensitive) or regular
            expression (anchored, case-insensitive) when it contains regex
            metacharacters.
        actual_account_id: Ledger account ID.
    """

    ws_account_name: str
    actual_account_id: str


@dataclass
class AppConfig:
    """Top-level application configuration loaded from config.toml.

    Attributes:
        server_url: Base URL of the ledger HTTP API.
        budget_sync_id: Sync ID of the budget to import into.
        api_key_env: Name of the environment variable containing the
            ledger API key.
        brand_payee: Payee used for small recurring platform credits
            (referrals, interest, bonuses, cash back, reimbursements).
        accounts: Account mappings in declaration order.
    """

    server_url: str | None = None
    budget_sync_id: str | None = None
    api_key_env: str = "ACTUAL_API_KEY"
    brand_payee: str = "WealthSimple"
    accounts: list[AccountMapping] = field(default_factory=list)


@dataclass
class Statistics:
    """Aggregate figures for a batch of canonical transactions.

    Attributes:
        total: Number of transactions.
        by_type: Count per first word of the notes (a rough transaction
            type, since notes start with the type or subheading).
        by_account: Count per account name.
        total_credits: Sum of positive amounts, in dollars.
        total_debits: Sum of the absolute negative amounts, in dollars.
        net_amount: ``total_credits - total_debits``.
        date_start: Earliest date, ``YYYY-MM-DD``.
        date_end: Latest date, ``YYYY-MM-DD``.
    """

    total: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    by_account: dict[str, int] = field(default_factory=dict)
    total_credits: float = 0.0
    total_debits: float = 0.0
    net_amount: float = 0.0
    date_start: str | None = None
    date_end: str | None = None


@dataclass
class PipelineResult:
    """Final output of :func:`ws_actual.pipeline.run`."""

    transactions: list[CanonicalTransaction] = field(default_factory=list)
    statistics: Statistics | None = None
    import_result: ImportResult | None = None
    skipped_accounts: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
