"""Reconciliation of canonical transactions against the ledger.

Converts :class:`~ws_actual.models.CanonicalTransaction` objects into the
ledger's wire shape, pairs transfer legs, and submits one batch per ledger
account.  Deduplication is left to the ledger: every record carries a
content-hash ``imported_id`` (see
:func:`~ws_actual.models.generate_imported_id`), so re-running an import is
idempotent.

Transfers between two mapped accounts are posted twice:

- the primary leg in the source account, with the destination account's
  transfer payee;
- a mirrored leg in the destination account, with the opposite amount,
  ``imported_id + "_mirror"`` and the source account's transfer payee.

When either transfer payee is missing from the ledger the transaction is
posted as an ordinary one (``payee_name``) instead, with a warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal

from ws_actual.accounts import AccountResolver
from ws_actual.ledger import LedgerError, LedgerSink
from ws_actual.models import (
    CanonicalTransaction,
    ImportFailure,
    ImportRecord,
    ImportResult,
    StageResult,
    generate_imported_id,
)
from ws_actual.transformer import DEFAULT_BRAND_PAYEE, to_cents

logger = logging.getLogger(__name__)

MIRROR_SUFFIX = "_mirror"


@dataclass
class LedgerDirectory:
    """Snapshot of the ledger's accounts and payees.

    Accounts are looked up by name or ID.  Transfer payees (payees with a
    ``transfer_acct``) are looked up by the ID or the name of the account
    they transfer to.
    """

    accounts: list[dict] = field(default_factory=list)
    payees: list[dict] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._accounts: dict[str, dict] = {}
        for account in self.accounts:
            self._accounts[account["name"]] = account
            self._accounts[account["id"]] = account

        self._transfer_payees: dict[str, dict] = {}
        for payee in self.payees:
            target = payee.get("transfer_acct")
            if not target:
                continue
            self._transfer_payees[target] = payee
            account = self.find_account(target)
            if account is not None:
                self._transfer_payees[account["name"]] = payee

    @classmethod
    def load(cls, sink: LedgerSink) -> LedgerDirectory:
        """Fetch accounts and payees from *sink*."""
        return cls(accounts=sink.list_accounts(), payees=sink.list_payees())

    def find_account(self, name_or_id: str | None) -> dict | None:
        if not name_or_id:
            return None
        return self._accounts.get(name_or_id)

    def transfer_payee(self, account_name_or_id: str | None) -> dict | None:
        if not account_name_or_id:
            return None
        return self._transfer_payees.get(account_name_or_id)


@dataclass
class _Entry:
    transaction: CanonicalTransaction
    record: ImportRecord


def convert_to_import_record(
    txn: CanonicalTransaction,
    account_id: str | None,
    transfer_payee: dict | None = None,
) -> ImportRecord:
    """Convert a canonical transaction to the ledger's import shape.

    With a *transfer_payee* the record is posted against that payee;
    otherwise the payee is sent by name for the ledger to match or create.
    """
    record = ImportRecord(
        date=txn.date,
        amount=int(txn.amount),
        imported_id=generate_imported_id(txn),
        cleared=False,
        account=account_id,
        notes=txn.notes or "",
    )
    if transfer_payee is not None:
        record.payee = transfer_payee["id"]
    elif txn.payee:
        record.payee_name = txn.payee
    return record


def mirror_record(
    primary: ImportRecord,
    account_id: str,
    source_payee: dict,
) -> ImportRecord:
    """Build the destination-account leg of a transfer."""
    return ImportRecord(
        date=primary.date,
        amount=-primary.amount,
        imported_id=primary.imported_id + MIRROR_SUFFIX,
        cleared=False,
        account=account_id,
        payee=source_payee["id"],
        notes=primary.notes,
    )


def import_transactions(
    transactions: list[CanonicalTransaction],
    resolver: AccountResolver,
    directory: LedgerDirectory,
    sink: LedgerSink,
) -> ImportResult:
    """Submit *transactions* to the ledger, one batch per account.

    Accounts are processed one after another.  A batch call that fails
    marks only that account's records as failed; the remaining accounts
    are still imported.

    Args:
        transactions: Valid canonical transactions.
        resolver: Maps brokerage account names to ledger account IDs.
        directory: The ledger's accounts and payees.
        sink: Where the batches go.

    Returns:
        An :class:`ImportResult` with tallies across all accounts.
    """
    result = ImportResult()
    batches: dict[str, list[_Entry]] = {}

    for txn in transactions:
        account_id = _account_id(txn.account, resolver, directory)
        if account_id is None:
            result.failed.append(ImportFailure(txn, f"Account not found: {txn.account}"))
            continue

        for entry_account, entry in _plan(txn, account_id, resolver, directory, result):
            batches.setdefault(entry_account, []).append(entry)

    for account_id, entries in batches.items():
        account = directory.find_account(account_id)
        label = account["name"] if account is not None else account_id
        logger.info("Importing %d transaction(s) into %s", len(entries), label)

        try:
            response = sink.batch_import(account_id, [e.record.to_dict() for e in entries])
        except Exception as exc:
            logger.warning("Batch import failed for %s: %s", label, exc)
            result.failed.extend(
                ImportFailure(e.transaction, f"Batch import failed for account: {exc}")
                for e in entries
            )
            continue

        added = response.get("added") or []
        updated = response.get("updated") or []
        errors = response.get("errors") or []

        result.imported += len(added)
        result.updated += len(updated)
        for index, error in enumerate(errors):
            txn = entries[min(index, len(entries) - 1)].transaction
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            result.failed.append(ImportFailure(txn, message))
        result.duplicates += max(0, len(entries) - len(added) - len(updated) - len(errors))

    return result


def build_balance_adjustments(
    balances: dict[str, Decimal | float | str],
    resolver: AccountResolver,
    sink: LedgerSink,
    today: date | None = None,
    brand_payee: str = DEFAULT_BRAND_PAYEE,
) -> StageResult:
    """Create transactions that bring ledger balances in line with the brokerage.

    Args:
        balances: Brokerage account name -> current balance in dollars.
        resolver: Maps account names to ledger account IDs.
        sink: Ledger to read current balances from.
        today: Date for the adjustments; defaults to the current date.
        brand_payee: Brokerage name used in the notes.

    Returns:
        A StageResult of ``Balance Adjustment`` canonical transactions, one
        per account that is off by at least a cent.  Unmapped accounts are
        warnings; balance lookups that fail are errors.
    """
    when = (today or date.today()).isoformat()
    items: list[CanonicalTransaction] = []
    warnings: list[str] = []
    errors: list[str] = []

    for name, balance in balances.items():
        resolved = resolver.resolve(name)
        if resolved is None:
            warnings.append(f"Skipping balance for unmapped account: {name}")
            continue

        target_cents = to_cents(balance)
        if not isinstance(target_cents, int):
            warnings.append(f"Skipping invalid balance for {name}: {balance!r}")
            continue

        try:
            ledger_cents = sink.account_balance(resolved.account_id)
        except LedgerError as exc:
            errors.append(f"Could not read ledger balance for {name}: {exc}")
            continue

        difference = target_cents - ledger_cents
        if difference == 0:
            continue

        items.append(
            CanonicalTransaction(
                date=when,
                account=name,
                payee="Balance Adjustment",
                notes=f"Adjustment to match {brand_payee} balance of ${target_cents / 100:,.2f}",
                amount=difference,
            )
        )

    return StageResult(items=items, warnings=warnings, errors=errors)


def _account_id(
    name: str | None,
    resolver: AccountResolver,
    directory: LedgerDirectory,
) -> str | None:
    account_id = resolver.account_id(name)
    if account_id is not None:
        return account_id
    account = directory.find_account(name)
    return account["id"] if account is not None else None


def _plan(
    txn: CanonicalTransaction,
    account_id: str,
    resolver: AccountResolver,
    directory: LedgerDirectory,
    result: ImportResult,
) -> list[tuple[str, _Entry]]:
    """Turn one transaction into (account ID, entry) pairs: one, or two for a transfer."""
    if not (txn.is_transfer and txn.transfer_to_account):
        return [(account_id, _Entry(txn, convert_to_import_record(txn, account_id)))]

    target_id = _account_id(txn.transfer_to_account, resolver, directory)
    target_payee = directory.transfer_payee(target_id)
    source_payee = directory.transfer_payee(account_id)

    if target_id is None or target_id == account_id or target_payee is None or source_payee is None:
        message = (
            f"No transfer payee for {txn.account!r} -> {txn.transfer_to_account!r}; "
            "importing as a regular transaction"
        )
        logger.warning(message)
        result.warnings.append(message)
        plain = replace(txn, is_transfer=False, transfer_to_account=None)
        return [(account_id, _Entry(plain, convert_to_import_record(plain, account_id)))]

    primary = convert_to_import_record(txn, account_id, transfer_payee=target_payee)
    mirror = mirror_record(primary, target_id, source_payee)
    return [
        (account_id, _Entry(txn, primary)),
        (target_id, _Entry(txn, mirror)),
    ]
