"""Run statistics and the processing summary printer.

- :func:`calculate_statistics` folds canonical transactions into totals,
  per-type and per-account counts, and the covered date range.
- :func:`print_summary` prints a human-readable summary of a pipeline run
  to stdout, including import tallies, warnings and errors.
"""

from __future__ import annotations

from collections import Counter

from ws_actual.models import CanonicalTransaction, PipelineResult, Statistics


def calculate_statistics(transactions: list[CanonicalTransaction]) -> Statistics:
    """Compute :class:`Statistics` for *transactions*.

    ISO dates compare correctly as strings, so the date range is a plain
    string min/max.
    """
    by_type: Counter[str] = Counter()
    by_account: Counter[str] = Counter()
    debit_cents = 0
    credit_cents = 0
    dates: list[str] = []

    for txn in transactions:
        by_type[_type_from_notes(txn.notes) or "unknown"] += 1
        by_account[txn.account or "unknown"] += 1

        if txn.amount < 0:
            debit_cents += abs(txn.amount)
        else:
            credit_cents += txn.amount

        if txn.date:
            dates.append(txn.date)

    total_credits = credit_cents / 100
    total_debits = debit_cents / 100

    return Statistics(
        total=len(transactions),
        by_type=dict(by_type),
        by_account=dict(by_account),
        total_credits=total_credits,
        total_debits=total_debits,
        net_amount=total_credits - total_debits,
        date_start=min(dates) if dates else None,
        date_end=max(dates) if dates else None,
    )


def _type_from_notes(notes: str | None) -> str | None:
    if not notes or not isinstance(notes, str):
        return None
    return notes.strip().split(" ")[0] or None


def print_summary(stats: Statistics, result: PipelineResult, dry_run: bool = False) -> None:
    """Print a human-readable run summary to stdout.

    The summary includes:

    - Transaction count and date range.
    - Credits, debits and net amount.
    - Counts by type and by account.
    - Import tallies (omitted on a dry run).
    - Skipped accounts, warnings and errors, if any.

    Args:
        stats: Statistics for the transactions that were (or would be)
            imported.
        result: The completed pipeline result.
        dry_run: True when nothing was sent to the ledger.
    """
    print()
    print("== Import Summary ==" if not dry_run else "== Import Summary (dry run) ==")

    if stats.date_start:
        print(f"Total:    {stats.total} transactions ({stats.date_start} to {stats.date_end})")
    else:
        print(f"Total:    {stats.total} transactions")

    print(f"Credits:  ${stats.total_credits:,.2f}")
    print(f"Debits:   ${stats.total_debits:,.2f}")
    print(f"Net:      ${stats.net_amount:,.2f}")

    if stats.by_type:
        print()
        print("By type:")
        for txn_type, count in sorted(stats.by_type.items(), key=lambda pair: -pair[1]):
            print(f"  {txn_type + ':':<25} {count}")

    if stats.by_account:
        print()
        print("By account:")
        for account in sorted(stats.by_account):
            print(f"  {account + ':':<25} {stats.by_account[account]}")

    imported = result.import_result
    if imported is not None and not dry_run:
        print()
        print("Import results:")
        print(f"  Imported:   {imported.imported}")
        print(f"  Updated:    {imported.updated}")
        print(f"  Duplicates: {imported.duplicates}")
        print(f"  Failed:     {len(imported.failed)}")
        for failure in imported.failed[:5]:
            print(f"    - {failure.transaction.payee}: {failure.error}")
        if len(imported.failed) > 5:
            print(f"    ... and {len(imported.failed) - 5} more")

    if result.skipped_accounts:
        print()
        print(
            f"Skipped {len(result.skipped_accounts)} unmapped account(s). "
            "Add [[accounts]] mappings to config.toml to import them."
        )

    if result.warnings:
        print()
        print(f"Warnings: {len(result.warnings)}")
        for w in result.warnings:
            print(f"  - {w}")

    if result.errors:
        print()
        print(f"Errors: {len(result.errors)}")
        for e in result.errors:
            print(f"  - {e}")

    print()
