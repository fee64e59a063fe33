"""Pipeline orchestration for ws-actual.

Composes the import stages: filter, normalize transfers, resolve accounts,
transform, validate, summarize, and import.  Each stage either returns a
:class:`~ws_actual.models.StageResult` or feeds its diagnostics straight
into the final :class:`~ws_actual.models.PipelineResult`.  Data problems
never raise; they end up in the result's ``warnings`` and ``errors``.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from ws_actual.accounts import AccountResolver
from ws_actual.importer import LedgerDirectory, build_balance_adjustments, import_transactions
from ws_actual.ledger import LedgerSink
from ws_actual.models import (
    AppConfig,
    CanonicalTransaction,
    ImportResult,
    PipelineResult,
    RawTransaction,
    StageResult,
)
from ws_actual.summary import calculate_statistics
from ws_actual.transformer import (
    group_by_account,
    normalize_transfer_perspective,
    should_include_transaction,
    transform_batch,
    validate_transaction,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def run(
    raws: list[RawTransaction],
    config: AppConfig,
    sink: LedgerSink,
    dry_run: bool = False,
) -> PipelineResult:
    """Run the import pipeline over parsed brokerage records.

    Stages executed in order:

    1. **Filter** -- drop internal investment movements.
    2. **Normalize** -- re-express inbound transfer legs from the source
       account.
    3. **Resolve** -- group by account and skip accounts with no mapping.
    4. **Transform** -- build canonical transactions, dropping records
       without a usable amount.
    5. **Validate** -- drop transactions the ledger would reject.
    6. **Summarize** -- compute run statistics.
    7. **Import** -- submit to the ledger (skipped when *dry_run*).

    Args:
        raws: Parsed records from one of the parsers.
        config: Application configuration (mappings and brand payee).
        sink: Ledger to import into.
        dry_run: Stop after statistics; nothing is sent to *sink*.

    Returns:
        A :class:`PipelineResult`.

    Raises:
        LedgerError: If the ledger's accounts and payees cannot be loaded
            at the start of the import stage.
    """
    resolver = AccountResolver(config.accounts)
    all_warnings: list[str] = list(resolver.warnings)
    all_errors: list[str] = []

    # -- Stage 1: Filter ------------------------------------------------------
    included = [raw for raw in raws if should_include_transaction(raw)]
    if len(included) < len(raws):
        logger.info("Excluded %d internal investment transaction(s)", len(raws) - len(included))

    # -- Stage 2: Normalize transfer perspective --------------------------------
    normalized = [normalize_transfer_perspective(raw, resolver.is_mapped) for raw in included]

    # -- Stage 3: Resolve accounts ----------------------------------------------
    resolve_result, skipped = _resolve_accounts(normalized, resolver)
    all_warnings.extend(resolve_result.warnings)

    # -- Stage 4: Transform -----------------------------------------------------
    transform_result = transform_batch(
        resolve_result.items,
        is_account_mapped=resolver.is_mapped,
        brand_payee=config.brand_payee,
    )
    all_warnings.extend(transform_result.warnings)

    # -- Stage 5: Validate ------------------------------------------------------
    validate_result = _validate(transform_result.items)
    all_warnings.extend(validate_result.warnings)
    transactions = validate_result.items

    # -- Stage 6: Summarize -----------------------------------------------------
    statistics = calculate_statistics(transactions)
    logger.info(
        "Prepared %d transaction(s) across %d account(s)",
        statistics.total,
        len(statistics.by_account),
    )

    result = PipelineResult(
        transactions=transactions,
        statistics=statistics,
        skipped_accounts=skipped,
        warnings=all_warnings,
        errors=all_errors,
    )

    # -- Stage 7: Import --------------------------------------------------------
    if dry_run:
        logger.info("Dry run: skipping import of %d transaction(s)", len(transactions))
        return result

    result.import_result = _import(transactions, resolver, sink)
    result.warnings.extend(result.import_result.warnings)
    return result


def reconcile_balances(
    balances: dict[str, Decimal | int | str],
    config: AppConfig,
    sink: LedgerSink,
    dry_run: bool = False,
    today: date | None = None,
) -> PipelineResult:
    """Post balance adjustments so ledger balances match the brokerage.

    Args:
        balances: Brokerage account name -> reported balance in dollars.
        config: Application configuration.
        sink: Ledger to read balances from and import into.  Balances are
            read even on a dry run.
        dry_run: Compute the adjustments without importing them.
        today: Date for the adjustments.

    Returns:
        A :class:`PipelineResult` whose transactions are the adjustments.
    """
    resolver = AccountResolver(config.accounts)
    adjustments = build_balance_adjustments(
        balances, resolver, sink, today=today, brand_payee=config.brand_payee
    )
    validate_result = _validate(adjustments.items)
    transactions = validate_result.items

    result = PipelineResult(
        transactions=transactions,
        statistics=calculate_statistics(transactions),
        warnings=resolver.warnings + adjustments.warnings + validate_result.warnings,
        errors=list(adjustments.errors),
    )

    if dry_run or not transactions:
        return result

    result.import_result = _import(transactions, resolver, sink)
    result.warnings.extend(result.import_result.warnings)
    return result


# ---------------------------------------------------------------------------
# Stage implementations
# ---------------------------------------------------------------------------


def _resolve_accounts(
    raws: list[RawTransaction],
    resolver: AccountResolver,
) -> tuple[StageResult, list[str]]:
    """Keep records whose account has a mapping.

    Returns the kept records (one warning per unmapped account) and the
    names of the skipped accounts.
    """
    kept: list[RawTransaction] = []
    warnings: list[str] = []
    skipped: list[str] = []

    for account, records in group_by_account(raws).items():
        if not resolver.is_mapped(account):
            warnings.append(f"Skipping unmapped account: {account} ({len(records)} transactions)")
            skipped.append(account)
            continue
        logger.debug("Account %r: %d record(s)", account, len(records))
        kept.extend(records)

    return StageResult(items=kept, warnings=warnings), skipped


def _validate(transactions: list[CanonicalTransaction]) -> StageResult:
    valid: list[CanonicalTransaction] = []
    warnings: list[str] = []

    for txn in transactions:
        validation = validate_transaction(txn)
        if validation.is_valid:
            valid.append(txn)
        else:
            warnings.append(
                f"Skipping invalid transaction ({', '.join(validation.errors)}): {txn.payee}"
            )

    return StageResult(items=valid, warnings=warnings)


def _import(
    transactions: list[CanonicalTransaction],
    resolver: AccountResolver,
    sink: LedgerSink,
) -> ImportResult:
    directory = LedgerDirectory.load(sink)
    logger.info(
        "Loaded %d ledger account(s) and %d payee(s)",
        len(directory.accounts),
        len(directory.payees),
    )
    return import_transactions(transactions, resolver, directory, sink)
