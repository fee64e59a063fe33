"""Conversion of raw brokerage records into ledger-ready transactions.

:func:`transform` is a pure function from one
:class:`~ws_actual.models.RawTransaction` to one
:class:`~ws_actual.models.CanonicalTransaction`.  It decides the date, the
signed amount in cents, the payee, the notes, and whether the record is a
transfer between two mapped accounts.  :func:`transform_batch` maps it over
a collection and drops records without a usable amount;
:func:`validate_transaction` checks the shape of a result before import.
"""

from __future__ import annotations

import enum
import math
import re
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TypeVar

from ws_actual.models import CanonicalTransaction, RawTransaction, StageResult
from ws_actual.parsers.fields import parse_iso_date

DEFAULT_BRAND_PAYEE = "WealthSimple"

# Matched as case-insensitive substrings of the type.  Debit keywords are
# checked before the amount sign, credit keywords after it.
DEBIT_TYPES = (
    "withdrawal",
    "withdraw",
    "payment",
    "purchase",
    "transfer_out",
    "fee",
    "interest_charge",
)
CREDIT_TYPES = ("deposit", "transfer_in", "interest", "dividend", "refund")

# Internal investment movements that do not change the account balance.
EXCLUDED_TYPES = (
    "market sell",
    "market buy",
    "fractional buy",
    "dividend reinvested",
    "funds converted",
)

# Small recurring platform credits are all booked under the brand payee.
BRAND_PAYEES = ("Referral", "Interest", "Bonus", "Cash back", "Reimbursement")

# First substring hit wins, so order matters ("transfer" before "transfer_in").
PAYEE_BY_TYPE = (
    ("deposit", "Deposit"),
    ("withdrawal", "Withdrawal"),
    ("transfer", "Transfer"),
    ("transfer_in", "Transfer In"),
    ("transfer_out", "Transfer Out"),
    ("payment", "Payment"),
    ("purchase", "Purchase"),
    ("interest", "Interest"),
    ("dividend", "Dividend"),
    ("fee", "Fee"),
    ("refund", "Refund"),
)

_PAYEE_PATTERNS = (
    re.compile(r"(?:transfer (?:to|from)|payment (?:to|from))\s+(.+)", re.IGNORECASE),
    re.compile(r"(.+?)(?:\s+\d{4,}|\s+#\d+|\s+\*{4}\d{4})?"),
    re.compile(r"(.+?)(?:\s+on\s+\d{1,2}/\d{1,2})?"),
)

PAYEE_MAX_LENGTH = 100

AccountPredicate = Callable[[str], bool]
Record = TypeVar("Record", RawTransaction, CanonicalTransaction)


class TransferDirection(enum.Enum):
    """Which side of a transfer the current record represents."""

    OUTBOUND = "outbound"
    INBOUND = "inbound"


@dataclass(frozen=True)
class TransferTarget:
    """The other leg of a transfer, seen from the current record."""

    direction: TransferDirection
    account: str


@dataclass
class ValidationResult:
    """Outcome of :func:`validate_transaction`."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def transform(
    raw: RawTransaction,
    is_account_mapped: AccountPredicate | None = None,
    brand_payee: str = DEFAULT_BRAND_PAYEE,
) -> CanonicalTransaction:
    """Convert one raw record into a canonical transaction.

    Args:
        raw: The assembled raw record.
        is_account_mapped: Predicate telling whether an account name has a
            ledger mapping.  Transfers are only detected when it is given
            and both legs are mapped.
        brand_payee: Payee substituted for platform credits such as
            referrals and interest.

    Returns:
        The :class:`CanonicalTransaction`.  ``amount`` is ``math.nan`` when
        the raw record has no usable amount.
    """
    cents = to_cents(raw.amount)
    amount = -abs(cents) if is_debit(raw) else abs(cents)

    target = detect_transfer(raw, is_account_mapped)
    if target is not None:
        notes = f"{raw.from_account} -> {raw.to_account}"
    else:
        notes = build_notes(raw)

    return CanonicalTransaction(
        date=resolve_date(raw),
        account=raw.account,
        payee=build_payee(raw, brand_payee=brand_payee),
        notes=notes,
        amount=amount,
        is_transfer=target is not None,
        transfer_to_account=target.account if target is not None else None,
    )


def transform_batch(
    raws: list[RawTransaction],
    is_account_mapped: AccountPredicate | None = None,
    brand_payee: str = DEFAULT_BRAND_PAYEE,
) -> StageResult:
    """Transform every record, dropping those without a finite amount.

    Returns:
        A StageResult of :class:`CanonicalTransaction` objects with one
        warning per dropped record.
    """
    transactions: list[CanonicalTransaction] = []
    warnings: list[str] = []

    for raw in raws:
        txn = transform(raw, is_account_mapped=is_account_mapped, brand_payee=brand_payee)
        if not txn.has_finite_amount:
            warnings.append(
                f"Skipping transaction with invalid amount ({txn.amount}): {txn.payee}"
            )
            continue
        transactions.append(txn)

    return StageResult(items=transactions, warnings=warnings)


def validate_transaction(txn: CanonicalTransaction) -> ValidationResult:
    """Check that a canonical transaction has the fields the ledger needs.

    Never modifies *txn*.
    """
    errors: list[str] = []

    if not txn.date:
        errors.append("Missing transaction date")

    if isinstance(txn.amount, bool) or not isinstance(txn.amount, (int, float)):
        errors.append("Invalid amount")

    if not txn.account:
        errors.append("Missing account")

    if txn.notes and not isinstance(txn.notes, str):
        errors.append("Notes must be a string")

    return ValidationResult(is_valid=not errors, errors=errors)


def should_include_transaction(raw: RawTransaction) -> bool:
    """Return False for internal investment movements (buys, sells, FX)."""
    return (raw.transaction_type or "").lower() not in EXCLUDED_TYPES


def group_by_account(records: list[Record]) -> dict[str, list[Record]]:
    """Group raw or canonical records by account name, in first-seen order."""
    grouped: dict[str, list[Record]] = {}
    for record in records:
        grouped.setdefault(record.account or "Unknown", []).append(record)
    return grouped


# ---------------------------------------------------------------------------
# Amount and sign
# ---------------------------------------------------------------------------


def to_cents(amount: Decimal | str | int | float | None) -> int | float:
    """Convert a major-unit amount to integer cents.

    Halves round away from zero in both directions, so ``10.555`` becomes
    ``1056`` and ``-10.555`` becomes ``-1056``.  Missing or unparseable
    amounts give ``math.nan``.
    """
    value = _to_decimal(amount)
    if value is None:
        return math.nan
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_debit(raw: RawTransaction) -> bool:
    """Classify a record as a debit.

    A debit keyword in the type wins first.  Otherwise an explicitly
    negative amount is a debit even when the type names a credit (a
    negative "deposit" stays negative).  Everything else is a credit.
    """
    txn_type = (raw.transaction_type or "").lower()

    if any(keyword in txn_type for keyword in DEBIT_TYPES):
        return True

    amount = _to_decimal(raw.amount)
    if amount is not None and amount < 0:
        return True

    if any(keyword in txn_type for keyword in CREDIT_TYPES):
        return False

    return False


def _to_decimal(amount: Decimal | str | int | float | None) -> Decimal | None:
    if amount is None or isinstance(amount, bool):
        return None
    if isinstance(amount, Decimal):
        value = amount
    else:
        text = str(amount).strip()
        if not text:
            return None
        try:
            value = Decimal(text)
        except InvalidOperation:
            return None
    return value if value.is_finite() else None


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------


def transfer_target(
    current_account: str | None,
    from_account: str,
    to_account: str,
) -> TransferTarget:
    """Return the leg opposite to *current_account*.

    A record shown under the source account points at the destination
    (outbound); any other record points back at the source (inbound).
    """
    if current_account == from_account:
        return TransferTarget(TransferDirection.OUTBOUND, to_account)
    return TransferTarget(TransferDirection.INBOUND, from_account)


def detect_transfer(
    raw: RawTransaction,
    is_account_mapped: AccountPredicate | None,
) -> TransferTarget | None:
    """Return the transfer target if *raw* moves money between two mapped accounts."""
    if not raw.from_account or not raw.to_account:
        return None
    if raw.from_account == raw.to_account:
        return None
    if is_account_mapped is None:
        return None
    if not (is_account_mapped(raw.from_account) and is_account_mapped(raw.to_account)):
        return None
    return transfer_target(raw.account, raw.from_account, raw.to_account)


def normalize_transfer_perspective(
    raw: RawTransaction,
    is_account_mapped: AccountPredicate | None,
) -> RawTransaction:
    """Re-express an inbound transfer leg from its source account.

    The ledger receives transfers from the source side, with the mirrored
    leg generated on import.  A record shown under the destination account
    is moved to the source account and its amount negated; a leg with no
    amount becomes a zero-amount transfer.  Records that are not inbound
    legs between two mapped accounts are returned as-is.
    """
    target = detect_transfer(raw, is_account_mapped)
    if target is None or target.direction is not TransferDirection.INBOUND:
        return raw
    if raw.account != raw.to_account:
        return raw

    if raw.amount is None or raw.amount == "":
        amount: Decimal | None = Decimal(0)
    else:
        amount = _to_decimal(raw.amount)
        if amount is not None:
            amount = -amount
    return replace(raw, account=raw.from_account, amount=amount)


# ---------------------------------------------------------------------------
# Date, notes and payee
# ---------------------------------------------------------------------------


def resolve_date(raw: RawTransaction) -> str | None:
    """Pick ``date``, then ``filled``, then ``submitted`` as ``YYYY-MM-DD``.

    A value that is not ISO 8601 is passed through unchanged.
    """
    value = raw.date or raw.filled or raw.submitted
    if not value:
        return None
    try:
        return parse_iso_date(value)
    except ValueError:
        return value


def build_notes(raw: RawTransaction) -> str:
    """Build the notes text for a non-transfer record.

    Layout: ``"{subheading} - {type} ({email}): {message} {quantity} [{id}]"``.
    The ``": "`` separator appears only when a message or filled quantity
    is present; a lone transaction ID is appended after a plain space.
    """
    subheading = (raw.subheading or "").strip()
    txn_type = (raw.transaction_type or "").strip()

    if subheading and txn_type and subheading != txn_type:
        main = f"{subheading} - {txn_type}"
    else:
        main = subheading or txn_type

    email = (raw.email or "").strip()
    if email:
        main += f" ({email})"

    message = (raw.message or "").strip()
    quantity = (raw.filled_quantity or "").strip()
    transaction_id = (raw.transaction_id or "").strip()

    suffix_parts = [part for part in (message, quantity) if part]
    if transaction_id:
        suffix_parts.append(f"[{transaction_id}]")
    suffix = " ".join(suffix_parts)

    if not suffix:
        return main
    if message or quantity:
        return f"{main}: {suffix}"
    return f"{main} {suffix}"


def build_payee(raw: RawTransaction, brand_payee: str = DEFAULT_BRAND_PAYEE) -> str:
    """Derive the payee name from the description, or from the type."""
    if raw.description:
        payee = None
        for pattern in _PAYEE_PATTERNS:
            match = pattern.fullmatch(raw.description)
            if match and match.group(1):
                payee = clean_payee_name(match.group(1))
                break
        if not payee:
            payee = clean_payee_name(raw.description)
    else:
        payee = payee_for_type(raw.transaction_type)

    if payee in BRAND_PAYEES:
        return brand_payee
    return payee


def payee_for_type(txn_type: str | None) -> str:
    """Fallback payee for records without a description."""
    lowered = (txn_type or "").lower()
    for keyword, label in PAYEE_BY_TYPE:
        if keyword in lowered:
            return label
    return txn_type or "Unknown"


def clean_payee_name(name: str) -> str:
    """Collapse whitespace, drop punctuation other than ``-&.'``, cap the length."""
    name = re.sub(r"\s+", " ", name)
    name = re.sub(r"[^\w\s\-&.']", "", name)
    return name.strip()[:PAYEE_MAX_LENGTH]
