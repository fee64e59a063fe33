"""WealthSimple activity CSV export parser.

CSV format (header row, one transaction per row):
    account, status, date, submitted, filled, amount, amountCurrency, type,
    description, email, message, enteredQuantity, filledQuantity,
    accountNumber, transactionId

Optional columns ``from`` and ``to`` carry the two legs of a transfer.

Sign convention:
    Amounts are signed as exported.  ``$``, thousands separators and
    spaces are ignored; an amount in parentheses is negative.

Dates may be ISO 8601 (``2024-01-15`` or a timestamp) or the long form
shown on the website (``January 15, 2024 10:30 am``).
"""

from __future__ import annotations

import csv
import re
from decimal import Decimal, InvalidOperation
from pathlib import Path

from ws_actual.models import RawTransaction, StageResult
from ws_actual.parsers.fields import parse_date, parse_iso_date

REQUIRED_COLUMNS = {"account", "date", "amount", "type", "description"}

# CSV header -> RawTransaction attribute for plain text columns.
TEXT_COLUMNS = {
    "account": "account",
    "status": "status",
    "type": "transaction_type",
    "description": "description",
    "email": "email",
    "message": "message",
    "enteredQuantity": "entered_quantity",
    "filledQuantity": "filled_quantity",
    "accountNumber": "account_number",
    "transactionId": "transaction_id",
    "from": "from_account",
    "to": "to_account",
}

DATE_COLUMNS = ("date", "submitted", "filled")

DEFAULT_CURRENCY = "CAD"


def parse(file_path: Path) -> StageResult:
    """Parse a WealthSimple CSV export into raw transactions.

    Args:
        file_path: Path to the CSV file.

    Returns:
        A StageResult whose ``items`` are :class:`RawTransaction` objects,
        warnings for unparseable cells, and errors if the file cannot be
        parsed at all.
    """
    warnings: list[str] = []
    errors: list[str] = []
    source = str(file_path)

    try:
        with open(file_path, newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)

            if reader.fieldnames is None:
                errors.append(f"{source}: empty file or no header row")
                return StageResult(warnings=warnings, errors=errors)

            header = {name.strip() for name in reader.fieldnames}
            missing = REQUIRED_COLUMNS - header
            if missing:
                errors.append(f"{source}: missing expected columns: {', '.join(sorted(missing))}")
                return StageResult(warnings=warnings, errors=errors)

            rows = list(reader)

    except FileNotFoundError:
        errors.append(f"{source}: file not found")
        return StageResult(warnings=warnings, errors=errors)
    except OSError as exc:
        errors.append(f"{source}: {exc}")
        return StageResult(warnings=warnings, errors=errors)

    records: list[RawTransaction] = []
    for row_ordinal, row in enumerate(rows):
        row = {k.strip(): (v or "").strip() for k, v in row.items() if k is not None}

        values: dict[str, object] = {}
        for column, attr in TEXT_COLUMNS.items():
            if row.get(column):
                values[attr] = row[column]

        for column in DATE_COLUMNS:
            text = row.get(column, "")
            if not text:
                continue
            try:
                values[column] = _parse_csv_date(text)
            except ValueError:
                warnings.append(f"{source}: row {row_ordinal}: invalid {column}: {text!r}")

        amount_text = row.get("amount", "")
        if amount_text:
            try:
                values["amount"] = _parse_csv_amount(amount_text)
            except InvalidOperation:
                warnings.append(f"{source}: row {row_ordinal}: invalid amount: {amount_text!r}")
        values["amount_currency"] = row.get("amountCurrency") or DEFAULT_CURRENCY

        records.append(RawTransaction(**values))

    return StageResult(items=records, warnings=warnings, errors=errors)


def _parse_csv_date(text: str) -> str | None:
    """Accept an ISO date/timestamp or the website's long date form."""
    try:
        return parse_iso_date(text)
    except ValueError:
        return parse_date(text)


def _parse_csv_amount(text: str) -> Decimal:
    cleaned = re.sub(r"[$,\s]", "", text)
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = "-" + cleaned[1:-1]
    return Decimal(cleaned)
