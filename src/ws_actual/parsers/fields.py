"""Field-level parsing of scraped label/value rows.

Each row on a transaction details panel is a label ("Amount", "Date",
"From", ...) and a text value.  :func:`parse_field` turns one row into a
partial record: a dict of :class:`~ws_actual.models.RawTransaction`
attribute names to typed values.  Unknown labels contribute nothing so new
rows on the page do not break the import.

Text that cannot be parsed never raises out of :func:`parse_field`; the
field is set to ``None`` (or left out) and a warning is returned alongside
the values.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation

# Label (lowercased) -> RawTransaction attribute, value passed through as-is.
SIMPLE_FIELDS: dict[str, str] = {
    "account": "account",
    "from": "from_account",
    "to": "to_account",
    "status": "status",
    "type": "transaction_type",
    "email": "email",
    "message": "message",
    "entered quantity": "entered_quantity",
    "filled quantity": "filled_quantity",
    "account number": "account_number",
    "transaction id": "transaction_id",
}

DATE_FIELDS = ("date", "submitted", "filled")

AMOUNT_FIELDS = ("amount", "total", "total value", "total cost", "estimated amount")

# "− $50.00", "$-50.00", "+ $1,200.00 CAD".  The sign may sit on either
# side of the dollar glyph; U+2212 is the typographic minus used on the site.
_CURRENCY_RE = re.compile(
    r"([+−-])?\s*\$?([+−-])?\s*([0-9,]+(?:\.[0-9]{2})?)\s*([A-Z]{3})?"
)

_NUMBER_RE = re.compile(r"\s*([+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+))")

# Tried in order, first match wins.
_DATE_FORMATS = (
    "%B %d, %Y %I:%M %p",
    "%B %d, %Y%I:%M %p",  # legacy markup, no space before the time
    "%B %d, %Y",
)

_RELATIVE_DAYS = {"today": 0, "yesterday": 1}


@dataclass
class CurrencyValue:
    """A signed amount and its optional 3-letter currency code."""

    amount: Decimal
    currency: str | None = None


@dataclass
class FieldParse:
    """Result of parsing one label/value row."""

    values: dict[str, object] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def parse_currency_value(text: str) -> CurrencyValue:
    """Parse a displayed money value into a signed amount.

    Args:
        text: e.g. ``"− $50.00"``, ``"$-50.00"`` or ``"+ $100.00 CAD"``.

    Returns:
        The parsed :class:`CurrencyValue`.

    Raises:
        ValueError: If *text* does not look like a money value.
    """
    match = _CURRENCY_RE.fullmatch(text.strip())
    if match is None:
        raise ValueError(f"Failed to parse currency value: {text!r}")

    sign_char = match.group(1) or match.group(2)
    digits = match.group(3).replace(",", "")
    try:
        amount = Decimal(digits)
    except InvalidOperation as exc:
        raise ValueError(f"Failed to parse currency value: {text!r}") from exc

    if sign_char in ("-", "−"):
        amount = -amount
    return CurrencyValue(amount=amount, currency=match.group(4))


def parse_date(value: str | None, today: date | None = None) -> str | None:
    """Parse a displayed date into ``YYYY-MM-DD``.

    Accepts ``"January 15, 2024 10:30 am"``, the legacy
    ``"January 15, 20241:30 pm"`` and ``"January 15, 2024"``, plus the
    relative labels ``"Today"`` and ``"Yesterday"``.  Repeated whitespace is
    collapsed and a space is forced between the year and a following
    digit before matching.  The result uses the calendar fields as shown,
    with no timezone conversion.

    Args:
        value: Date text from the page.  Empty or ``None`` yields ``None``.
        today: Reference date for relative labels; defaults to the
            current local date.

    Returns:
        The ISO date string, or ``None`` for empty input.

    Raises:
        ValueError: If *value* matches none of the accepted forms.
    """
    if not value:
        return None

    normalized = re.sub(r"\s+", " ", value)
    normalized = re.sub(r"(\d{4})\s*(\d)", r"\1 \2", normalized, count=1).strip()

    days_back = _RELATIVE_DAYS.get(normalized.lower())
    if days_back is not None:
        reference = today if today is not None else date.today()
        return (reference - timedelta(days=days_back)).isoformat()

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(normalized, fmt).date().isoformat()
        except ValueError:
            continue

    raise ValueError(f"Failed to parse date: {value!r}")


def parse_iso_date(value: str) -> str:
    """Reduce an ISO 8601 date or timestamp to ``YYYY-MM-DD``.

    Offset-aware timestamps are converted to UTC first; a trailing ``Z``
    is accepted.

    Raises:
        ValueError: If *value* is not ISO 8601.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()


def parse_field(name: str, value: str | None, today: date | None = None) -> FieldParse:
    """Interpret one label/value row.

    Args:
        name: Row label, matched case-insensitively.
        value: Row text, possibly ``None``.
        today: Reference date for relative date labels.

    Returns:
        A :class:`FieldParse` whose ``values`` holds the attributes this row
        contributes (empty for unknown labels) and whose ``warnings`` holds
        any soft parse failures.
    """
    label = name.strip().lower()

    if label in SIMPLE_FIELDS:
        return FieldParse(values={SIMPLE_FIELDS[label]: value})

    if label in DATE_FIELDS:
        try:
            return FieldParse(values={label: parse_date(value, today=today)})
        except ValueError as exc:
            return FieldParse(values={label: None}, warnings=[str(exc)])

    if label == "original amount":
        if not value:
            return FieldParse()
        try:
            parsed = parse_currency_value(value)
        except ValueError:
            return FieldParse(warnings=[f"Invalid original amount: {value!r}"])
        return FieldParse(
            values={"original_amount": parsed.amount, "original_currency": parsed.currency}
        )

    if label == "exchange rate":
        if not value:
            return FieldParse()
        match = _NUMBER_RE.match(value)
        if match is None:
            return FieldParse(warnings=[f"Invalid exchange rate: {value!r}"])
        return FieldParse(values={"exchange_rate": Decimal(match.group(1))})

    if label in AMOUNT_FIELDS:
        if not value:
            return FieldParse()
        try:
            parsed = parse_currency_value(value)
        except ValueError:
            return FieldParse(
                values={"amount": None, "amount_currency": None},
                warnings=[f"Invalid total/amount: {value!r}"],
            )
        amount = -abs(parsed.amount) if label == "total cost" else parsed.amount
        return FieldParse(values={"amount": amount, "amount_currency": parsed.currency})

    if "spend rewards" in label:
        if not value:
            return FieldParse()
        try:
            parsed = parse_currency_value(value)
        except ValueError:
            return FieldParse(warnings=[f"Invalid spend rewards: {value!r}"])
        return FieldParse(
            values={"spend_rewards": parsed.amount, "spend_rewards_currency": parsed.currency}
        )

    return FieldParse()
