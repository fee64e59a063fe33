"""Record assembly for scraped transaction blocks.

The browser scraper hands over one block per transaction: the label/value
rows of the details panel in DOM order, plus the summary description and
emphasized subheading.  :func:`assemble_record` folds the rows into a
single :class:`~ws_actual.models.RawTransaction`.

Scraper output is exchanged as a JSON file holding a list of blocks::

    [
        {
            "fields": [{"name": "Amount", "value": "− $50.00"}, ...],
            "description": "Coffee Shop",
            "subheading": "Purchase"
        },
        null
    ]

``null`` entries are empty blocks and are skipped.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from ws_actual.models import RawField, RawTransaction, ScrapedBlock, StageResult
from ws_actual.parsers.fields import parse_field


@dataclass
class AssembleResult:
    """An assembled record (``None`` if the block held no data) and warnings."""

    record: RawTransaction | None = None
    warnings: list[str] = field(default_factory=list)


def merge_fields(
    fields: list[RawField], today: date | None = None
) -> tuple[dict[str, object], list[str]]:
    """Parse every row and merge the results in order.

    Later rows overwrite earlier ones on key collision (last write wins),
    so the final value for a key is the one lowest on the page.
    """
    merged: dict[str, object] = {}
    warnings: list[str] = []
    for raw in fields:
        parsed = parse_field(raw.name, raw.value, today=today)
        merged.update(parsed.values)
        warnings.extend(parsed.warnings)
    return merged, warnings


def assemble_record(block: ScrapedBlock | None, today: date | None = None) -> AssembleResult:
    """Build a :class:`RawTransaction` from one scraped block.

    After merging the rows:

    1. ``description`` is copied from the block.
    2. A missing ``transaction_type`` is taken from the subheading.
    3. A missing ``account`` on a transfer is inferred from the amount
       sign: a negative amount means the block is shown from the source
       side (``from_account``), otherwise from the destination side
       (``to_account``).

    Args:
        block: The scraped block, or ``None``.
        today: Reference date for relative date labels.

    Returns:
        An :class:`AssembleResult`.  ``record`` is ``None`` when nothing at
        all was parsed from the block.
    """
    if block is None or not block.fields:
        return AssembleResult()

    merged, warnings = merge_fields(block.fields, today=today)

    if block.description:
        merged["description"] = block.description

    if not merged.get("transaction_type") and block.subheading:
        merged["transaction_type"] = block.subheading

    if not merged.get("account") and (merged.get("to_account") or merged.get("from_account")):
        amount = merged.get("amount")
        if amount is not None and amount < 0:
            merged["account"] = merged.get("from_account")
        else:
            merged["account"] = merged.get("to_account")

    if not merged:
        return AssembleResult(warnings=warnings)

    # subheading is not a row on the panel; it rides along for notes.
    return AssembleResult(
        record=RawTransaction(subheading=block.subheading, **merged),
        warnings=warnings,
    )


def block_from_dict(data: dict | None) -> ScrapedBlock | None:
    """Convert one JSON block into a :class:`ScrapedBlock`."""
    if data is None:
        return None
    fields = [
        RawField(name=str(f.get("name", "")), value=f.get("value"))
        for f in data.get("fields") or []
        if isinstance(f, dict)
    ]
    return ScrapedBlock(
        fields=fields,
        description=data.get("description"),
        subheading=data.get("subheading"),
    )


def parse(file_path: Path, today: date | None = None) -> StageResult:
    """Parse a scraper output JSON file into raw transactions.

    Args:
        file_path: Path to the JSON file.
        today: Reference date for relative date labels.

    Returns:
        A StageResult whose ``items`` are :class:`RawTransaction` objects,
        with warnings for unparseable values and errors if the file cannot
        be read at all.
    """
    source = str(file_path)
    try:
        data = json.loads(Path(file_path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        return StageResult(errors=[f"{source}: file not found"])
    except json.JSONDecodeError as exc:
        return StageResult(errors=[f"{source}: invalid JSON: {exc}"])
    except OSError as exc:
        return StageResult(errors=[f"{source}: {exc}"])

    if not isinstance(data, list):
        return StageResult(errors=[f"{source}: expected a list of transaction blocks"])

    records: list[RawTransaction] = []
    warnings: list[str] = []
    for index, entry in enumerate(data):
        if entry is not None and not isinstance(entry, dict):
            warnings.append(f"{source}: skipped block {index} (not an object)")
            continue
        result = assemble_record(block_from_dict(entry), today=today)
        warnings.extend(f"{source}: block {index}: {w}" for w in result.warnings)
        if result.record is not None:
            records.append(result.record)

    return StageResult(items=records, warnings=warnings)
