"""Account name resolution against configured mappings.

Each configured mapping pairs a brokerage account name pattern with a
ledger account ID.  A pattern is compiled once, when the resolver is
built, into one of two kinds:

- :class:`ExactPattern` -- plain text, compared case-insensitively.
- :class:`RegexPattern` -- text containing regex metacharacters, compiled
  as ``^pattern`` plus an end-of-string anchor, with ``re.IGNORECASE``.
  The anchors bind to the first and last alternatives only, so
  ``Cash|Chequing`` matches any name starting with "Cash".

Resolution walks the mappings in declaration order and returns the first
match, so an earlier, more specific mapping shadows a later catch-all.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Union

from ws_actual.models import AccountMapping

logger = logging.getLogger(__name__)

_REGEX_CHARS = re.compile(r"[.*+?^${}()|\[\]\\]")


@dataclass(frozen=True)
class ExactPattern:
    text: str

    kind = "exact"

    def matches(self, name: str) -> bool:
        return self.text.lower() == name.lower()


@dataclass(frozen=True)
class RegexPattern:
    text: str
    regex: re.Pattern

    kind = "regex"

    def matches(self, name: str) -> bool:
        return self.regex.search(name) is not None


AccountPattern = Union[ExactPattern, RegexPattern]


@dataclass(frozen=True)
class ResolvedAccount:
    """A successful resolution.

    Attributes:
        account_id: Ledger account ID from the matching mapping.
        account_name: The brokerage account name that was resolved.
        match_type: ``"exact"`` or ``"regex"``.
        matched_pattern: The pattern text that matched.
    """

    account_id: str
    account_name: str
    match_type: str
    matched_pattern: str


@dataclass
class MappingValidation:
    """Mappings checked against the ledger's account list.

    Attributes:
        valid: Mappings whose account ID exists in the ledger.
        invalid: Mappings whose account ID does not exist, with a reason.
        unmapped: Open ledger accounts no mapping points at.
    """

    valid: list[dict] = field(default_factory=list)
    invalid: list[dict] = field(default_factory=list)
    unmapped: list[dict] = field(default_factory=list)


def compile_pattern(text: str) -> AccountPattern:
    """Compile a mapping pattern.

    Raises:
        re.error: If *text* looks like a regex but does not compile.
    """
    if _REGEX_CHARS.search(text):
        return RegexPattern(text=text, regex=re.compile(rf"^{text}\Z", re.IGNORECASE))
    return ExactPattern(text=text)


class AccountResolver:
    """Resolve brokerage account names to ledger account IDs.

    Mappings missing a name or an ID are ignored.  Patterns that fail to
    compile are dropped and reported in :attr:`warnings`.

    Args:
        mappings: Account mappings in declaration order.
    """

    def __init__(self, mappings: list[AccountMapping]) -> None:
        self.rules: list[tuple[AccountPattern, str]] = []
        self.warnings: list[str] = []

        for mapping in mappings:
            if not mapping.ws_account_name or not mapping.actual_account_id:
                continue
            try:
                pattern = compile_pattern(mapping.ws_account_name)
            except re.error as exc:
                message = f"Ignoring invalid account pattern {mapping.ws_account_name!r}: {exc}"
                logger.warning(message)
                self.warnings.append(message)
                continue
            self.rules.append((pattern, mapping.actual_account_id))

    def resolve(self, name: str | None) -> ResolvedAccount | None:
        """Return the first mapping that matches *name*, or None."""
        if not name:
            return None
        for pattern, account_id in self.rules:
            if pattern.matches(name):
                return ResolvedAccount(
                    account_id=account_id,
                    account_name=name,
                    match_type=pattern.kind,
                    matched_pattern=pattern.text,
                )
        return None

    def is_mapped(self, name: str | None) -> bool:
        return self.resolve(name) is not None

    def account_id(self, name: str | None) -> str | None:
        resolved = self.resolve(name)
        return resolved.account_id if resolved is not None else None


def validate_account_mappings(
    mappings: list[AccountMapping],
    ledger_accounts: list[dict],
) -> MappingValidation:
    """Check every mapping's account ID against the ledger's accounts.

    Args:
        mappings: Configured mappings.
        ledger_accounts: ``{"id", "name", "closed", "offbudget"}`` dicts
            from the ledger.

    Returns:
        A :class:`MappingValidation`.  Closed ledger accounts are never
        reported as unmapped.
    """
    ledger_ids = {account["id"] for account in ledger_accounts}
    mapped_ids = {mapping.actual_account_id for mapping in mappings}
    result = MappingValidation()

    for mapping in mappings:
        entry = {"ws_account_name": mapping.ws_account_name, "id": mapping.actual_account_id}
        if mapping.actual_account_id in ledger_ids:
            result.valid.append(entry)
        else:
            result.invalid.append({**entry, "reason": "Account ID not found in ledger"})

    for account in ledger_accounts:
        if account["id"] not in mapped_ids and not account.get("closed"):
            result.unmapped.append({"name": account.get("name", ""), "id": account["id"]})

    return result
