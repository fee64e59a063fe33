"""Tests for ws_actual.models -- dataclasses and imported_id generation."""

from __future__ import annotations

import hashlib
import math
from dataclasses import replace

import pytest

from ws_actual.models import (
    CanonicalTransaction,
    ImportRecord,
    RawTransaction,
    generate_imported_id,
)


def _txn(**overrides) -> CanonicalTransaction:
    base = CanonicalTransaction(
        date="2024-01-15",
        account="Chequing",
        payee="Coffee Shop",
        notes="Purchase [tx-1]",
        amount=-450,
    )
    return replace(base, **overrides)


class TestGenerateImportedId:
    """Tests for the deterministic dedup ID."""

    def test_format(self):
        """IDs are 'ws_' plus 16 lowercase hex characters."""
        imported_id = generate_imported_id(_txn())
        assert imported_id.startswith("ws_")
        assert len(imported_id) == 19
        assert all(c in "0123456789abcdef" for c in imported_id[3:])

    def test_deterministic(self):
        """Equal transactions hash to the same ID."""
        assert generate_imported_id(_txn()) == generate_imported_id(_txn())

    def test_matches_compact_sorted_json(self):
        """The hash covers compact JSON with keys in account..payee order."""
        raw = (
            '{"account":"Chequing","amount":-450,"date":"2024-01-15",'
            '"notes":"Purchase [tx-1]","payee":"Coffee Shop"}'
        )
        expected = "ws_" + hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]
        assert generate_imported_id(_txn()) == expected

    def test_non_ascii_is_not_escaped(self):
        """Accented payees hash over their UTF-8 text, not \\u escapes."""
        txn = _txn(payee="Café Olé")
        raw = (
            '{"account":"Chequing","amount":-450,"date":"2024-01-15",'
            '"notes":"Purchase [tx-1]","payee":"Café Olé"}'
        )
        expected = "ws_" + hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]
        assert generate_imported_id(txn) == expected

    @pytest.mark.parametrize(
        "field_name,value",
        [
            ("date", "2024-01-16"),
            ("account", "Savings"),
            ("payee", "Tea Shop"),
            ("notes", "Purchase [tx-2]"),
            ("amount", -451),
        ],
    )
    def test_each_public_field_changes_id(self, field_name, value):
        """Changing any one of the five hashed fields changes the ID."""
        assert generate_imported_id(_txn(**{field_name: value})) != generate_imported_id(_txn())

    def test_transfer_metadata_does_not_change_id(self):
        """is_transfer and transfer_to_account are not part of the hash."""
        transfer = _txn(is_transfer=True, transfer_to_account="Savings")
        assert generate_imported_id(transfer) == generate_imported_id(_txn())


class TestCanonicalTransaction:
    """Tests for CanonicalTransaction helpers."""

    def test_public_dict_has_five_fields(self):
        """Transfer metadata is kept out of the public view."""
        txn = _txn(is_transfer=True, transfer_to_account="Savings")
        assert txn.public_dict() == {
            "Date": "2024-01-15",
            "Account": "Chequing",
            "Payee": "Coffee Shop",
            "Notes": "Purchase [tx-1]",
            "Amount": -450,
        }

    def test_has_finite_amount(self):
        assert _txn().has_finite_amount
        assert not _txn(amount=math.nan).has_finite_amount
        assert not _txn(amount=math.inf).has_finite_amount

    def test_frozen(self):
        """Canonical transactions cannot be mutated in place."""
        txn = _txn()
        with pytest.raises(AttributeError):
            txn.amount = 0  # type: ignore[misc]


class TestImportRecord:
    """Tests for the wire record serialization."""

    def test_to_dict_omits_unset_optionals(self):
        record = ImportRecord(date="2024-01-15", amount=-450, imported_id="ws_x")
        assert record.to_dict() == {
            "date": "2024-01-15",
            "amount": -450,
            "imported_id": "ws_x",
            "cleared": False,
        }

    def test_to_dict_includes_set_optionals(self):
        record = ImportRecord(
            date="2024-01-15",
            amount=-450,
            imported_id="ws_x",
            account="acct-chq",
            payee_name="Coffee Shop",
            notes="",
        )
        data = record.to_dict()
        assert data["account"] == "acct-chq"
        assert data["payee_name"] == "Coffee Shop"
        assert data["notes"] == ""
        assert "payee" not in data
        assert "category" not in data


class TestRawTransaction:
    """Tests for RawTransaction defaults."""

    def test_all_fields_optional(self):
        raw = RawTransaction()
        assert raw.account is None
        assert raw.amount is None
        assert raw.subheading is None
