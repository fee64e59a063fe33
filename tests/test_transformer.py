"""Tests for ws_actual.transformer -- raw to canonical conversion and validation."""

from __future__ import annotations

import math
from decimal import Decimal

import pytest

from ws_actual.models import CanonicalTransaction, RawTransaction
from ws_actual.transformer import (
    TransferDirection,
    build_notes,
    build_payee,
    clean_payee_name,
    group_by_account,
    is_debit,
    normalize_transfer_perspective,
    payee_for_type,
    resolve_date,
    should_include_transaction,
    to_cents,
    transfer_target,
    transform,
    transform_batch,
    validate_transaction,
)

MAPPED = {"Chequing", "Savings"}


def _is_mapped(name: str) -> bool:
    return name in MAPPED


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------


class TestToCents:
    """Tests for dollars to cents conversion."""

    def test_half_rounds_away_from_zero(self):
        assert to_cents("10.555") == 1056
        assert to_cents("-10.555") == -1056

    def test_decimal_and_int(self):
        assert to_cents(Decimal("100.50")) == 10050
        assert to_cents(3) == 300

    @pytest.mark.parametrize("value", [None, "", "abc", "NaN"])
    def test_missing_is_nan(self, value):
        assert math.isnan(to_cents(value))


class TestIsDebit:
    """Tests for debit/credit classification."""

    def test_debit_keyword_overrides_positive_amount(self):
        assert is_debit(RawTransaction(transaction_type="payment", amount=Decimal("50.00")))

    def test_negative_deposit_is_debit(self):
        """An explicit negative amount wins over a credit-type keyword."""
        assert is_debit(RawTransaction(transaction_type="deposit", amount=Decimal("-5.00")))

    def test_credit_keyword(self):
        assert not is_debit(RawTransaction(transaction_type="Dividend", amount=Decimal("1.00")))

    def test_default_credit(self):
        assert not is_debit(RawTransaction(transaction_type="Mystery", amount=Decimal("1.00")))


# ---------------------------------------------------------------------------
# transform
# ---------------------------------------------------------------------------


class TestTransform:
    """Tests for single-record transformation."""

    def test_salary_deposit(self):
        """Date, amount, payee and notes for an ordinary deposit."""
        raw = RawTransaction(
            date="2024-01-15",
            filled="2024-01-16T10:01:00Z",
            amount="100.50",
            transaction_type="deposit",
            description="Salary deposit",
            email="u@x.com",
            message="Biweekly",
            transaction_id="t1",
            account="Chequing",
        )
        txn = transform(raw)

        assert txn.date == "2024-01-15"
        assert txn.amount == 10050
        assert txn.payee == "Salary deposit"
        assert "(u@x.com): Biweekly" in txn.notes
        assert txn.notes.endswith("[t1]")
        assert txn.notes == "deposit (u@x.com): Biweekly [t1]"
        assert not txn.is_transfer

    def test_payment_is_negative(self):
        txn = transform(RawTransaction(transaction_type="payment", amount="50.00"))
        assert txn.amount == -5000

    def test_missing_amount_is_nan(self):
        txn = transform(RawTransaction(transaction_type="deposit", description="Ghost"))
        assert math.isnan(txn.amount)

    def test_transfer_between_mapped_accounts(self):
        raw = RawTransaction(
            account="Chequing",
            from_account="Chequing",
            to_account="Savings",
            amount="500.00",
        )
        txn = transform(raw, is_account_mapped=_is_mapped)

        assert txn.is_transfer
        assert txn.transfer_to_account == "Savings"
        assert txn.notes == "Chequing -> Savings"

    def test_transfer_with_unmapped_leg(self):
        raw = RawTransaction(
            account="Chequing",
            from_account="Chequing",
            to_account="Brokerage",
            amount="500.00",
        )
        txn = transform(raw, is_account_mapped=_is_mapped)

        assert not txn.is_transfer
        assert txn.transfer_to_account is None

    def test_transfer_needs_predicate(self):
        raw = RawTransaction(account="Chequing", from_account="Chequing", to_account="Savings")
        assert not transform(raw).is_transfer

    def test_referral_uses_brand_payee(self):
        txn = transform(RawTransaction(description="Referral", amount="25.00"))
        assert txn.payee == "WealthSimple"

    def test_custom_brand_payee(self):
        txn = transform(RawTransaction(description="Interest", amount="0.12"), brand_payee="WS")
        assert txn.payee == "WS"


class TestTransferTarget:
    """Tests for transfer perspective."""

    def test_outbound(self):
        target = transfer_target("Chequing", "Chequing", "Savings")
        assert target.direction is TransferDirection.OUTBOUND
        assert target.account == "Savings"

    def test_inbound(self):
        target = transfer_target("Savings", "Chequing", "Savings")
        assert target.direction is TransferDirection.INBOUND
        assert target.account == "Chequing"


class TestNormalizeTransferPerspective:
    """Tests for re-expressing inbound legs from the source account."""

    def test_inbound_leg_moved_to_source(self):
        raw = RawTransaction(
            account="Savings",
            from_account="Chequing",
            to_account="Savings",
            amount=Decimal("500.00"),
        )
        normalized = normalize_transfer_perspective(raw, _is_mapped)
        assert normalized.account == "Chequing"
        assert normalized.amount == Decimal("-500.00")

    def test_inbound_leg_without_amount_becomes_zero(self):
        raw = RawTransaction(
            account="Savings",
            from_account="Chequing",
            to_account="Savings",
            date="2024-01-16",
        )
        normalized = normalize_transfer_perspective(raw, _is_mapped)
        assert normalized.account == "Chequing"
        assert normalized.amount == Decimal(0)

    def test_outbound_leg_unchanged(self):
        raw = RawTransaction(
            account="Chequing",
            from_account="Chequing",
            to_account="Savings",
            amount=Decimal("-500.00"),
        )
        assert normalize_transfer_perspective(raw, _is_mapped) is raw

    def test_unmapped_unchanged(self):
        raw = RawTransaction(
            account="Brokerage",
            from_account="Chequing",
            to_account="Brokerage",
            amount=Decimal("500.00"),
        )
        assert normalize_transfer_perspective(raw, _is_mapped) is raw


# ---------------------------------------------------------------------------
# Date, notes, payee
# ---------------------------------------------------------------------------


class TestResolveDate:
    """Tests for date fallback."""

    def test_falls_back_to_filled_then_submitted(self):
        assert resolve_date(RawTransaction(filled="2024-01-16T10:01:00Z")) == "2024-01-16"
        assert resolve_date(RawTransaction(submitted="2024-01-14")) == "2024-01-14"

    def test_none_when_absent(self):
        assert resolve_date(RawTransaction()) is None

    def test_non_iso_passed_through(self):
        assert resolve_date(RawTransaction(date="sometime")) == "sometime"


class TestBuildNotes:
    """Tests for notes synthesis."""

    def test_subheading_and_type(self):
        raw = RawTransaction(subheading="Interac e-Transfer", transaction_type="Deposit")
        assert build_notes(raw) == "Interac e-Transfer - Deposit"

    def test_same_subheading_and_type(self):
        raw = RawTransaction(subheading="Purchase", transaction_type="Purchase")
        assert build_notes(raw) == "Purchase"

    def test_id_only_has_no_colon(self):
        raw = RawTransaction(transaction_type="Purchase", transaction_id="tx-1")
        assert build_notes(raw) == "Purchase [tx-1]"

    def test_quantity_uses_colon(self):
        raw = RawTransaction(
            transaction_type="Market buy", filled_quantity="10 shares", transaction_id="o1"
        )
        assert build_notes(raw) == "Market buy: 10 shares [o1]"

    def test_nothing(self):
        assert build_notes(RawTransaction()) == ""


class TestBuildPayee:
    """Tests for payee synthesis."""

    def test_strip_transfer_prefix(self):
        assert build_payee(RawTransaction(description="Transfer to Savings")) == "Savings"

    def test_strip_payment_prefix(self):
        assert build_payee(RawTransaction(description="Payment from ACME Corp")) == "ACME Corp"

    def test_strip_card_suffix(self):
        assert build_payee(RawTransaction(description="Grocer ****1234")) == "Grocer"

    def test_strip_reference_number(self):
        assert build_payee(RawTransaction(description="Hydro Bill 123456")) == "Hydro Bill"

    def test_type_fallback(self):
        assert build_payee(RawTransaction(transaction_type="Interac deposit")) == "Deposit"

    def test_unknown_fallback(self):
        assert build_payee(RawTransaction()) == "Unknown"

    def test_payee_for_type_keeps_raw_type(self):
        assert payee_for_type("Stock lending") == "Stock lending"

    def test_clean_payee_name(self):
        assert clean_payee_name("  Joe's   Bar & Grill!!  ") == "Joe's Bar & Grill"
        assert len(clean_payee_name("x" * 250)) == 100


# ---------------------------------------------------------------------------
# Batch, validation, filtering
# ---------------------------------------------------------------------------


class TestTransformBatch:
    """Tests for batch transformation."""

    def test_drops_nan_amounts(self):
        raws = [
            RawTransaction(account="Chequing", amount="1.00", description="Kept"),
            RawTransaction(account="Chequing", description="Dropped"),
        ]
        result = transform_batch(raws)

        assert [t.payee for t in result.items] == ["Kept"]
        assert result.warnings == ["Skipping transaction with invalid amount (nan): Dropped"]


class TestValidateTransaction:
    """Tests for the pre-import validator."""

    def _txn(self, **kwargs) -> CanonicalTransaction:
        values = dict(date="2024-01-15", account="Chequing", payee="P", notes="", amount=100)
        values.update(kwargs)
        return CanonicalTransaction(**values)

    def test_valid(self):
        result = validate_transaction(self._txn())
        assert result.is_valid
        assert result.errors == []

    def test_all_errors(self):
        result = validate_transaction(self._txn(date=None, account="", amount="1", notes=5))
        assert not result.is_valid
        assert result.errors == [
            "Missing transaction date",
            "Invalid amount",
            "Missing account",
            "Notes must be a string",
        ]


class TestShouldIncludeTransaction:
    """Tests for the investment-internal filter."""

    @pytest.mark.parametrize("txn_type", ["Market buy", "MARKET SELL", "Funds converted"])
    def test_excluded(self, txn_type):
        assert not should_include_transaction(RawTransaction(transaction_type=txn_type))

    @pytest.mark.parametrize("txn_type", [None, "Deposit", "Dividend"])
    def test_included(self, txn_type):
        assert should_include_transaction(RawTransaction(transaction_type=txn_type))


class TestGroupByAccount:
    """Tests for account grouping."""

    def test_first_seen_order(self):
        raws = [
            RawTransaction(account="Savings"),
            RawTransaction(account="Chequing"),
            RawTransaction(account="Savings"),
            RawTransaction(),
        ]
        grouped = group_by_account(raws)
        assert list(grouped) == ["Savings", "Chequing", "Unknown"]
        assert len(grouped["Savings"]) == 2
