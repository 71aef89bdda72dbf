# Overview: Pytest coverage for payment method code resolution and fee lookup.

from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.services.fee_service import (
    DEFAULT_RATES,
    DEFAULT_SETTLEMENT_DELAY_DAYS,
    MODE_PARCELADO,
    RATE_CODES,
    lookup_fee,
    normalize_installments,
    resolve_fee_policy,
    resolve_method_code,
)


def _rate(id, code, fee):
    return SimpleNamespace(id=id, method_code=code, fee_rate=Decimal(fee))


def _machine(rates, delay=5, mode="ANTECIPADO"):
    return SimpleNamespace(rates=rates, settlement_delay_days=delay, settlement_mode=mode)


class TestResolveMethodCode:

    @pytest.mark.parametrize("method", ["PIX", "VOUCHER", "DEBITO", "pix", " debito "])
    def test_self_coded_methods(self, method):
        assert resolve_method_code(method) == method.strip().upper()

    @pytest.mark.parametrize("installments, code", [
        (None, "CREDITO_1X"),
        (0, "CREDITO_1X"),
        (1, "CREDITO_1X"),
        (3, "CREDITO_3X"),
        ("12", "CREDITO_12X"),
    ])
    def test_credit_carries_installments(self, installments, code):
        assert resolve_method_code("CREDITO", installments) == code

    @pytest.mark.parametrize("method", ["DINHEIRO", "CHEQUE", "CARNE", "BOLETO", "BITCOIN", "", None])
    def test_methods_without_code(self, method):
        assert resolve_method_code(method, 3) is None

    def test_normalize_installments(self):
        assert normalize_installments(None) == 1
        assert normalize_installments(-2) == 1
        assert normalize_installments("abc") == 1
        assert normalize_installments(4) == 4


class TestLookupFee:

    def test_match(self):
        rates = [_rate(1, "DEBITO", "0.02"), _rate(2, "PIX", "0.01")]
        assert lookup_fee("PIX", rates) == Decimal("0.01")

    def test_missing_code_is_free(self):
        assert lookup_fee("CREDITO_7X", [_rate(1, "DEBITO", "0.02")]) == Decimal("0")

    def test_none_code_is_free(self):
        assert lookup_fee(None, [_rate(1, "DEBITO", "0.02")]) == Decimal("0")

    def test_duplicates_earliest_row_wins(self):
        """Rows are scanned by ascending id, regardless of list order or fee size."""
        rates = [_rate(7, "DEBITO", "0.01"), _rate(3, "DEBITO", "0.09")]
        assert lookup_fee("DEBITO", rates) == Decimal("0.09")


class TestResolveFeePolicy:

    def test_no_machine(self):
        assert resolve_fee_policy("CREDITO", 3, None) is None

    def test_method_without_code_ignores_machine(self):
        machine = _machine([_rate(1, "DEBITO", "0.02")])
        assert resolve_fee_policy("DINHEIRO", 1, machine) is None

    def test_policy_from_machine(self):
        machine = _machine([_rate(1, "CREDITO_3X", "0.05")], delay=14, mode="ANTECIPADO")
        policy = resolve_fee_policy("CREDITO", 3, machine)
        assert policy.method_code == "CREDITO_3X"
        assert policy.fee_rate == Decimal("0.05")
        assert policy.settlement_delay_days == 14
        assert policy.settlement_mode == "ANTECIPADO"

    def test_machine_defaults(self):
        machine = _machine([], delay=None, mode=None)
        policy = resolve_fee_policy("PIX", None, machine)
        assert policy.fee_rate == Decimal("0")
        assert policy.settlement_delay_days == DEFAULT_SETTLEMENT_DELAY_DAYS
        assert policy.settlement_mode == MODE_PARCELADO


def test_default_schedule_covers_every_code():
    assert set(RATE_CODES) == set(DEFAULT_RATES)
    assert DEFAULT_RATES["CREDITO_2X"] == Decimal("0.0449")
    assert DEFAULT_RATES["CREDITO_12X"] == Decimal("0.0949")
