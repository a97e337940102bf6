from decimal import Decimal

import pytest

from ledger.dataclasses import DEFAULT_CONSTANTS
from ledger.services.errors import ValidationError
from ledger.services.metrics import compute_financial_metrics, expiry_after_tax
from ledger.services.utils import round_half_away_from_zero


def _metrics(**overrides):
    values = dict(
        expiry_amount=Decimal("50"),
        purchase_amount=Decimal("1184.4"),
        collection_amount=Decimal("1200"),
        discount_amount=Decimal("10"),
        fresh_net_total=Decimal("708"),
        bakery_net_total=Decimal("420"),
        previous_balance=Decimal("100"),
    )
    values.update(overrides)
    return compute_financial_metrics(constants=DEFAULT_CONSTANTS, **values)


def test_worked_example():
    m = _metrics()
    assert m.expiry_after_tax == Decimal("45")
    assert m.amount_to_be == Decimal("1139.4")
    assert m.sales_difference == Decimal("60.6")
    assert m.profit == Decimal("161.405")
    # 100 + 161.405 - 60.6 = 200.805
    assert m.balance == Decimal("201")


@pytest.mark.parametrize("expiry, expected", [
    ("0", "0"),
    ("50", "45"),          # 45.675
    ("2000", "1827"),      # exactly 1827, must not come out as 1826
    ("1", "0"),            # 0.9135
])
def test_expiry_after_tax_is_floored(expiry, expected):
    assert expiry_after_tax(Decimal(expiry)) == Decimal(expected)


@pytest.mark.parametrize("value, expected", [
    ("2.5", "3"),
    ("-2.5", "-3"),
    ("196.065", "196"),
    ("-0.4", "0"),
])
def test_round_half_away_from_zero(value, expected):
    assert round_half_away_from_zero(Decimal(value)) == Decimal(expected)


def test_negative_half_balance_rounds_away_from_zero():
    # previous -2.5, no sales, no expiry, no profit
    m = _metrics(expiry_amount=0, purchase_amount=0, collection_amount=0, discount_amount=0,
                 fresh_net_total=0, bakery_net_total=0, previous_balance=Decimal("-2.5"))
    assert m.balance == Decimal("-3")


@pytest.mark.parametrize("field", ["collection_amount", "expiry_amount", "previous_balance"])
@pytest.mark.parametrize("bad", [Decimal("NaN"), Decimal("Infinity"), "not-a-number"])
def test_non_finite_input_is_rejected(field, bad):
    with pytest.raises(ValidationError) as exc:
        _metrics(**{field: bad})
    assert exc.value.field == field
