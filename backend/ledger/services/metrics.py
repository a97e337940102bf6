from __future__ import annotations

from decimal import Decimal

from ..dataclasses import DEFAULT_CONSTANTS, FinancialMetrics, LedgerConstants
from .errors import ValidationError
from .utils import d, round_down_to_whole, round_half_away_from_zero


def _finite(name: str, value) -> Decimal:
    amount = d(value)
    if not amount.is_finite():
        raise ValidationError(f"{name} must be a finite number, got {value!r}", field=name)
    return amount


def expiry_after_tax(expiry_amount, constants: LedgerConstants = DEFAULT_CONSTANTS) -> Decimal:
    """Expiry plus VAT, less the tax factor, floored to a whole amount."""
    expiry = _finite("expiry_amount", expiry_amount)
    return round_down_to_whole(expiry * constants.expiry_vat * constants.expiry_tax_factor)


def compute_financial_metrics(
    *,
    expiry_amount,
    purchase_amount,
    collection_amount,
    discount_amount,
    fresh_net_total,
    bakery_net_total,
    previous_balance,
    constants: LedgerConstants = DEFAULT_CONSTANTS,
) -> FinancialMetrics:
    purchase = _finite("purchase_amount", purchase_amount)
    collection = _finite("collection_amount", collection_amount)
    discount = _finite("discount_amount", discount_amount)
    fresh_net = _finite("fresh_net_total", fresh_net_total)
    bakery_net = _finite("bakery_net_total", bakery_net_total)
    previous = _finite("previous_balance", previous_balance)

    expiry_tax = expiry_after_tax(expiry_amount, constants)
    amount_to_be = purchase - expiry_tax
    sales_difference = collection - amount_to_be
    profit = (
        (fresh_net - expiry_tax) * constants.fresh_profit_pct
        + bakery_net * constants.bakery_profit_pct
        - discount
    )
    balance = round_half_away_from_zero(previous + profit - sales_difference)

    return FinancialMetrics(
        expiry_after_tax=expiry_tax,
        amount_to_be=amount_to_be,
        sales_difference=sales_difference,
        profit=profit,
        balance=balance,
    )
