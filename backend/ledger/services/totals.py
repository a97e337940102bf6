from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, Sequence

from ..dataclasses import (
    BAKERY,
    CATEGORIES,
    DEFAULT_CONSTANTS,
    FRESH,
    CategoryTotals,
    LedgerConstants,
    ProductTotals,
    TripProductLine,
)
from .utils import ONE, ZERO


def sum_by_category(lines: Iterable[TripProductLine]) -> Dict[str, Decimal]:
    sums = {category: ZERO for category in CATEGORIES}
    for line in lines:
        sums[line.category] = sums.get(line.category, ZERO) + line.value
    return sums


def compute_product_totals(
    sold_lines: Sequence[TripProductLine],
    accepted_lines: Sequence[TripProductLine] = (),
    outgoing_transfers: Sequence[TripProductLine] = (),
    constants: LedgerConstants = DEFAULT_CONSTANTS,
) -> ProductTotals:
    """
    Category totals for one trip.

    Sold and accepted lines are counted together; lines transferred out are
    subtracted before the reduction is applied, then the markup gives the
    grand total. The two category grand totals add up to the trip's
    purchase amount.
    """
    gross = sum_by_category([*sold_lines, *accepted_lines])
    accepted = sum_by_category(accepted_lines)
    transferred = sum_by_category(outgoing_transfers)

    reductions = {FRESH: constants.fresh_reduction, BAKERY: constants.bakery_reduction}
    per_category = {}
    for category in CATEGORIES:
        net = (gross[category] - transferred[category]) * (ONE - reductions[category])
        per_category[category] = CategoryTotals(
            total=gross[category],
            accepted=accepted[category],
            transferred=transferred[category],
            net_total=net,
            grand_total=net * (ONE + constants.grand_markup),
        )

    fresh, bakery = per_category[FRESH], per_category[BAKERY]
    return ProductTotals(
        fresh=fresh,
        bakery=bakery,
        total=fresh.total + bakery.total - fresh.transferred - bakery.transferred,
        net_total=fresh.net_total + bakery.net_total,
        grand_total=fresh.grand_total + bakery.grand_total,
    )
