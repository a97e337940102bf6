from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from ..dataclasses import LedgerConstants, TripFigures, TripProductLine
from ..models import DailyTrip
from .metrics import compute_financial_metrics
from .totals import compute_product_totals
from .utils import q4

DERIVED_FIELDS = [
    "purchase_amount",
    "previous_balance",
    "total_amount",
    "net_total",
    "grand_total",
    "expiry_after_tax",
    "amount_to_be",
    "sales_difference",
    "profit",
    "balance",
    "totals_snapshot",
]


def compute_trip_figures(
    *,
    sold_lines: Sequence[TripProductLine],
    accepted_lines: Sequence[TripProductLine],
    outgoing_transfers: Sequence[TripProductLine],
    collection_amount,
    expiry_amount,
    discount_amount,
    previous_balance: Decimal,
    constants: LedgerConstants,
) -> TripFigures:
    """Run the totals calculator, then the metrics calculator on its output."""
    totals = compute_product_totals(sold_lines, accepted_lines, outgoing_transfers, constants)
    metrics = compute_financial_metrics(
        expiry_amount=expiry_amount,
        purchase_amount=totals.purchase_amount,
        collection_amount=collection_amount,
        discount_amount=discount_amount,
        fresh_net_total=totals.fresh.net_total,
        bakery_net_total=totals.bakery.net_total,
        previous_balance=previous_balance,
        constants=constants,
    )
    return TripFigures(totals=totals, metrics=metrics, previous_balance=previous_balance)


def apply_figures(trip: DailyTrip, figures: TripFigures) -> DailyTrip:
    totals, metrics = figures.totals, figures.metrics
    # purchase_amount is never taken from the caller
    trip.purchase_amount = q4(totals.purchase_amount)
    trip.previous_balance = q4(figures.previous_balance)
    trip.total_amount = q4(totals.total)
    trip.net_total = q4(totals.net_total)
    trip.grand_total = q4(totals.grand_total)
    trip.expiry_after_tax = q4(metrics.expiry_after_tax)
    trip.amount_to_be = q4(metrics.amount_to_be)
    trip.sales_difference = q4(metrics.sales_difference)
    trip.profit = q4(metrics.profit)
    trip.balance = q4(metrics.balance)
    trip.totals_snapshot = totals.as_snapshot()
    return trip
