from __future__ import annotations

import logging
from bisect import bisect_left
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from ..dataclasses import DEFAULT_CONSTANTS, LedgerConstants, TripMark
from .utils import d

logger = logging.getLogger(__name__)


def _order_key(mark: TripMark):
    created = mark.created_at.timestamp() if isinstance(mark.created_at, datetime) else 0.0
    return (mark.date, created, mark.trip_id or 0)


class TripChronology:
    """
    Trips indexed per driver and sorted by date, then creation time.

    Built once from a snapshot so that a multi-trip reconciliation pass
    resolves every previous balance against the same state.
    """

    def __init__(self, marks: Iterable[TripMark] = ()):
        by_driver: Dict[str, List[TripMark]] = defaultdict(list)
        for mark in marks:
            by_driver[mark.driver_id].append(mark)
        self._by_driver = {driver: sorted(rows, key=_order_key) for driver, rows in by_driver.items()}
        self._dates = {driver: [m.date for m in rows] for driver, rows in self._by_driver.items()}

    def latest_before(self, driver_id: str, target_date: date) -> Optional[TripMark]:
        rows = self._by_driver.get(driver_id)
        if not rows:
            return None
        idx = bisect_left(self._dates[driver_id], target_date)
        return rows[idx - 1] if idx else None

    def latest(self, driver_id: str) -> Optional[TripMark]:
        rows = self._by_driver.get(driver_id)
        return rows[-1] if rows else None

    def trips_for(self, driver_id: str) -> List[TripMark]:
        return list(self._by_driver.get(driver_id, []))


def resolve_previous_balance(
    driver_id: str,
    target_date: date,
    trips: Iterable[TripMark],
    running_balance=None,
    default: Decimal = DEFAULT_CONSTANTS.default_opening_balance,
) -> Decimal:
    """
    Balance of the driver's most recent trip strictly before `target_date`.

    Falls back to the driver's recorded running balance, then to `default`.
    """
    chronology = trips if isinstance(trips, TripChronology) else TripChronology(trips)
    previous = chronology.latest_before(driver_id, target_date)
    if previous is not None:
        return d(previous.balance)
    if running_balance is not None:
        return d(running_balance)
    return d(default)


class BalanceResolver:
    """Previous-balance lookups backed by the trip and driver stores."""

    def __init__(self, trips, drivers, constants: LedgerConstants = DEFAULT_CONSTANTS):
        self.trips = trips
        self.drivers = drivers
        self.constants = constants

    def previous_balance(self, driver_id: str, target_date: date, fallback=None, exclude_id=None) -> Decimal:
        previous = self.trips.find_latest_before(driver_id, target_date, exclude_id=exclude_id)
        if previous is not None:
            return d(previous.balance)
        if fallback is not None:
            return d(fallback)
        return self._fallback(driver_id)

    def snapshot(self, driver_ids: Iterable[str]) -> TripChronology:
        return TripChronology(self.trips.marks_for_drivers(set(driver_ids)))

    def previous_balance_in(self, chronology: TripChronology, driver_id: str, target_date: date, fallback=None) -> Decimal:
        """
        Like previous_balance, against a snapshot. `fallback` replaces the
        running-balance lookup for trips that were already computed once.
        """
        previous = chronology.latest_before(driver_id, target_date)
        if previous is not None:
            return d(previous.balance)
        if fallback is not None:
            return d(fallback)
        return self._fallback(driver_id)

    def _fallback(self, driver_id: str) -> Decimal:
        running = self.drivers.get_running_balance(driver_id)
        if running is not None:
            return d(running)
        logger.debug("No running balance recorded for %s; using default opening balance", driver_id)
        return d(self.constants.default_opening_balance)
