"""
Trip lifecycle: create, update and delete daily trips.

Every write runs inside one transaction holding a row lock on the driver,
so two requests for the same driver never interleave. The transfer
fan-out runs after that transaction commits; its failures are reported in
the returned outcome and never undo the trip itself.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from django.db import DatabaseError, IntegrityError, transaction

from core.services import SettingsStore, record_history
from employees.services import DriverStore

from ..dataclasses import (
    CATEGORIES,
    TransferOutcome,
    TransferredProductLine,
    TripProductLine,
    TripSaveResult,
)
from ..models import DailyTrip, TripLine
from .bookkeeping import sync_running_balance_if_latest, trip_snapshot
from .chronology import BalanceResolver
from .errors import DuplicateTripError, InvalidReferenceError, PersistenceError, ValidationError
from .figures import apply_figures, compute_trip_figures
from .stores import PendingTransferStore, ProductStore, TripStore
from .transfers import TransferCoordinator
from .utils import ZERO, d, q4

logger = logging.getLogger(__name__)

AMOUNT_FIELDS = ("collection_amount", "expiry_amount", "discount_amount", "petrol_amount")
UPDATABLE_FIELDS = {"date", "sold_lines", "outgoing_transfers", "driver_id", *AMOUNT_FIELDS}


def _field(line, name: str, default: Any = None) -> Any:
    if isinstance(line, Mapping):
        return line.get(name, default)
    return getattr(line, name, default)


def parse_line(line, field: str) -> TripProductLine:
    """Validate one product line given as a mapping or a TripProductLine."""
    product_id = str(_field(line, "product_id") or "").strip()
    if not product_id:
        raise ValidationError(f"{field}: product_id is required", field=field)
    category = _field(line, "category")
    if category not in CATEGORIES:
        raise ValidationError(f"{field}: invalid category {category!r} for {product_id}", field=field)
    quantity = d(_field(line, "quantity"))
    unit_price = d(_field(line, "unit_price"))
    for name, value in (("quantity", quantity), ("unit_price", unit_price)):
        if not value.is_finite():
            raise ValidationError(f"{field}: {name} of {product_id} must be a finite number", field=field)
        if value < 0:
            raise ValidationError(f"{field}: {name} of {product_id} cannot be negative", field=field)
    return TripProductLine(
        product_id=product_id,
        product_name=_field(line, "product_name") or "",
        category=category,
        quantity=quantity,
        unit_price=unit_price,
    )


def parse_transfer(line) -> TransferredProductLine:
    base = parse_line(line, "outgoing_transfers")
    receiver = str(_field(line, "receiving_driver_id") or "").strip()
    if not receiver:
        raise ValidationError(
            f"outgoing_transfers: receiving_driver_id is required for {base.product_id}",
            field="outgoing_transfers",
        )
    return TransferredProductLine(
        product_id=base.product_id,
        product_name=base.product_name,
        category=base.category,
        quantity=base.quantity,
        unit_price=base.unit_price,
        receiving_driver_id=receiver,
        receiving_driver_name=_field(line, "receiving_driver_name") or "",
    )


def parse_amount(name: str, value) -> Decimal:
    amount = ZERO if value is None else d(value)
    if not amount.is_finite():
        raise ValidationError(f"{name} must be a finite number, got {value!r}", field=name)
    return amount


class TripLedger:
    def __init__(self, trips=None, pending=None, drivers=None, products=None, settings=None, coordinator=None):
        self.trips = trips or TripStore()
        self.pending = pending or PendingTransferStore()
        self.drivers = drivers or DriverStore()
        self.products = products or ProductStore()
        self.settings = settings or SettingsStore()
        self.coordinator = coordinator or TransferCoordinator(
            trips=self.trips, pending=self.pending, drivers=self.drivers, products=self.products
        )

    def _check_products(self, lines: Iterable[TripProductLine]) -> None:
        lines = list(lines)
        known = self.products.known_ids(line.product_id for line in lines)
        for line in lines:
            if line.product_id not in known:
                raise InvalidReferenceError(f"Unknown product: {line.product_id}", reference=line.product_id)

    def _resolver(self, constants) -> BalanceResolver:
        return BalanceResolver(self.trips, self.drivers, constants)

    @staticmethod
    def _stamp(trip: DailyTrip, actor, created: bool = False) -> None:
        if actor is None or not getattr(actor, "is_authenticated", False):
            return
        trip.updated_by = actor
        if created:
            trip.created_by = actor

    # ----- create -----

    def create_trip(
        self,
        *,
        driver_id: str,
        date: date,
        sold_lines: Iterable = (),
        outgoing_transfers: Iterable = (),
        collection_amount=None,
        expiry_amount=None,
        discount_amount=None,
        petrol_amount=None,
        purchase_amount=None,
        actor=None,
    ) -> TripSaveResult:
        """
        Record a driver's trip for one date.

        `purchase_amount` is accepted for API compatibility and ignored; it is
        always derived from the category grand totals.
        """
        amounts = {
            "collection_amount": parse_amount("collection_amount", collection_amount),
            "expiry_amount": parse_amount("expiry_amount", expiry_amount),
            "discount_amount": parse_amount("discount_amount", discount_amount),
            "petrol_amount": parse_amount("petrol_amount", petrol_amount),
        }
        sold = [parse_line(line, "sold_lines") for line in sold_lines]
        transfers = [parse_transfer(line) for line in outgoing_transfers]
        self._check_products(sold)
        constants = self.settings.ledger_constants()

        try:
            with transaction.atomic():
                driver = self.drivers.lock(driver_id)
                if self.trips.find_by_driver_and_date(driver_id, date) is not None:
                    raise DuplicateTripError(driver_id, date)

                deliverable, issues = self.coordinator.screen(driver.pk, driver.name, transfers)
                accepted = self.coordinator.absorb_pending(date, driver_id)
                previous = self._resolver(constants).previous_balance(driver_id, date)
                figures = compute_trip_figures(
                    sold_lines=sold,
                    accepted_lines=accepted,
                    outgoing_transfers=deliverable,
                    collection_amount=amounts["collection_amount"],
                    expiry_amount=amounts["expiry_amount"],
                    discount_amount=amounts["discount_amount"],
                    previous_balance=previous,
                    constants=constants,
                )

                trip = DailyTrip(
                    driver=driver,
                    driver_name=driver.name,
                    date=date,
                    **{name: q4(value) for name, value in amounts.items()},
                )
                apply_figures(trip, figures)
                self._stamp(trip, actor, created=True)
                self.trips.save(trip)
                self.trips.replace_lines(trip, TripLine.SOLD, sold)
                self.trips.replace_lines(trip, TripLine.ACCEPTED, accepted)
                self.trips.replace_lines(trip, TripLine.TRANSFERRED, deliverable)

                record_history("dailyTrips", trip.pk, "create", actor=actor, after=trip_snapshot(trip))
                sync_running_balance_if_latest(
                    self.trips, self.drivers, trip,
                    reason=f"Daily trip created on {date.isoformat()}",
                    actor=actor,
                )
        except IntegrityError as exc:
            # Lost a race on the (driver, date) unique constraint.
            logger.info("Unique constraint hit creating trip for %s on %s: %s", driver_id, date, exc)
            raise DuplicateTripError(driver_id, date) from exc
        except DatabaseError as exc:
            logger.error("Failed to save trip for %s on %s: %s", driver_id, date, exc)
            raise PersistenceError(f"Could not save trip: {exc}") from exc

        logger.info("Created trip %s for %s on %s (balance %s)", trip.reference, driver_id, date, trip.balance)
        outcome = self.coordinator.reconcile(trip, deliverable, constants, actor=actor)
        outcome.errors[:0] = issues
        return TripSaveResult(trip=trip, transfers=outcome)

    # ----- update -----

    def update_trip(self, trip_id, changes: Dict[str, Any], actor=None) -> TripSaveResult:
        changes = dict(changes)
        changes.pop("purchase_amount", None)
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}", field=sorted(unknown)[0])

        amounts = {name: parse_amount(name, changes[name]) for name in AMOUNT_FIELDS if name in changes}
        sold = None
        if "sold_lines" in changes:
            sold = [parse_line(line, "sold_lines") for line in changes["sold_lines"] or ()]
            self._check_products(sold)
        transfers = None
        if "outgoing_transfers" in changes:
            transfers = [parse_transfer(line) for line in changes["outgoing_transfers"] or ()]
        constants = self.settings.ledger_constants()

        issues = []
        try:
            with transaction.atomic():
                trip = self.trips.get(trip_id, for_update=True)
                if changes.get("driver_id") not in (None, trip.driver_id):
                    raise ValidationError("A trip cannot be moved to another driver", field="driver_id")
                self.drivers.lock(trip.driver_id)
                before = trip_snapshot(trip)

                old_date = trip.date
                new_date = changes.get("date") or old_date
                if new_date != old_date:
                    clash = self.trips.find_by_driver_and_date(trip.driver_id, new_date)
                    if clash is not None and clash.pk != trip.pk:
                        raise DuplicateTripError(trip.driver_id, new_date)
                    trip.date = new_date

                current_sold, accepted, outgoing = self.trips.lines_of(trip)
                if new_date != old_date:
                    # Accepted lines only hold between trips of the same date.
                    accepted = self.coordinator.return_to_pending(
                        old_date, trip.driver_id, trip.driver_name, accepted
                    )
                    accepted += self.coordinator.absorb_pending(new_date, trip.driver_id)
                if sold is not None:
                    current_sold = sold
                if transfers is not None:
                    outgoing, issues = self.coordinator.screen(trip.driver_id, trip.driver_name, transfers)
                for name, value in amounts.items():
                    setattr(trip, name, q4(value))

                # A first trip keeps the opening balance it was created with; the
                # running balance may already hold this trip's own result.
                previous = self._resolver(constants).previous_balance(
                    trip.driver_id, trip.date, fallback=trip.previous_balance, exclude_id=trip.pk
                )
                figures = compute_trip_figures(
                    sold_lines=current_sold,
                    accepted_lines=accepted,
                    outgoing_transfers=outgoing,
                    collection_amount=trip.collection_amount,
                    expiry_amount=trip.expiry_amount,
                    discount_amount=trip.discount_amount,
                    previous_balance=previous,
                    constants=constants,
                )
                apply_figures(trip, figures)
                self._stamp(trip, actor)
                self.trips.save(trip)
                if sold is not None:
                    self.trips.replace_lines(trip, TripLine.SOLD, current_sold)
                if new_date != old_date:
                    self.trips.replace_lines(trip, TripLine.ACCEPTED, accepted)
                if transfers is not None:
                    self.trips.replace_lines(trip, TripLine.TRANSFERRED, outgoing)

                record_history("dailyTrips", trip.pk, "update", actor=actor, before=before, after=trip_snapshot(trip))
                sync_running_balance_if_latest(
                    self.trips, self.drivers, trip,
                    reason=f"Daily trip updated on {trip.date.isoformat()}",
                    actor=actor,
                )
        except DatabaseError as exc:
            logger.error("Failed to update trip %s: %s", trip_id, exc)
            raise PersistenceError(f"Could not update trip: {exc}") from exc

        logger.info("Updated trip %s (balance %s)", trip.reference, trip.balance)
        if transfers is None and new_date == old_date:
            return TripSaveResult(trip=trip, transfers=TransferOutcome())
        outcome = self.coordinator.reconcile(trip, outgoing, constants, actor=actor)
        outcome.errors[:0] = issues
        return TripSaveResult(trip=trip, transfers=outcome)

    # ----- delete -----

    def delete_trip(self, trip_id, actor=None) -> Optional[Decimal]:
        """
        Delete a trip and write the driver's new latest balance back to the
        driver record. Later trips keep their stored figures.

        Returns the running balance written to the driver.
        """
        constants = self.settings.ledger_constants()
        try:
            with transaction.atomic():
                trip = self.trips.get(trip_id, for_update=True)
                driver_id, trip_date = trip.driver_id, trip.date
                self.drivers.lock(driver_id)
                before = trip_snapshot(trip)
                pk = trip.pk
                self.pending.discard_from_source(pk)
                # What this trip received waits for the next trip on its date.
                _, accepted, _ = self.trips.lines_of(trip)
                self.coordinator.return_to_pending(trip_date, driver_id, trip.driver_name, accepted)
                self.trips.delete(trip)
                record_history("dailyTrips", pk, "delete", actor=actor, before=before)

                latest = self.trips.find_latest(driver_id)
                balance = d(latest.balance) if latest is not None else d(constants.default_opening_balance)
                self.drivers.set_running_balance(
                    driver_id, balance,
                    reason=f"Daily trip on {trip_date.isoformat()} deleted",
                    actor=actor,
                )
        except DatabaseError as exc:
            logger.error("Failed to delete trip %s: %s", trip_id, exc)
            raise PersistenceError(f"Could not delete trip: {exc}") from exc

        logger.info("Deleted trip %s for %s on %s", pk, driver_id, trip_date)
        return balance

    # ----- queries -----

    def get_trip(self, trip_id) -> DailyTrip:
        return self.trips.get(trip_id)

    def lines_of(self, trip: DailyTrip) -> Dict[str, List]:
        sold, accepted, outgoing = self.trips.lines_of(trip)
        return {"sold_lines": sold, "accepted_lines": accepted, "outgoing_transfers": outgoing}
