from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from django.db import DatabaseError, transaction

from core.services import record_history
from employees.services import DriverStore

from ..dataclasses import (
    DEFAULT_CONSTANTS,
    AcceptedProductLine,
    LedgerConstants,
    TransferIssue,
    TransferOutcome,
    TransferredProductLine,
)
from ..models import DailyTrip, TripLine
from .bookkeeping import sync_running_balance_if_latest, trip_snapshot
from .chronology import BalanceResolver
from .figures import apply_figures, compute_trip_figures
from .stores import PendingTransferStore, ProductStore, TripStore

logger = logging.getLogger(__name__)


def group_by_receiver(transfers: Iterable[TransferredProductLine]) -> "OrderedDict[str, List[TransferredProductLine]]":
    groups: "OrderedDict[str, List[TransferredProductLine]]" = OrderedDict()
    for line in transfers:
        groups.setdefault(line.receiving_driver_id, []).append(line)
    return groups


def as_accepted(line: TransferredProductLine, source_trip_id: int) -> AcceptedProductLine:
    return AcceptedProductLine(
        product_id=line.product_id,
        product_name=line.product_name,
        category=line.category,
        quantity=line.quantity,
        unit_price=line.unit_price,
        sending_driver_id=line.sending_driver_id,
        sending_driver_name=line.sending_driver_name,
        source_trip_id=source_trip_id,
    )


def as_pending(line: AcceptedProductLine, receiver_id: str, receiver_name: str) -> TransferredProductLine:
    return TransferredProductLine(
        product_id=line.product_id,
        product_name=line.product_name,
        category=line.category,
        quantity=line.quantity,
        unit_price=line.unit_price,
        receiving_driver_id=receiver_id,
        receiving_driver_name=receiver_name,
        sending_driver_id=line.sending_driver_id,
        sending_driver_name=line.sending_driver_name,
    )


def merge_accepted_lines(
    existing: Sequence[AcceptedProductLine],
    source_trip_id: int,
    incoming: Sequence[AcceptedProductLine],
) -> List[AcceptedProductLine]:
    """
    Replace whatever `source_trip_id` previously delivered with `incoming`.

    Lines from other senders are kept as they are. A source trip's lines are
    swapped as a whole, so applying the same transfer twice leaves the
    receiving trip unchanged while repeated lines in one batch all count.
    """
    merged = [line for line in existing if line.source_trip_id != source_trip_id]
    merged.extend(incoming)
    return merged


class TransferCoordinator:
    """Delivers a trip's outgoing transfers to the receiving drivers' trips."""

    def __init__(self, trips=None, pending=None, drivers=None, products=None):
        self.trips = trips or TripStore()
        self.pending = pending or PendingTransferStore()
        self.drivers = drivers or DriverStore()
        self.products = products or ProductStore()

    # ----- screening -----

    def screen(
        self,
        sender_id: str,
        sender_name: str,
        transfers: Sequence[TransferredProductLine],
    ) -> Tuple[List[TransferredProductLine], List[TransferIssue]]:
        """
        Split transfer lines into deliverable ones and per-line reference errors.

        Accepted lines are stamped with the sender identity and the receiver's
        recorded name.
        """
        drivers = self.drivers.known_driver_ids(line.receiving_driver_id for line in transfers)
        products = self.products.known_ids(line.product_id for line in transfers)

        accepted: List[TransferredProductLine] = []
        issues: List[TransferIssue] = []
        for line in transfers:
            reason = None
            if line.receiving_driver_id == sender_id:
                reason = "Cannot transfer products to the sending driver"
            elif line.receiving_driver_id not in drivers:
                reason = f"Unknown receiving driver: {line.receiving_driver_id}"
            elif line.product_id not in products:
                reason = f"Unknown product: {line.product_id}"
            if reason:
                logger.warning("Rejected transfer line from %s: %s", sender_id, reason)
                issues.append(TransferIssue(line.product_id, line.receiving_driver_id, reason))
                continue
            accepted.append(TransferredProductLine(
                product_id=line.product_id,
                product_name=line.product_name,
                category=line.category,
                quantity=line.quantity,
                unit_price=line.unit_price,
                receiving_driver_id=line.receiving_driver_id,
                receiving_driver_name=line.receiving_driver_name or drivers[line.receiving_driver_id],
                sending_driver_id=sender_id,
                sending_driver_name=sender_name,
            ))
        return accepted, issues

    # ----- reconciliation -----

    def absorb_pending(self, trip_date: date, driver_id: str) -> List[AcceptedProductLine]:
        """Consume pending lines for a trip being created or moved to `trip_date`."""
        return self.pending.consume(trip_date, driver_id)

    def return_to_pending(
        self,
        trip_date: date,
        driver_id: str,
        driver_name: str,
        accepted: Sequence[AcceptedProductLine],
    ) -> List[AcceptedProductLine]:
        """
        Park accepted lines as pending for (trip_date, driver_id) again, so a
        trip recorded later for that key picks them up.

        Lines whose sending trip no longer exists cannot be parked and are
        returned to the caller.
        """
        by_source: "OrderedDict[int, List[TransferredProductLine]]" = OrderedDict()
        orphans: List[AcceptedProductLine] = []
        for line in accepted:
            if line.source_trip_id is None:
                orphans.append(line)
                continue
            by_source.setdefault(line.source_trip_id, []).append(as_pending(line, driver_id, driver_name))
        for source_trip_id, lines in by_source.items():
            self.pending.add(trip_date, driver_id, source_trip_id, lines)
            logger.info("Returned %d line(s) from trip %s to pending for %s on %s",
                        len(lines), source_trip_id, driver_id, trip_date)
        return orphans

    def reconcile(
        self,
        trip: DailyTrip,
        transfers: Sequence[TransferredProductLine],
        constants: LedgerConstants = DEFAULT_CONSTANTS,
        actor=None,
    ) -> TransferOutcome:
        """
        Bring every receiving side in line with `trip`'s current transfers.

        Safe to re-run: receiving trips hold exactly one copy of each line
        from `trip`, and pending lines from `trip` are rebuilt from scratch.
        """
        outcome = TransferOutcome()
        groups = group_by_receiver(transfers)

        targets: Dict[str, Optional[DailyTrip]] = {
            receiver_id: self.trips.find_by_driver_and_date(receiver_id, trip.date)
            for receiver_id in groups
        }
        delivered_ids = {t.pk for t in targets.values() if t is not None}
        stale_ids = self.trips.receiving_trip_ids(trip.pk) - delivered_ids
        stale = [self.trips.get(pk) for pk in sorted(stale_ids)]

        # Previous balances come from one snapshot taken before any write.
        affected = [t for t in targets.values() if t is not None] + stale
        resolver = BalanceResolver(self.trips, self.drivers, constants)
        chronology = resolver.snapshot(t.driver_id for t in affected)
        previous: Dict[int, Decimal] = {
            t.pk: resolver.previous_balance_in(chronology, t.driver_id, t.date, fallback=t.previous_balance)
            for t in affected
        }

        parked = {rid: lines for rid, lines in groups.items() if targets[rid] is None}
        self._park(trip, parked, outcome)

        for receiver_id, lines in groups.items():
            target = targets[receiver_id]
            if target is None:
                continue
            incoming = [as_accepted(line, trip.pk) for line in lines]
            if self._deliver(target.pk, trip, incoming, previous[target.pk], constants, actor, outcome, lines):
                outcome.delivered_to.append(target.pk)

        for target in stale:
            self._deliver(target.pk, trip, [], previous[target.pk], constants, actor, outcome, [])

        if outcome.errors:
            logger.warning("Trip %s: %d transfer line(s) not delivered", trip.pk, len(outcome.errors))
        return outcome

    def _park(self, trip: DailyTrip, parked: Dict[str, List[TransferredProductLine]], outcome: TransferOutcome) -> None:
        try:
            with transaction.atomic():
                self.pending.discard_from_source(trip.pk)
                for receiver_id, lines in parked.items():
                    self.pending.add(trip.date, receiver_id, trip.pk, lines)
        except DatabaseError as exc:
            logger.warning("Could not record pending transfers for trip %s: %s", trip.pk, exc)
            for lines in parked.values():
                outcome.errors.extend(
                    TransferIssue(line.product_id, line.receiving_driver_id, f"Pending transfer not recorded: {exc}")
                    for line in lines
                )
            return
        for receiver_id, lines in parked.items():
            logger.info("Parked %d line(s) from trip %s for %s on %s", len(lines), trip.pk, receiver_id, trip.date)
            outcome.pending_for.append(receiver_id)

    def _deliver(
        self,
        receiving_trip_id: int,
        source: DailyTrip,
        incoming: List[AcceptedProductLine],
        previous_balance: Decimal,
        constants: LedgerConstants,
        actor,
        outcome: TransferOutcome,
        lines: Sequence[TransferredProductLine],
    ) -> bool:
        try:
            with transaction.atomic():
                receiver = self.trips.get(receiving_trip_id, for_update=True)
                before = trip_snapshot(receiver)
                sold, accepted, outgoing = self.trips.lines_of(receiver)
                merged = merge_accepted_lines(accepted, source.pk, incoming)

                figures = compute_trip_figures(
                    sold_lines=sold,
                    accepted_lines=merged,
                    outgoing_transfers=outgoing,
                    collection_amount=receiver.collection_amount,
                    expiry_amount=receiver.expiry_amount,
                    discount_amount=receiver.discount_amount,
                    previous_balance=previous_balance,
                    constants=constants,
                )
                apply_figures(receiver, figures)
                if actor is not None and getattr(actor, "is_authenticated", False):
                    receiver.updated_by = actor
                self.trips.replace_lines(receiver, TripLine.ACCEPTED, merged)
                self.trips.save(receiver)

                record_history("dailyTrips", receiver.pk, "update", actor=actor, before=before, after=trip_snapshot(receiver))
                sync_running_balance_if_latest(
                    self.trips, self.drivers, receiver,
                    reason=f"Daily trip updated on {receiver.date.isoformat()}",
                    actor=actor,
                )
        except DatabaseError as exc:
            logger.warning("Delivery from trip %s to trip %s failed: %s", source.pk, receiving_trip_id, exc)
            outcome.errors.extend(
                TransferIssue(line.product_id, line.receiving_driver_id, f"Delivery failed: {exc}")
                for line in lines
            )
            return False
        logger.info("Trip %s now holds %d line(s) from trip %s", receiving_trip_id, len(incoming), source.pk)
        return True
