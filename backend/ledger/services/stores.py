from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from products.models import Product

from ..dataclasses import AcceptedProductLine, TransferredProductLine, TripMark, TripProductLine
from ..models import DailyTrip, PendingTransfer, PendingTransferLine, TripLine
from .errors import NotFoundError
from .utils import d

logger = logging.getLogger(__name__)


def _sold_from_row(row: TripLine) -> TripProductLine:
    return TripProductLine(
        product_id=row.product_id,
        product_name=row.product_name,
        category=row.category,
        quantity=d(row.quantity),
        unit_price=d(row.unit_price),
    )


def _accepted_from_row(row) -> AcceptedProductLine:
    return AcceptedProductLine(
        product_id=row.product_id,
        product_name=row.product_name,
        category=row.category,
        quantity=d(row.quantity),
        unit_price=d(row.unit_price),
        sending_driver_id=row.sending_driver_id,
        sending_driver_name=row.sending_driver_name,
        source_trip_id=row.source_trip_id,
    )


def _transferred_from_row(row: TripLine) -> TransferredProductLine:
    return TransferredProductLine(
        product_id=row.product_id,
        product_name=row.product_name,
        category=row.category,
        quantity=d(row.quantity),
        unit_price=d(row.unit_price),
        receiving_driver_id=row.receiving_driver_id,
        receiving_driver_name=row.receiving_driver_name,
        sending_driver_id=row.sending_driver_id,
        sending_driver_name=row.sending_driver_name,
    )


class TripStore:
    def get(self, trip_id, *, for_update: bool = False) -> DailyTrip:
        qs = DailyTrip.objects.select_for_update() if for_update else DailyTrip.objects
        trip = qs.filter(pk=trip_id).first()
        if trip is None:
            raise NotFoundError(f"Daily trip not found: {trip_id}")
        return trip

    def find_by_driver_and_date(self, driver_id: str, trip_date: date, *, for_update: bool = False) -> Optional[DailyTrip]:
        qs = DailyTrip.objects.select_for_update() if for_update else DailyTrip.objects
        return qs.filter(driver_id=driver_id, date=trip_date).first()

    def find_latest_before(self, driver_id: str, trip_date: date, exclude_id=None) -> Optional[DailyTrip]:
        qs = DailyTrip.objects.filter(driver_id=driver_id, date__lt=trip_date)
        if exclude_id is not None:
            # the row may still carry a date the caller is moving away from
            qs = qs.exclude(pk=exclude_id)
        return qs.order_by("-date", "-created_at", "-id").first()

    def find_latest(self, driver_id: str) -> Optional[DailyTrip]:
        return DailyTrip.objects.filter(driver_id=driver_id).order_by("-date", "-created_at", "-id").first()

    def marks_for_drivers(self, driver_ids: Set[str]) -> List[TripMark]:
        rows = DailyTrip.objects.filter(driver_id__in=driver_ids).values_list(
            "id", "driver_id", "date", "created_at", "balance"
        )
        return [TripMark(trip_id=r[0], driver_id=r[1], date=r[2], created_at=r[3], balance=d(r[4])) for r in rows]

    def receiving_trip_ids(self, source_trip_id: int) -> Set[int]:
        """Trips currently holding accepted lines that came from `source_trip_id`."""
        return set(
            TripLine.objects
            .filter(source_trip_id=source_trip_id, kind=TripLine.ACCEPTED)
            .values_list("trip_id", flat=True)
        )

    def save(self, trip: DailyTrip, update_fields: Optional[Sequence[str]] = None) -> DailyTrip:
        if trip.pk is None:
            trip.save()
            trip.reference = f"TRP-{trip.pk:03d}"
            trip.save(update_fields=["reference"])
        else:
            trip.save(update_fields=update_fields)
        return trip

    def delete(self, trip: DailyTrip) -> None:
        trip.delete()

    def lines_of(self, trip: DailyTrip) -> Tuple[List[TripProductLine], List[AcceptedProductLine], List[TransferredProductLine]]:
        sold, accepted, transferred = [], [], []
        for row in TripLine.objects.filter(trip=trip).order_by("kind", "position", "id"):
            if row.kind == TripLine.SOLD:
                sold.append(_sold_from_row(row))
            elif row.kind == TripLine.ACCEPTED:
                accepted.append(_accepted_from_row(row))
            else:
                transferred.append(_transferred_from_row(row))
        return sold, accepted, transferred

    def replace_lines(self, trip: DailyTrip, kind: str, lines: Iterable[TripProductLine]) -> None:
        TripLine.objects.filter(trip=trip, kind=kind).delete()
        rows = []
        for position, line in enumerate(lines):
            rows.append(TripLine(
                trip=trip,
                kind=kind,
                position=position,
                product_id=line.product_id,
                product_name=line.product_name,
                category=line.category,
                quantity=line.quantity,
                unit_price=line.unit_price,
                receiving_driver_id=getattr(line, "receiving_driver_id", ""),
                receiving_driver_name=getattr(line, "receiving_driver_name", ""),
                sending_driver_id=getattr(line, "sending_driver_id", ""),
                sending_driver_name=getattr(line, "sending_driver_name", ""),
                source_trip_id=getattr(line, "source_trip_id", None),
            ))
        TripLine.objects.bulk_create(rows)


class PendingTransferStore:
    def lines_for(self, trip_date: date, driver_id: str) -> List[AcceptedProductLine]:
        rows = PendingTransferLine.objects.filter(
            pending__date=trip_date, pending__receiving_driver_id=driver_id
        ).order_by("id")
        return [_accepted_from_row(row) for row in rows]

    def consume(self, trip_date: date, driver_id: str) -> List[AcceptedProductLine]:
        """Return the pending lines for (date, driver) and delete the pending record."""
        pending = PendingTransfer.objects.select_for_update().filter(date=trip_date, receiving_driver_id=driver_id).first()
        if pending is None:
            return []
        lines = [_accepted_from_row(row) for row in pending.lines.order_by("id")]
        pending.delete()
        logger.info("Consumed %d pending transfer line(s) for %s on %s", len(lines), driver_id, trip_date)
        return lines

    def discard_from_source(self, source_trip_id: int) -> int:
        deleted, _ = PendingTransferLine.objects.filter(source_trip_id=source_trip_id).delete()
        PendingTransfer.objects.filter(lines__isnull=True).delete()
        return deleted

    def add(self, trip_date: date, receiving_driver_id: str, source_trip_id: int, lines: Iterable[TransferredProductLine]) -> PendingTransfer:
        pending, _ = PendingTransfer.objects.get_or_create(date=trip_date, receiving_driver_id=receiving_driver_id)
        PendingTransferLine.objects.bulk_create([
            PendingTransferLine(
                pending=pending,
                source_trip_id=source_trip_id,
                product_id=line.product_id,
                product_name=line.product_name,
                category=line.category,
                quantity=line.quantity,
                unit_price=line.unit_price,
                receiving_driver_name=line.receiving_driver_name,
                sending_driver_id=line.sending_driver_id,
                sending_driver_name=line.sending_driver_name,
            )
            for line in lines
        ])
        pending.save(update_fields=["updated_at"])
        return pending


class ProductStore:
    def known_ids(self, product_ids: Iterable[str]) -> Set[str]:
        return set(Product.objects.filter(pk__in=set(product_ids)).values_list("id", flat=True))

    def exists(self, product_id: str) -> bool:
        return Product.objects.filter(pk=product_id).exists()
