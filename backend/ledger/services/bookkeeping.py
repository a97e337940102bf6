from __future__ import annotations

from typing import Dict

from django.forms.models import model_to_dict

from ..models import DailyTrip, TripLine

LINE_FIELDS = (
    "product_id", "product_name", "category", "quantity", "unit_price",
    "receiving_driver_id", "receiving_driver_name",
    "sending_driver_id", "sending_driver_name", "source_trip_id",
)


def trip_snapshot(trip: DailyTrip) -> Dict:
    """Plain dict of a trip and its lines for the audit history."""
    data = model_to_dict(trip)
    data["id"] = trip.pk
    data["created_at"] = trip.created_at
    data["updated_at"] = trip.updated_at
    lines = {TripLine.SOLD: [], TripLine.ACCEPTED: [], TripLine.TRANSFERRED: []}
    for row in trip.lines.order_by("kind", "position", "id"):
        lines[row.kind].append({f: getattr(row, f) for f in LINE_FIELDS})
    data["sold_lines"] = lines[TripLine.SOLD]
    data["accepted_lines"] = lines[TripLine.ACCEPTED]
    data["outgoing_transfers"] = lines[TripLine.TRANSFERRED]
    return data


def sync_running_balance_if_latest(trips, drivers, trip: DailyTrip, reason: str, actor=None) -> bool:
    """
    Write the trip's balance to the driver record when it is the driver's
    latest trip (by date, then creation time). Returns True when synced.
    """
    latest = trips.find_latest(trip.driver_id)
    if latest is None or latest.pk != trip.pk:
        return False
    drivers.set_running_balance(trip.driver_id, trip.balance, reason=reason, actor=actor)
    return True
