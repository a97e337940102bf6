from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from django.test import SimpleTestCase

from ledger.dataclasses import TripMark
from ledger.services.chronology import TripChronology, resolve_previous_balance

T0 = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def mark(trip_id, driver, day, balance, minutes=0):
    return TripMark(trip_id, driver, date(2024, 3, day), T0 + timedelta(minutes=minutes), Decimal(balance))


class ChronologyTests(SimpleTestCase):
    def setUp(self):
        # inserted out of order on purpose
        self.marks = [
            mark(3, "EMP-001", 5, "300"),
            mark(1, "EMP-001", 1, "100"),
            mark(2, "EMP-001", 3, "200"),
            mark(9, "EMP-002", 2, "-50"),
        ]

    def test_latest_strictly_before(self):
        chron = TripChronology(self.marks)
        self.assertEqual(chron.latest_before("EMP-001", date(2024, 3, 5)).trip_id, 2)
        self.assertEqual(chron.latest_before("EMP-001", date(2024, 3, 4)).trip_id, 2)
        self.assertEqual(chron.latest_before("EMP-001", date(2024, 3, 2)).trip_id, 1)
        self.assertIsNone(chron.latest_before("EMP-001", date(2024, 3, 1)))
        self.assertEqual(chron.latest("EMP-001").trip_id, 3)
        self.assertEqual([m.trip_id for m in chron.trips_for("EMP-001")], [1, 2, 3])

    def test_same_date_ties_go_to_latest_created(self):
        marks = [mark(1, "EMP-001", 1, "10", minutes=30), mark(2, "EMP-001", 1, "20", minutes=5)]
        chron = TripChronology(marks)
        self.assertEqual(chron.latest_before("EMP-001", date(2024, 3, 2)).trip_id, 1)

    def test_resolve_falls_back_to_running_balance_then_default(self):
        self.assertEqual(resolve_previous_balance("EMP-001", date(2024, 3, 4), self.marks), Decimal("200"))
        self.assertEqual(
            resolve_previous_balance("EMP-001", date(2024, 3, 1), self.marks, running_balance=Decimal("75")),
            Decimal("75"),
        )
        self.assertEqual(resolve_previous_balance("EMP-003", date(2024, 3, 1), self.marks), Decimal("0"))
        self.assertEqual(
            resolve_previous_balance("EMP-003", date(2024, 3, 1), self.marks, default=Decimal("12")),
            Decimal("12"),
        )
