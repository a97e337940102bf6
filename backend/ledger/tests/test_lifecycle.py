from datetime import date
from decimal import Decimal

import pytest

from core.models import History, Setting
from employees.models import Employee
from ledger.models import DailyTrip, PendingTransfer, TripLine
from ledger.services.errors import (
    DuplicateTripError,
    InvalidReferenceError,
    NotFoundError,
    ValidationError,
)
from ledger.services.lifecycle import TripLedger
from ledger.services.transfers import TransferCoordinator

pytestmark = pytest.mark.django_db

D1, D2, D3 = date(2024, 5, 1), date(2024, 5, 2), date(2024, 5, 3)


def sold(product, qty, price):
    return {"product_id": product.id, "product_name": product.name, "category": product.category,
            "quantity": Decimal(qty), "unit_price": Decimal(price)}


def transfer(product, qty, price, receiver):
    return {**sold(product, qty, price), "receiving_driver_id": receiver.id}


def _reload(trip):
    return DailyTrip.objects.get(pk=trip.pk)


def _accepted(trip):
    return list(TripLine.objects.filter(trip=trip, kind=TripLine.ACCEPTED))


def test_worked_example_with_pending_transfer(drivers, products, user):
    A, B = drivers["A"], drivers["B"]
    A.balance = Decimal("100")
    A.save()

    result = TripLedger().create_trip(
        driver_id=A.id,
        date=D1,
        sold_lines=[sold(products["milk"], "10", "100"), sold(products["bread"], "5", "100")],
        outgoing_transfers=[transfer(products["milk"], "2", "100", B)],
        collection_amount=Decimal("1200"),
        expiry_amount=Decimal("50"),
        discount_amount=Decimal("10"),
        purchase_amount=Decimal("99999"),   # ignored
        actor=user,
    )
    trip = _reload(result.trip)

    assert trip.reference == f"TRP-{trip.pk:03d}"
    assert trip.previous_balance == Decimal("100")
    assert trip.purchase_amount == Decimal("1184.4")
    assert trip.total_amount == Decimal("1300")
    assert trip.net_total == Decimal("1128")
    assert trip.expiry_after_tax == Decimal("45")
    assert trip.amount_to_be == Decimal("1139.4")
    assert trip.sales_difference == Decimal("60.6")
    assert trip.profit == Decimal("161.405")
    assert trip.balance == Decimal("201")
    assert trip.created_by == user

    # B has no trip yet, so the line waits
    assert result.transfers.pending_for == [B.id]
    assert result.transfers.delivered
    assert PendingTransfer.objects.filter(date=D1, receiving_driver=B).exists()

    # the new trip is A's latest, so the running balance follows it
    assert Employee.objects.get(pk=A.id).balance == Decimal("201")
    assert History.objects.filter(collection_name="dailyTrips", document_id=str(trip.pk), action="create").exists()


def test_pending_transfer_is_consumed_on_receiver_create(drivers, products):
    A, B = drivers["A"], drivers["B"]
    ledger = TripLedger()
    sender = ledger.create_trip(
        driver_id=A.id, date=D1,
        sold_lines=[sold(products["milk"], "10", "100")],
        outgoing_transfers=[transfer(products["milk"], "2", "100", B)],
    ).trip

    receiver = ledger.create_trip(driver_id=B.id, date=D1).trip

    lines = _accepted(receiver)
    assert len(lines) == 1
    assert lines[0].source_trip_id == sender.pk
    assert lines[0].sending_driver_id == A.id
    assert lines[0].sending_driver_name == A.name
    assert not PendingTransfer.objects.filter(date=D1, receiving_driver=B).exists()

    receiver = _reload(receiver)
    assert Decimal(receiver.totals_snapshot["fresh"]["accepted"]) == Decimal("200")
    # 200 * 0.885 * 1.05
    assert receiver.purchase_amount == Decimal("185.85")


def test_transfer_conservation_between_existing_trips(drivers, products):
    A, B = drivers["A"], drivers["B"]
    ledger = TripLedger()
    receiver = ledger.create_trip(driver_id=B.id, date=D1, sold_lines=[sold(products["milk"], "3", "100")]).trip
    before_combined = Decimal("1000") + Decimal("300")

    result = ledger.create_trip(
        driver_id=A.id, date=D1,
        sold_lines=[sold(products["milk"], "10", "100")],
        outgoing_transfers=[transfer(products["milk"], "2", "100", B)],
    )
    assert result.transfers.delivered_to == [receiver.pk]

    sender, receiver = _reload(result.trip), _reload(receiver)
    sender_fresh = sender.totals_snapshot["fresh"]
    receiver_fresh = receiver.totals_snapshot["fresh"]
    assert Decimal(receiver_fresh["total"]) == Decimal("500")
    assert Decimal(sender_fresh["transferred"]) == Decimal("200")
    after_combined = (Decimal(sender_fresh["total"]) - Decimal(sender_fresh["transferred"])
                      + Decimal(receiver_fresh["total"]) - Decimal(receiver_fresh["accepted"]))
    assert after_combined + Decimal(receiver_fresh["accepted"]) == before_combined
    assert sender.total_amount + receiver.total_amount == before_combined


def test_reconcile_twice_does_not_double_count(drivers, products):
    A, B = drivers["A"], drivers["B"]
    ledger = TripLedger()
    receiver = ledger.create_trip(driver_id=B.id, date=D1).trip
    result = ledger.create_trip(
        driver_id=A.id, date=D1,
        sold_lines=[sold(products["milk"], "10", "100")],
        outgoing_transfers=[transfer(products["milk"], "2", "100", B), transfer(products["bread"], "1", "100", B)],
    )
    first = _reload(receiver)

    coordinator = TransferCoordinator()
    sender = result.trip
    outgoing = ledger.lines_of(sender)["outgoing_transfers"]
    again = coordinator.reconcile(sender, outgoing)

    assert again.delivered_to == [receiver.pk]
    assert len(_accepted(receiver)) == 2
    assert _reload(receiver).purchase_amount == first.purchase_amount


def test_three_day_balance_chain(drivers, products):
    A = drivers["A"]
    ledger = TripLedger()
    trips = []
    for day, collection in ((D1, "90"), (D2, "120"), (D3, "60")):
        trips.append(_reload(ledger.create_trip(
            driver_id=A.id, date=day,
            sold_lines=[sold(products["milk"], "1", "100")],
            collection_amount=Decimal(collection),
        ).trip))

    day1, day2, day3 = trips
    assert day1.previous_balance == Decimal("0")
    assert day2.previous_balance == day1.balance
    assert day3.previous_balance == day2.balance
    for prev, trip in ((day1, day2), (day2, day3)):
        expected = (prev.balance + trip.profit - trip.sales_difference).to_integral_value(rounding="ROUND_HALF_UP")
        assert trip.balance == expected


def test_backdated_trip_does_not_become_latest(drivers, products):
    A = drivers["A"]
    ledger = TripLedger()
    later = _reload(ledger.create_trip(driver_id=A.id, date=D3, collection_amount=Decimal("10")).trip)
    ledger.create_trip(driver_id=A.id, date=D1, collection_amount=Decimal("500"))
    assert Employee.objects.get(pk=A.id).balance == later.balance


def test_duplicate_trip_for_same_date(drivers):
    ledger = TripLedger()
    ledger.create_trip(driver_id=drivers["A"].id, date=D1)
    with pytest.raises(DuplicateTripError) as exc:
        ledger.create_trip(driver_id=drivers["A"].id, date=D1)
    assert exc.value.field == "date"
    assert DailyTrip.objects.filter(driver=drivers["A"], date=D1).count() == 1


def test_unknown_sold_product_aborts(drivers):
    with pytest.raises(InvalidReferenceError) as exc:
        TripLedger().create_trip(
            driver_id=drivers["A"].id, date=D1,
            sold_lines=[{"product_id": "PRD-404", "category": "fresh", "quantity": 1, "unit_price": 1}],
        )
    assert exc.value.reference == "PRD-404"
    assert not DailyTrip.objects.exists()


def test_unknown_or_non_driver_raises(office_staff):
    with pytest.raises(InvalidReferenceError):
        TripLedger().create_trip(driver_id="EMP-404", date=D1)
    with pytest.raises(InvalidReferenceError):
        TripLedger().create_trip(driver_id=office_staff.id, date=D1)


@pytest.mark.parametrize("bad_line, field", [
    ({"product_id": "PRD-002", "category": "dairy", "quantity": 1, "unit_price": 1}, "sold_lines"),
    ({"product_id": "PRD-002", "category": "fresh", "quantity": -1, "unit_price": 1}, "sold_lines"),
    ({"product_id": "PRD-002", "category": "fresh", "quantity": 1, "unit_price": "NaN"}, "sold_lines"),
])
def test_malformed_lines_rejected(drivers, products, bad_line, field):
    with pytest.raises(ValidationError) as exc:
        TripLedger().create_trip(driver_id=drivers["A"].id, date=D1, sold_lines=[bad_line])
    assert exc.value.field == field


def test_non_finite_amount_rejected(drivers):
    with pytest.raises(ValidationError) as exc:
        TripLedger().create_trip(driver_id=drivers["A"].id, date=D1, collection_amount="Infinity")
    assert exc.value.field == "collection_amount"


def test_invalid_transfer_lines_do_not_block_sender(drivers, products, office_staff):
    A = drivers["A"]
    result = TripLedger().create_trip(
        driver_id=A.id, date=D1,
        sold_lines=[sold(products["milk"], "10", "100")],
        outgoing_transfers=[
            transfer(products["milk"], "1", "100", office_staff),
            transfer(products["milk"], "1", "100", A),
            {**sold(products["milk"], "1", "100"), "receiving_driver_id": "EMP-404"},
            {"product_id": "PRD-404", "category": "fresh", "quantity": 1, "unit_price": 1,
             "receiving_driver_id": drivers["B"].id},
        ],
    )
    trip = _reload(result.trip)
    assert not result.transfers.delivered
    assert len(result.transfers.errors) == 4
    # rejected lines are not subtracted from the sender
    assert Decimal(trip.totals_snapshot["fresh"]["transferred"]) == Decimal("0")
    assert not TripLine.objects.filter(trip=trip, kind=TripLine.TRANSFERRED).exists()


def test_settings_drive_the_constants(drivers, products):
    Setting.objects.create(key="fresh_reduction_pct", value="0")
    Setting.objects.create(key="grand_markup_pct", value="0")
    trip = TripLedger().create_trip(driver_id=drivers["A"].id, date=D1,
                                    sold_lines=[sold(products["milk"], "1", "100")]).trip
    assert _reload(trip).purchase_amount == Decimal("100")


def test_update_recomputes_and_syncs_latest(drivers, products, user):
    A = drivers["A"]
    ledger = TripLedger()
    day1 = ledger.create_trip(driver_id=A.id, date=D1, sold_lines=[sold(products["milk"], "1", "100")]).trip
    day2 = ledger.create_trip(driver_id=A.id, date=D2, sold_lines=[sold(products["milk"], "1", "100")]).trip
    day2_before = _reload(day2)

    ledger.update_trip(day2.pk, {"collection_amount": Decimal("200")}, actor=user)
    day2_after = _reload(day2)
    assert day2_after.sales_difference != day2_before.sales_difference
    assert day2_after.updated_by == user
    driver = Employee.objects.get(pk=A.id)
    assert driver.balance == day2_after.balance
    assert driver.balance_history.last().reason == f"Daily trip updated on {D2.isoformat()}"

    # editing an older trip leaves later trips and the running balance alone
    ledger.update_trip(day1.pk, {"collection_amount": Decimal("500"), "purchase_amount": Decimal("1")})
    assert _reload(day2).balance == day2_after.balance
    assert _reload(day2).previous_balance == day2_after.previous_balance
    assert Employee.objects.get(pk=A.id).balance == day2_after.balance


def test_update_rejects_duplicate_date_and_driver_change(drivers):
    A = drivers["A"]
    ledger = TripLedger()
    ledger.create_trip(driver_id=A.id, date=D1)
    day2 = ledger.create_trip(driver_id=A.id, date=D2).trip
    with pytest.raises(DuplicateTripError):
        ledger.update_trip(day2.pk, {"date": D1})
    with pytest.raises(ValidationError):
        ledger.update_trip(day2.pk, {"driver_id": drivers["B"].id})
    with pytest.raises(ValidationError):
        ledger.update_trip(day2.pk, {"balance": 5})
    with pytest.raises(NotFoundError):
        ledger.update_trip(99999, {"collection_amount": 1})


def test_update_moves_transfer_to_new_receiver(drivers, products):
    A, B, C = drivers["A"], drivers["B"], drivers["C"]
    ledger = TripLedger()
    to_b = ledger.create_trip(driver_id=B.id, date=D1).trip
    to_c = ledger.create_trip(driver_id=C.id, date=D1).trip
    sender = ledger.create_trip(
        driver_id=A.id, date=D1,
        sold_lines=[sold(products["milk"], "10", "100")],
        outgoing_transfers=[transfer(products["milk"], "2", "100", B)],
    ).trip
    assert len(_accepted(to_b)) == 1

    result = ledger.update_trip(sender.pk, {"outgoing_transfers": [transfer(products["milk"], "2", "100", C)]})

    assert result.transfers.delivered_to == [to_c.pk]
    assert _accepted(to_b) == []
    assert _reload(to_b).purchase_amount == Decimal("0")
    assert len(_accepted(to_c)) == 1


def test_delete_does_not_cascade_and_resyncs_balance(drivers, products, user):
    A = drivers["A"]
    ledger = TripLedger()
    day1 = ledger.create_trip(driver_id=A.id, date=D1, sold_lines=[sold(products["milk"], "1", "100")]).trip
    day2 = _reload(ledger.create_trip(driver_id=A.id, date=D2, sold_lines=[sold(products["milk"], "2", "100")]).trip)
    day3 = ledger.create_trip(driver_id=A.id, date=D3, sold_lines=[sold(products["bread"], "1", "100")]).trip

    balance = ledger.delete_trip(day1.pk, actor=user)
    after = _reload(day2)
    assert after.previous_balance == day2.previous_balance
    assert after.balance == day2.balance
    assert balance == _reload(day3).balance

    ledger.delete_trip(day3.pk)
    driver = Employee.objects.get(pk=A.id)
    assert driver.balance == day2.balance
    assert driver.balance_history.last().reason == f"Daily trip on {D3.isoformat()} deleted"

    ledger.delete_trip(day2.pk)
    assert Employee.objects.get(pk=A.id).balance == Decimal("0")
    assert History.objects.filter(collection_name="dailyTrips", action="delete").count() == 3

    with pytest.raises(NotFoundError):
        ledger.delete_trip(day2.pk)


def test_deleting_sender_drops_its_pending_lines(drivers, products):
    A, B = drivers["A"], drivers["B"]
    ledger = TripLedger()
    sender = ledger.create_trip(
        driver_id=A.id, date=D1,
        sold_lines=[sold(products["milk"], "10", "100")],
        outgoing_transfers=[transfer(products["milk"], "2", "100", B)],
    ).trip
    ledger.delete_trip(sender.pk)
    assert not PendingTransfer.objects.exists()
    assert _accepted(ledger.create_trip(driver_id=B.id, date=D1).trip) == []


def test_product_store_lookups(products):
    from ledger.services.stores import ProductStore

    store = ProductStore()
    assert store.exists("PRD-001")
    assert not store.exists("PRD-404")
    assert store.known_ids(["PRD-001", "PRD-002", "PRD-404"]) == {"PRD-001", "PRD-002"}


def test_moving_a_trip_date_does_not_read_its_own_balance(drivers, products):
    A = drivers["A"]
    ledger = TripLedger()
    trip = _reload(ledger.create_trip(driver_id=A.id, date=D1, sold_lines=[sold(products["milk"], "10", "100")]).trip)
    assert trip.balance != Decimal("0")

    ledger.update_trip(trip.pk, {"date": D2})
    moved = _reload(trip)
    assert moved.date == D2
    assert moved.previous_balance == trip.previous_balance
    assert moved.balance == trip.balance
    assert Employee.objects.get(pk=A.id).balance == trip.balance

    # moving past another trip picks that trip up, never itself
    earlier = _reload(ledger.create_trip(driver_id=A.id, date=D1, collection_amount=Decimal("50")).trip)
    ledger.update_trip(trip.pk, {"date": D3})
    assert _reload(trip).previous_balance == earlier.balance


def test_repeated_transfer_lines_each_count(drivers, products):
    A, B, C = drivers["A"], drivers["B"], drivers["C"]
    ledger = TripLedger()
    to_b = ledger.create_trip(driver_id=B.id, date=D1).trip
    line_b = transfer(products["milk"], "2", "100", B)
    line_c = transfer(products["milk"], "2", "100", C)
    sender = ledger.create_trip(
        driver_id=A.id, date=D1,
        sold_lines=[sold(products["milk"], "10", "100")],
        outgoing_transfers=[line_b, line_b, line_c, line_c],
    ).trip
    # C's lines wait as pending, B's are delivered straight away
    to_c = ledger.create_trip(driver_id=C.id, date=D1).trip

    assert Decimal(_reload(sender).totals_snapshot["fresh"]["transferred"]) == Decimal("800")
    for receiver in (to_b, to_c):
        assert len(_accepted(receiver)) == 2
        assert Decimal(_reload(receiver).totals_snapshot["fresh"]["accepted"]) == Decimal("400")

    TransferCoordinator().reconcile(sender, ledger.lines_of(sender)["outgoing_transfers"])
    assert len(_accepted(to_b)) == 2
    assert Decimal(_reload(to_b).totals_snapshot["fresh"]["accepted"]) == Decimal("400")


def test_deleting_a_receiving_trip_returns_its_lines_to_pending(drivers, products):
    A, B = drivers["A"], drivers["B"]
    ledger = TripLedger()
    receiver = ledger.create_trip(driver_id=B.id, date=D1).trip
    sender = ledger.create_trip(
        driver_id=A.id, date=D1,
        sold_lines=[sold(products["milk"], "10", "100")],
        outgoing_transfers=[transfer(products["milk"], "2", "100", B)],
    ).trip
    assert len(_accepted(receiver)) == 1

    ledger.delete_trip(receiver.pk)
    pending = PendingTransfer.objects.get(date=D1, receiving_driver=B)
    assert [line.source_trip_id for line in pending.lines.all()] == [sender.pk]

    recreated = _reload(ledger.create_trip(driver_id=B.id, date=D1).trip)
    assert Decimal(recreated.totals_snapshot["fresh"]["accepted"]) == Decimal("200")
    assert not PendingTransfer.objects.exists()


def test_date_change_moves_accepted_lines_to_the_new_date(drivers, products):
    A, B, C = drivers["A"], drivers["B"], drivers["C"]
    ledger = TripLedger()
    receiver = ledger.create_trip(driver_id=B.id, date=D1).trip
    from_a = ledger.create_trip(
        driver_id=A.id, date=D1,
        sold_lines=[sold(products["milk"], "10", "100")],
        outgoing_transfers=[transfer(products["milk"], "2", "100", B)],
    ).trip
    from_c = ledger.create_trip(
        driver_id=C.id, date=D2,
        sold_lines=[sold(products["milk"], "10", "100")],
        outgoing_transfers=[transfer(products["milk"], "3", "100", B)],
    ).trip
    assert PendingTransfer.objects.filter(date=D2, receiving_driver=B).exists()

    ledger.update_trip(receiver.pk, {"date": D2})

    assert [line.source_trip_id for line in _accepted(receiver)] == [from_c.pk]
    assert Decimal(_reload(receiver).totals_snapshot["fresh"]["accepted"]) == Decimal("300")
    assert not PendingTransfer.objects.filter(date=D2, receiving_driver=B).exists()
    parked = PendingTransfer.objects.get(date=D1, receiving_driver=B)
    assert [line.source_trip_id for line in parked.lines.all()] == [from_a.pk]
