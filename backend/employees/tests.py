import json
import os
import tempfile
from decimal import Decimal

import pytest
from django.core.management import CommandError, call_command

from core.models import History
from employees.legacy import upgrade_balance_history
from employees.models import Employee
from employees.services import DriverStore
from ledger.services.errors import InvalidReferenceError, ValidationError

pytestmark = pytest.mark.django_db


def test_schema_1_rows_are_upgraded():
    rows = [
        {"newBalance": 120, "updatedAt": "2024-01-02T08:00:00Z", "reason": "opening"},
        {"newBalance": "95.5", "updatedAt": "2024-01-03T08:00:00", "updatedBy": "clerk"},
    ]
    entries = upgrade_balance_history(rows, schema_version=1)
    assert [e["version"] for e in entries] == [1, 2]
    assert entries[1]["balance"] == Decimal("95.5")
    assert entries[1]["updated_by"] == "clerk"
    assert entries[0]["reason"] == "opening"
    assert all(e["updated_at"].tzinfo is not None for e in entries)


def test_schema_2_rows_pass_through_sorted():
    rows = [
        {"version": 3, "balance": "10", "updatedAt": "2024-01-05T00:00:00Z"},
        {"version": 1, "balance": "5"},
    ]
    assert [e["version"] for e in upgrade_balance_history(rows, schema_version=2)] == [1, 3]


@pytest.mark.parametrize("rows, schema, field", [
    ([{"balance": "1"}], 1, "newBalance"),
    ([{"version": 1}], 2, "balance"),
    ([{"balance": "1"}], 2, "version"),
    ([{"version": 1, "balance": "NaN"}], 2, "balance"),
    ([{"version": 1, "balance": "1"}, {"version": 1, "balance": "2"}], 2, "version"),
    ([{"version": 1, "balance": "1", "updatedAt": "yesterday"}], 2, "updatedAt"),
    ([], 3, "schema_version"),
])
def test_bad_history_rejected(rows, schema, field):
    with pytest.raises(ValidationError) as exc:
        upgrade_balance_history(rows, schema_version=schema)
    assert exc.value.field == field


def test_running_balance_is_versioned(drivers, user):
    store = DriverStore()
    A = drivers["A"]
    assert store.get_running_balance(A.id) is None

    store.set_running_balance(A.id, Decimal("10"), reason="first", actor=user)
    store.set_running_balance(A.id, Decimal("10"), reason="unchanged")
    store.set_running_balance(A.id, Decimal("-4.5"), reason="second")

    A.refresh_from_db()
    assert A.balance == Decimal("-4.5")
    history = list(A.balance_history.values_list("version", "balance", "reason", "updated_by"))
    assert history == [(1, Decimal("10"), "first", "clerk"), (2, Decimal("-4.5"), "second", "")]
    assert History.objects.filter(collection_name="employees", document_id=A.id).count() == 2


def test_driver_lookups(drivers, office_staff):
    store = DriverStore()
    assert store.known_driver_ids([drivers["A"].id, office_staff.id, "EMP-404"]) == {drivers["A"].id: drivers["A"].name}
    with pytest.raises(InvalidReferenceError):
        store.get_driver(office_staff.id)
    assert store.get_driver(drivers["B"].id) == drivers["B"]


def test_import_command_replaces_history(drivers):
    payload = {
        "schema_version": 1,
        "histories": {
            "EMP-001": [{"newBalance": 50}, {"newBalance": 75, "reason": "top up"}],
            "EMP-404": [{"newBalance": 1}],
        },
    }
    with tempfile.NamedTemporaryFile("w", suffix=".json", delete=False) as fh:
        json.dump(payload, fh)
        path = fh.name
    try:
        call_command("import_balance_history", path, verbosity=0)
    finally:
        os.unlink(path)

    driver = Employee.objects.get(pk="EMP-001")
    assert driver.balance == Decimal("75")
    assert list(driver.balance_history.values_list("version", flat=True)) == [1, 2]


def test_import_command_rejects_bad_file(drivers, tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"schema_version": 2, "histories": {"EMP-001": [{"version": 1}]}}))
    with pytest.raises(CommandError):
        call_command("import_balance_history", str(path))
    with pytest.raises(CommandError):
        call_command("import_balance_history", str(tmp_path / "missing.json"))
