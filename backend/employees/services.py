from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from django.db import transaction
from django.forms.models import model_to_dict

from core.services import record_history
from ledger.services.errors import InvalidReferenceError
from ledger.services.utils import d, q4

from .models import BalanceHistoryEntry, Employee

logger = logging.getLogger(__name__)


def employee_snapshot(employee: Employee) -> Dict:
    data = model_to_dict(employee)
    data["balance_history"] = [
        {"version": e.version, "balance": e.balance, "reason": e.reason, "updated_at": e.updated_at}
        for e in employee.balance_history.all()
    ]
    return data


def _actor_label(actor) -> str:
    if actor is None or not getattr(actor, "is_authenticated", False):
        return ""
    return actor.get_username()


class DriverStore:
    def get(self, driver_id: str) -> Optional[Employee]:
        return Employee.objects.filter(pk=driver_id).first()

    def get_driver(self, driver_id: str) -> Employee:
        """Return an active driver or raise InvalidReferenceError."""
        employee = self.get(driver_id)
        if employee is None or not employee.is_driver:
            raise InvalidReferenceError(f"Unknown driver: {driver_id}", reference=driver_id)
        return employee

    def lock(self, driver_id: str) -> Employee:
        """Row-lock the driver for the rest of the current transaction."""
        employee = Employee.objects.select_for_update().filter(pk=driver_id).first()
        if employee is None or not employee.is_driver:
            raise InvalidReferenceError(f"Unknown driver: {driver_id}", reference=driver_id)
        return employee

    def known_driver_ids(self, driver_ids: Iterable[str]) -> Dict[str, str]:
        """Map of id -> name for the given ids that are drivers."""
        rows = Employee.objects.filter(pk__in=set(driver_ids), designation="driver").values_list("id", "name")
        return dict(rows)

    def get_running_balance(self, driver_id: str) -> Optional[Decimal]:
        value = Employee.objects.filter(pk=driver_id).values_list("balance", flat=True).first()
        return d(value) if value is not None else None

    @transaction.atomic
    def set_running_balance(self, driver_id: str, value, reason: str = "", actor=None) -> Employee:
        employee = Employee.objects.select_for_update().get(pk=driver_id)
        new_balance = q4(value)
        if employee.balance is not None and d(employee.balance) == new_balance:
            return employee

        before = employee_snapshot(employee)
        last_version = employee.balance_history.order_by("-version").values_list("version", flat=True).first() or 0
        BalanceHistoryEntry.objects.create(
            employee=employee,
            version=last_version + 1,
            balance=new_balance,
            reason=reason,
            updated_by=_actor_label(actor),
        )
        employee.balance = new_balance
        employee.save(update_fields=["balance", "updated_at"])
        logger.info("Driver %s balance set to %s (%s)", driver_id, new_balance, reason or "no reason")

        record_history("employees", employee.pk, "update", actor=actor, before=before, after=employee_snapshot(employee))
        return employee

    @transaction.atomic
    def replace_balance_history(self, driver_id: str, entries: List[Dict], actor=None) -> Employee:
        """Replace a driver's history with already-upgraded entries (see employees.legacy)."""
        employee = Employee.objects.select_for_update().get(pk=driver_id)
        before = employee_snapshot(employee)
        employee.balance_history.all().delete()
        BalanceHistoryEntry.objects.bulk_create([
            BalanceHistoryEntry(
                employee=employee,
                version=entry["version"],
                balance=q4(entry["balance"]),
                reason=entry.get("reason", ""),
                updated_by=entry.get("updated_by", ""),
                updated_at=entry["updated_at"],
            )
            for entry in entries
        ])
        if entries:
            employee.balance = q4(max(entries, key=lambda e: e["version"])["balance"])
            employee.save(update_fields=["balance", "updated_at"])
        record_history("employees", employee.pk, "update", actor=actor, before=before, after=employee_snapshot(employee))
        return employee
