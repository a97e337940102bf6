import json

from django.core.management.base import BaseCommand, CommandError

from employees.legacy import upgrade_balance_history
from employees.services import DriverStore
from ledger.services.errors import LedgerError


class Command(BaseCommand):
    help = (
        "Import driver balance history from a JSON export. "
        "Expected shape: {\"schema_version\": 1|2, \"histories\": {\"EMP-001\": [...], ...}}"
    )

    def add_arguments(self, parser):
        parser.add_argument("path", help="JSON export to import")

    def handle(self, *args, **opts):
        try:
            with open(opts["path"], encoding="utf-8") as fh:
                payload = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise CommandError(f"Cannot read {opts['path']}: {exc}")

        schema_version = int(payload.get("schema_version", 1))
        histories = payload.get("histories") or {}
        store = DriverStore()

        for driver_id, rows in histories.items():
            if store.get(driver_id) is None:
                self.stdout.write(self.style.WARNING(f"{driver_id}: unknown employee, skipped"))
                continue
            try:
                entries = upgrade_balance_history(rows, schema_version)
            except LedgerError as exc:
                raise CommandError(f"{driver_id}: {exc}")
            employee = store.replace_balance_history(driver_id, entries)
            self.stdout.write(self.style.SUCCESS(
                f"{driver_id}: {len(entries)} entries imported, balance {employee.balance}"
            ))
