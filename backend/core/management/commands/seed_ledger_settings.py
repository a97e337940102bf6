from django.core.management.base import BaseCommand

from core.models import Setting
from core.services import SettingsStore, default_ledger_settings


class Command(BaseCommand):
    help = "Idempotently store the default trip ledger percentages in the settings table."

    def add_arguments(self, parser):
        parser.add_argument("--overwrite", action="store_true", help="Reset keys that already have a value")

    def handle(self, *args, **opts):
        store = SettingsStore()
        for key, value in default_ledger_settings().items():
            if Setting.objects.filter(key=key).exists() and not opts["overwrite"]:
                self.stdout.write(f"{key} already set; skipping")
                continue
            store.upsert(key, value)
            self.stdout.write(self.style.SUCCESS(f"{key} = {value}"))
