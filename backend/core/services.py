from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Optional

from django.utils.timezone import now

from ledger.dataclasses import DEFAULT_CONSTANTS, LedgerConstants
from ledger.services.utils import d

from .models import History, Setting

logger = logging.getLogger(__name__)

# settings table key -> LedgerConstants attribute
LEDGER_SETTING_KEYS: Dict[str, str] = {
    "fresh_reduction_pct": "fresh_reduction",
    "bakery_reduction_pct": "bakery_reduction",
    "grand_markup_pct": "grand_markup",
    "expiry_vat_factor": "expiry_vat",
    "expiry_tax_factor": "expiry_tax_factor",
    "fresh_profit_pct": "fresh_profit_pct",
    "bakery_profit_pct": "bakery_profit_pct",
    "default_opening_balance": "default_opening_balance",
}


def default_ledger_settings() -> Dict[str, str]:
    return {key: str(getattr(DEFAULT_CONSTANTS, attr)) for key, attr in LEDGER_SETTING_KEYS.items()}


class SettingsStore:
    def get(self, key: str, default: Any = None) -> Any:
        row = Setting.objects.filter(key=key).first()
        return row.value if row else default

    def upsert(self, key: str, value: Any, user=None) -> Setting:
        setting, created = Setting.objects.update_or_create(
            key=key,
            defaults={"value": value},
        )
        if created and user is not None:
            setting.created_by = user
            setting.save(update_fields=["created_by"])
        logger.info("Setting %s %s", key, "created" if created else "updated")
        return setting

    def ledger_constants(self) -> LedgerConstants:
        """Constants for the trip formulas; absent keys keep their defaults."""
        rows = dict(Setting.objects.filter(key__in=LEDGER_SETTING_KEYS).values_list("key", "value"))
        overrides = {}
        for key, value in rows.items():
            amount = d(value)
            if not amount.is_finite():
                logger.warning("Ignoring non-numeric ledger setting %s=%r", key, value)
                continue
            overrides[LEDGER_SETTING_KEYS[key]] = amount
        return replace(DEFAULT_CONSTANTS, **overrides)


def record_history(
    collection_name: str,
    document_id,
    action: str,
    actor=None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> History:
    if actor is not None and not getattr(actor, "is_authenticated", False):
        actor = None
    return History.objects.create(
        collection_name=collection_name,
        document_id=str(document_id),
        action=action,
        actor=actor,
        before=before,
        after=after,
        timestamp=now(),
    )
