"""
Balance history schema upgrades.

Exports of driver balance history declare a `schema_version` for the whole
document. Version 1 rows stored the amount as `newBalance` and had no
explicit version numbers; version 2 is the current `BalanceHistoryEntry`
shape. Rows are upgraded here, at the import boundary, so nothing past it
ever sees the old field names.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, List

from django.utils.dateparse import parse_datetime
from django.utils.timezone import is_naive, make_aware, now

from ledger.services.errors import ValidationError
from ledger.services.utils import d

from .models import BalanceHistoryEntry

CURRENT_SCHEMA = BalanceHistoryEntry.SCHEMA_VERSION


def _timestamp(value) -> datetime:
    if isinstance(value, datetime):
        ts = value
    elif value:
        ts = parse_datetime(str(value))
        if ts is None:
            raise ValidationError(f"Invalid timestamp in balance history: {value!r}", field="updatedAt")
    else:
        ts = now()
    return make_aware(ts) if is_naive(ts) else ts


def _v1_to_v2(rows: List[Dict]) -> List[Dict]:
    upgraded = []
    for position, row in enumerate(rows, start=1):
        if "newBalance" not in row:
            raise ValidationError(f"Schema 1 balance entry #{position} has no newBalance", field="newBalance")
        upgraded.append({
            "version": int(row.get("version") or position),
            "balance": row["newBalance"],
            "updatedAt": row.get("updatedAt"),
            "reason": row.get("reason", ""),
            "updatedBy": row.get("updatedBy", ""),
        })
    return upgraded


MIGRATIONS: Dict[int, Callable[[List[Dict]], List[Dict]]] = {
    1: _v1_to_v2,
}


def upgrade_balance_history(rows: List[Dict], schema_version: int) -> List[Dict]:
    """Bring exported rows up to the current schema and normalise them for storage."""
    if schema_version > CURRENT_SCHEMA or schema_version < 1:
        raise ValidationError(f"Unsupported balance history schema: {schema_version}", field="schema_version")
    while schema_version < CURRENT_SCHEMA:
        rows = MIGRATIONS[schema_version](rows)
        schema_version += 1

    entries = []
    for row in rows:
        if row.get("version") is None:
            raise ValidationError("Balance history entry has no version", field="version")
        if row.get("balance") is None:
            raise ValidationError(f"Balance history entry v{row['version']} has no balance", field="balance")
        balance = d(row["balance"])
        if not balance.is_finite():
            raise ValidationError(f"Invalid balance in history entry: {row.get('balance')!r}", field="balance")
        entries.append({
            "version": int(row["version"]),
            "balance": balance,
            "reason": row.get("reason") or "",
            "updated_by": row.get("updatedBy") or "",
            "updated_at": _timestamp(row.get("updatedAt")),
        })
    versions = [e["version"] for e in entries]
    if len(set(versions)) != len(versions):
        raise ValidationError("Duplicate versions in balance history", field="version")
    return sorted(entries, key=lambda e: e["version"])
