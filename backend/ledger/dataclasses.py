from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .services.utils import ZERO, q4

FRESH = "fresh"
BAKERY = "bakery"
CATEGORIES = (FRESH, BAKERY)


@dataclass(frozen=True)
class TripProductLine:
    product_id: str
    product_name: str
    category: str
    quantity: Decimal
    unit_price: Decimal

    @property
    def value(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class TransferredProductLine(TripProductLine):
    receiving_driver_id: str = ""
    receiving_driver_name: str = ""
    sending_driver_id: str = ""
    sending_driver_name: str = ""


@dataclass(frozen=True)
class AcceptedProductLine(TripProductLine):
    """A line received from another driver's trip on the same date."""
    sending_driver_id: str = ""
    sending_driver_name: str = ""
    source_trip_id: Optional[int] = None


@dataclass
class CategoryTotals:
    total: Decimal = ZERO
    accepted: Decimal = ZERO
    transferred: Decimal = ZERO
    net_total: Decimal = ZERO
    grand_total: Decimal = ZERO


@dataclass
class ProductTotals:
    fresh: CategoryTotals
    bakery: CategoryTotals
    total: Decimal
    net_total: Decimal
    grand_total: Decimal

    @property
    def purchase_amount(self) -> Decimal:
        return self.fresh.grand_total + self.bakery.grand_total

    def as_snapshot(self) -> Dict[str, Any]:
        return {
            FRESH: {k: str(q4(v)) for k, v in asdict(self.fresh).items()},
            BAKERY: {k: str(q4(v)) for k, v in asdict(self.bakery).items()},
            "overall": {
                "total": str(q4(self.total)),
                "net_total": str(q4(self.net_total)),
                "grand_total": str(q4(self.grand_total)),
            },
        }


@dataclass
class FinancialMetrics:
    expiry_after_tax: Decimal
    amount_to_be: Decimal
    sales_difference: Decimal
    profit: Decimal
    balance: Decimal


@dataclass(frozen=True)
class LedgerConstants:
    """Percentages driving the trip formulas; overridable from the settings table."""
    fresh_reduction: Decimal = Decimal("0.115")
    bakery_reduction: Decimal = Decimal("0.16")
    grand_markup: Decimal = Decimal("0.05")
    expiry_vat: Decimal = Decimal("1.05")
    expiry_tax_factor: Decimal = Decimal("0.87")
    fresh_profit_pct: Decimal = Decimal("0.135")
    bakery_profit_pct: Decimal = Decimal("0.195")
    default_opening_balance: Decimal = ZERO


DEFAULT_CONSTANTS = LedgerConstants()


@dataclass
class TripFigures:
    totals: ProductTotals
    metrics: FinancialMetrics
    previous_balance: Decimal


@dataclass
class TransferIssue:
    product_id: str
    receiving_driver_id: str
    reason: str

    def as_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class TransferOutcome:
    delivered_to: List[int] = field(default_factory=list)  # receiving trip ids
    pending_for: List[str] = field(default_factory=list)  # receiving driver ids
    errors: List[TransferIssue] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return not self.errors

    def as_dict(self) -> Dict[str, Any]:
        return {
            "delivered": self.delivered,
            "delivered_to": list(self.delivered_to),
            "pending_for": list(self.pending_for),
            "errors": [e.as_dict() for e in self.errors],
        }


@dataclass
class TripSaveResult:
    trip: Any
    transfers: TransferOutcome = field(default_factory=TransferOutcome)


@dataclass(frozen=True)
class TripMark:
    """The slice of a persisted trip the balance chronology needs."""
    trip_id: int
    driver_id: str
    date: date
    created_at: Any
    balance: Decimal
