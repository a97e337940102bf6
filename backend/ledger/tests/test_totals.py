from __future__ import annotations

from decimal import Decimal

from django.test import SimpleTestCase

from ledger.dataclasses import AcceptedProductLine, LedgerConstants, TransferredProductLine, TripProductLine
from ledger.services.totals import compute_product_totals, sum_by_category


def line(category, qty, price, product_id="PRD-X"):
    return TripProductLine(product_id, product_id, category, Decimal(qty), Decimal(price))


class ProductTotalsTests(SimpleTestCase):
    def test_reduction_then_markup_per_category(self):
        sold = [line("fresh", "10", "100", "PRD-002"), line("bakery", "5", "100", "PRD-001")]
        out = [TransferredProductLine("PRD-002", "Milk", "fresh", Decimal("2"), Decimal("100"), receiving_driver_id="EMP-002")]

        totals = compute_product_totals(sold, outgoing_transfers=out)

        self.assertEqual(totals.fresh.total, Decimal("1000"))
        self.assertEqual(totals.fresh.transferred, Decimal("200"))
        self.assertEqual(totals.fresh.net_total, Decimal("708.000"))
        self.assertEqual(totals.fresh.grand_total, Decimal("743.40000"))
        self.assertEqual(totals.bakery.net_total, Decimal("420.00"))
        self.assertEqual(totals.bakery.grand_total, Decimal("441.0000"))
        self.assertEqual(totals.total, Decimal("1300"))
        self.assertEqual(totals.purchase_amount, Decimal("1184.4"))
        self.assertEqual(totals.grand_total, totals.purchase_amount)

    def test_accepted_lines_count_toward_category_total(self):
        accepted = [AcceptedProductLine("PRD-002", "Milk", "fresh", Decimal("2"), Decimal("100"),
                                        sending_driver_id="EMP-001", source_trip_id=7)]
        totals = compute_product_totals([line("fresh", "1", "50")], accepted_lines=accepted)
        self.assertEqual(totals.fresh.total, Decimal("250"))
        self.assertEqual(totals.fresh.accepted, Decimal("200"))
        self.assertEqual(totals.fresh.transferred, Decimal("0"))

    def test_constants_are_parameters(self):
        constants = LedgerConstants(fresh_reduction=Decimal("0"), grand_markup=Decimal("0.10"))
        totals = compute_product_totals([line("fresh", "1", "100")], constants=constants)
        self.assertEqual(totals.fresh.net_total, Decimal("100"))
        self.assertEqual(totals.fresh.grand_total, Decimal("110.00"))

    def test_empty_trip_is_all_zero(self):
        totals = compute_product_totals([])
        self.assertEqual(totals.total, Decimal("0"))
        self.assertEqual(totals.purchase_amount, Decimal("0"))
        snapshot = totals.as_snapshot()
        self.assertEqual(set(snapshot), {"fresh", "bakery", "overall"})

    def test_snapshot_uses_storage_precision(self):
        snapshot = compute_product_totals([line("fresh", "2", "1.5")]).as_snapshot()
        self.assertEqual(snapshot["fresh"]["total"], "3.0000")
        self.assertEqual(snapshot["fresh"]["accepted"], "0.0000")
        self.assertEqual(snapshot["overall"]["total"], "3.0000")

    def test_sum_by_category(self):
        sums = sum_by_category([line("fresh", "2", "1.5"), line("fresh", "1", "1"), line("bakery", "3", "2")])
        self.assertEqual(sums, {"fresh": Decimal("4.0"), "bakery": Decimal("6")})
