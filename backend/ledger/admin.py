from django.contrib import admin

from .models import DailyTrip, PendingTransfer, PendingTransferLine, TripLine


class ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class TripLineInline(ReadOnlyInline):
    model = TripLine
    fk_name = "trip"
    fields = ("kind", "product_id", "product_name", "category", "quantity", "unit_price",
              "receiving_driver_id", "sending_driver_id", "source_trip")


class PendingTransferLineInline(ReadOnlyInline):
    model = PendingTransferLine
    fields = ("source_trip", "product_id", "product_name", "category", "quantity", "unit_price", "sending_driver_id")


# Derived figures only change through the trip ledger, never by hand.
@admin.register(DailyTrip)
class DailyTripAdmin(admin.ModelAdmin):
    list_display = ("reference", "driver", "date", "collection_amount", "purchase_amount", "profit", "balance")
    list_filter = ("date",)
    search_fields = ("reference", "driver__id", "driver_name")
    inlines = [TripLineInline]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(PendingTransfer)
class PendingTransferAdmin(admin.ModelAdmin):
    list_display = ("id", "date", "receiving_driver", "updated_at")
    list_filter = ("date",)
    inlines = [PendingTransferLineInline]
