from django.contrib import admin

from .models import BalanceHistoryEntry, Employee


class BalanceHistoryInline(admin.TabularInline):
    model = BalanceHistoryEntry
    extra = 0
    can_delete = False
    readonly_fields = ("version", "balance", "reason", "updated_by", "updated_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "designation", "route_name", "balance", "is_active")
    list_filter = ("designation", "is_active")
    search_fields = ("id", "name")
    readonly_fields = ("balance",)
    inlines = [BalanceHistoryInline]
