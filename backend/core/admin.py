from django.contrib import admin

from .models import History, Setting


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Setting)
class SettingAdmin(admin.ModelAdmin):
    list_display = ("key", "value", "created_by", "updated_at")
    search_fields = ("key",)


@admin.register(History)
class HistoryAdmin(ReadOnlyAdmin):
    list_display = ("id", "collection_name", "document_id", "action", "actor", "timestamp")
    list_filter = ("collection_name", "action")
    search_fields = ("document_id",)
