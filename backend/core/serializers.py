from __future__ import annotations

from rest_framework import serializers

from .models import History, Setting
from .services import LEDGER_SETTING_KEYS
from ledger.services.utils import d


class SettingSerializer(serializers.ModelSerializer):
    created_by = serializers.SlugRelatedField(slug_field="username", read_only=True)

    class Meta:
        model = Setting
        fields = ["id", "key", "value", "created_by", "created_at", "updated_at"]
        read_only_fields = ("id", "created_by", "created_at", "updated_at")
        # Upserts go through SettingsStore, so the unique validator must not fire.
        extra_kwargs = {"key": {"validators": []}}

    def validate(self, attrs):
        key, value = attrs.get("key"), attrs.get("value")
        if key in LEDGER_SETTING_KEYS and not d(value).is_finite():
            raise serializers.ValidationError({"value": f"{key} must be a finite number"})
        return attrs


class HistorySerializer(serializers.ModelSerializer):
    actor = serializers.SlugRelatedField(slug_field="username", read_only=True)

    class Meta:
        model = History
        fields = ["id", "collection_name", "document_id", "action", "actor", "before", "after", "timestamp"]
        read_only_fields = fields
