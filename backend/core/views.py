from __future__ import annotations

from rest_framework import status, views
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from accounts.permissions import IsAdminOrSuperAdmin, IsSuperAdmin

from .models import History, Setting
from .serializers import HistorySerializer, SettingSerializer
from .services import SettingsStore, default_ledger_settings


class HistoryPagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 200


class SettingsView(views.APIView):
    permission_classes = [IsAdminOrSuperAdmin]

    def get(self, request):
        rows = Setting.objects.select_related('created_by').order_by('key')
        # Ledger keys not stored yet are reported with their defaults.
        stored = {row.key for row in rows}
        defaults = {k: v for k, v in default_ledger_settings().items() if k not in stored}
        return Response(
            {"settings": SettingSerializer(rows, many=True).data, "defaults": defaults},
            status=status.HTTP_200_OK,
        )

    def post(self, request):
        ser = SettingSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        setting = SettingsStore().upsert(ser.validated_data["key"], ser.validated_data["value"], user=request.user)
        return Response(SettingSerializer(setting).data, status=status.HTTP_200_OK)


class HistoryListView(views.APIView):
    permission_classes = [IsSuperAdmin]

    def get(self, request):
        qs = History.objects.select_related('actor').order_by('-timestamp', '-id')
        params = request.query_params
        collection = params.get('collection') or params.get('collection_name')
        if collection:
            qs = qs.filter(collection_name=collection)
        document_id = params.get('document_id')
        if document_id:
            qs = qs.filter(document_id=document_id)
        action = params.get('action')
        if action:
            qs = qs.filter(action=action)

        paginator = HistoryPagination()
        page = paginator.paginate_queryset(qs, request, view=self)
        return paginator.get_paginated_response(HistorySerializer(page, many=True).data)
