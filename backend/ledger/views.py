from __future__ import annotations

import logging

from django.utils.dateparse import parse_date

from rest_framework import status, views
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .models import DailyTrip
from .serializers import DailyTripSerializer, DailyTripWriteSerializer
from .services.errors import (
    DuplicateTripError,
    InvalidReferenceError,
    LedgerError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .services.lifecycle import TripLedger

logger = logging.getLogger(__name__)


class StandardResultsSetPagination(PageNumberPagination):
    page_size = 25
    page_size_query_param = 'page_size'
    max_page_size = 100


def _error(exc: LedgerError) -> Response:
    if isinstance(exc, DuplicateTripError):
        return Response({"detail": str(exc), "field": exc.field}, status=status.HTTP_409_CONFLICT)
    if isinstance(exc, ValidationError):
        return Response({"detail": str(exc), "field": exc.field}, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, InvalidReferenceError):
        return Response({"detail": str(exc), "reference": exc.reference}, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, NotFoundError):
        return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, PersistenceError):
        return Response({"detail": str(exc)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
    logger.error("Unhandled ledger error: %s", exc)
    return Response({"detail": str(exc)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


def _saved(result, code=status.HTTP_200_OK) -> Response:
    trip = DailyTrip.objects.prefetch_related('lines').select_related('created_by', 'updated_by').get(pk=result.trip.pk)
    return Response(
        {"trip": DailyTripSerializer(trip).data, "transfers": result.transfers.as_dict()},
        status=code,
    )


class DailyTripListCreateView(views.APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = (DailyTrip.objects
              .select_related('created_by', 'updated_by')
              .prefetch_related('lines')
              .order_by('-date', '-created_at'))
        params = request.query_params
        driver_id = params.get('driverId') or params.get('driver_id')
        if driver_id:
            qs = qs.filter(driver_id=driver_id)

        for name, lookup in (('date', 'date'), ('startDate', 'date__gte'), ('endDate', 'date__lte')):
            raw = params.get(name)
            if not raw:
                continue
            value = parse_date(raw)
            if value is None:
                return Response({"detail": f"Invalid {name}: {raw}"}, status=status.HTTP_400_BAD_REQUEST)
            qs = qs.filter(**{lookup: value})

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(qs, request, view=self)
        return paginator.get_paginated_response(DailyTripSerializer(page, many=True).data)

    def post(self, request):
        ser = DailyTripWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            result = TripLedger().create_trip(actor=request.user, **ser.validated_data)
        except LedgerError as exc:
            return _error(exc)
        return _saved(result, status.HTTP_201_CREATED)


class DailyTripDetailView(views.APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, id):
        trip = (DailyTrip.objects
                .select_related('created_by', 'updated_by')
                .prefetch_related('lines')
                .filter(pk=id)
                .first())
        if trip is None:
            return Response({"detail": f"Daily trip not found: {id}"}, status=status.HTTP_404_NOT_FOUND)
        return Response(DailyTripSerializer(trip).data, status=status.HTTP_200_OK)

    def patch(self, request, id):
        ser = DailyTripWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        try:
            result = TripLedger().update_trip(id, ser.validated_data, actor=request.user)
        except LedgerError as exc:
            return _error(exc)
        return _saved(result)

    def delete(self, request, id):
        try:
            balance = TripLedger().delete_trip(id, actor=request.user)
        except LedgerError as exc:
            return _error(exc)
        return Response({"deleted": id, "driver_balance": str(balance)}, status=status.HTTP_200_OK)
