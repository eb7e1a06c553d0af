from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from apps.settlements.processor import get_payment_processor

from .exceptions import LedgerError
from .responses import ledger_error_response
from .serializers import (
    CancelInputSerializer,
    ConfirmPaymentInputSerializer,
    QuoteInputSerializer,
    QuoteSerializer,
    ReservationFilterSerializer,
    ReservationRequestSerializer,
    ReservationSerializer,
)
from .services import (
    accept_reservation,
    cancel_reservation,
    confirm_payment,
    confirm_pickup,
    confirm_return,
    get_reservation_for_party,
    list_reservations_for_user,
    quote_reservation,
    request_reservation,
)


class ReservationPagination(PageNumberPagination):
    """Custom pagination for reservations."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class ReservationViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    Reservations the current user rents or owns.

    All business logic is handled by services.
    Views are thin HTTP handlers only.

    list: Reservations as renter and/or owner (``?role=``, ``?status=``)
    create: Request a reservation
    retrieve: A reservation the user is part of
    """

    serializer_class = ReservationSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = ReservationPagination
    lookup_value_regex = '[0-9a-fA-F-]{36}'

    def get_queryset(self):
        """Validate filters and scope to the user's reservations."""
        filter_serializer = ReservationFilterSerializer(data=self.request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data
        return list_reservations_for_user(
            user=self.request.user,
            role=params.get('role'),
            status=params.get('status'),
        )

    def retrieve(self, request, pk=None):
        """A reservation the user rents or owns."""
        try:
            reservation = get_reservation_for_party(reservation_id=pk, user=request.user)
        except LedgerError as e:
            return ledger_error_response(e)
        return Response(ReservationSerializer(reservation).data)

    @extend_schema(request=ReservationRequestSerializer, responses={201: ReservationSerializer})
    def create(self, request):
        """Request a reservation."""
        serializer = ReservationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            reservation = request_reservation(
                renter=request.user,
                item_owner=data['item_owner'],
                item_id=data['item_id'],
                item_title=data['item_title'],
                start_date=data['start_date'],
                end_date=data['end_date'],
                is_free=data['is_free'],
                daily_rate_cents=data.get('daily_rate_cents'),
                min_days=data['min_days'],
            )
        except LedgerError as e:
            return ledger_error_response(e)

        return Response(ReservationSerializer(reservation).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=QuoteInputSerializer, responses={200: QuoteSerializer})
    @action(detail=False, methods=['post'])
    def quote(self, request):
        """Fee preview for a date range and daily rate."""
        serializer = QuoteInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            quote = quote_reservation(
                start_date=data['start_date'],
                end_date=data['end_date'],
                daily_rate_cents=data.get('daily_rate_cents', 0),
                is_free=data['is_free'],
            )
        except LedgerError as e:
            return ledger_error_response(e)

        return Response(QuoteSerializer(quote).data)

    @extend_schema(request=None, responses={200: ReservationSerializer})
    @action(detail=True, methods=['post'])
    def accept(self, request, pk=None):
        """Accept a reservation request (owner only)."""
        try:
            reservation = accept_reservation(reservation_id=pk, user=request.user)
        except LedgerError as e:
            return ledger_error_response(e)
        return Response(ReservationSerializer(reservation).data)

    @extend_schema(request=CancelInputSerializer, responses={200: ReservationSerializer})
    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        """Withdraw (renter) or reject (owner) a pending request."""
        serializer = CancelInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            reservation = cancel_reservation(
                reservation_id=pk,
                user=request.user,
                reason=serializer.validated_data['reason'],
            )
        except LedgerError as e:
            return ledger_error_response(e)
        return Response(ReservationSerializer(reservation).data)

    @extend_schema(request=ConfirmPaymentInputSerializer, responses={200: ReservationSerializer})
    @action(detail=True, methods=['post'])
    def confirm_payment(self, request, pk=None):
        """Record a completed payment (renter only)."""
        serializer = ConfirmPaymentInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            reservation = confirm_payment(
                reservation_id=pk,
                payment_intent_id=serializer.validated_data['payment_intent_id'],
                processor=get_payment_processor(),
                user=request.user,
            )
        except LedgerError as e:
            return ledger_error_response(e)
        return Response(ReservationSerializer(reservation).data)

    @extend_schema(request=None, responses={200: ReservationSerializer})
    @action(detail=True, methods=['post'])
    def confirm_pickup(self, request, pk=None):
        """Confirm receiving a free item (renter only)."""
        try:
            reservation = confirm_pickup(reservation_id=pk, user=request.user)
        except LedgerError as e:
            return ledger_error_response(e)
        return Response(ReservationSerializer(reservation).data)

    @extend_schema(request=None, responses={200: ReservationSerializer})
    @action(detail=True, methods=['post'])
    def confirm_return(self, request, pk=None):
        """Confirm the item is back (either party)."""
        try:
            reservation = confirm_return(reservation_id=pk, user=request.user)
        except LedgerError as e:
            return ledger_error_response(e)
        return Response(ReservationSerializer(reservation).data)
