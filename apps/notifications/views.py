from rest_framework import mixins, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from apps.reservations.exceptions import LedgerError
from apps.reservations.responses import ledger_error_response

from .serializers import (
    CounterBucketSerializer,
    MarkSeenInputSerializer,
    NotificationFilterSerializer,
    NotificationSerializer,
)
from .services import (
    get_counters,
    list_notifications,
    mark_counters_seen,
    mark_notification_read,
)


class NotificationPagination(PageNumberPagination):
    page_size = 30
    page_size_query_param = 'page_size'
    max_page_size = 100


class NotificationViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    The current user's notifications, newest first.

    list: All notifications (``?unread=true`` for unread only)
    read: Mark one notification as read
    """

    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = NotificationPagination
    lookup_value_regex = '[0-9a-fA-F-]{36}'

    def get_queryset(self):
        filter_serializer = NotificationFilterSerializer(data=self.request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        return list_notifications(
            user=self.request.user,
            unread_only=filter_serializer.validated_data['unread'],
        )

    @extend_schema(request=None, responses={200: NotificationSerializer})
    @action(detail=True, methods=['post'])
    def read(self, request, pk=None):
        """Mark a notification as read."""
        try:
            notification = mark_notification_read(notification_id=pk, user=request.user)
        except LedgerError as e:
            return ledger_error_response(e)
        return Response(NotificationSerializer(notification).data)


def _counters_payload(counters):
    return {**counters.as_dict(), 'last_seen': counters.last_seen or {}}


@extend_schema(responses={200: CounterBucketSerializer})
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def counters(request):
    """Unread counters for the current user."""
    bucket = get_counters(user=request.user)
    return Response(CounterBucketSerializer(_counters_payload(bucket)).data)


@extend_schema(request=MarkSeenInputSerializer, responses={200: CounterBucketSerializer})
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def mark_seen(request):
    """Reset one counter bucket after the user has looked at it."""
    serializer = MarkSeenInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        bucket = mark_counters_seen(user=request.user, bucket=serializer.validated_data['bucket'])
    except LedgerError as e:
        return ledger_error_response(e)
    return Response(CounterBucketSerializer(_counters_payload(bucket)).data)
