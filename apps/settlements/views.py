from rest_framework import serializers as drf_serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from apps.reservations.exceptions import LedgerError
from apps.reservations.responses import ledger_error_response
from apps.reservations.serializers import ReservationSerializer

from .processor import get_payment_processor
from .services import release_payout


# Response serializers for API documentation
class PayoutReleaseResponseSerializer(drf_serializers.Serializer):
    transfer_id = drf_serializers.CharField()
    transfer_amount_cents = drf_serializers.IntegerField()
    platform_fee_cents = drf_serializers.IntegerField()
    reservation = ReservationSerializer()


@extend_schema(request=None, responses={200: PayoutReleaseResponseSerializer})
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def release_reservation_payout(request, reservation_id):
    """
    Release the owner's payout for a returned reservation.

    Answers 409 with ``available_on`` while the charge's funds are still
    pending, 502 when the processor rejects the transfer and 504 when
    the transfer outcome is unknown.
    """
    try:
        result = release_payout(
            reservation_id=reservation_id,
            requesting_user=request.user,
            processor=get_payment_processor(),
        )
    except LedgerError as e:
        return ledger_error_response(e)

    return Response({
        'transfer_id': result.transfer_id,
        'transfer_amount_cents': result.transfer_amount_cents,
        'platform_fee_cents': result.platform_fee_cents,
        'reservation': ReservationSerializer(result.reservation).data,
    })
