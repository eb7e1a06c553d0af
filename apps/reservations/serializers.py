from rest_framework import serializers

from apps.accounts.models import User
from .exceptions import AmountParseError
from .models import Reservation, ReservationStatus, CANCEL_REASON_MAX_LENGTH
from .money import parse_to_cents


# =============================================================================
# Input Serializers
# =============================================================================


class _RatedRangeInputSerializer(serializers.Serializer):
    """
    Shared fields for anything priced over a date range.

    The daily rate may be given as integer cents (``daily_rate_cents``)
    or as a display string (``daily_rate``, e.g. ``"R$ 45,90"``), not both.
    """

    start_date = serializers.DateField()
    end_date = serializers.DateField()
    is_free = serializers.BooleanField(default=False)
    daily_rate_cents = serializers.IntegerField(min_value=1, required=False)
    daily_rate = serializers.CharField(max_length=32, required=False)

    def validate(self, attrs):
        if attrs['end_date'] < attrs['start_date']:
            raise serializers.ValidationError({
                'end_date': 'End date must not be before start date'
            })

        display_rate = attrs.pop('daily_rate', None)
        if display_rate is not None:
            if 'daily_rate_cents' in attrs:
                raise serializers.ValidationError(
                    'Send either daily_rate or daily_rate_cents, not both'
                )
            try:
                attrs['daily_rate_cents'] = parse_to_cents(display_rate)
            except AmountParseError as e:
                raise serializers.ValidationError({'daily_rate': str(e)})
            if attrs['daily_rate_cents'] <= 0:
                raise serializers.ValidationError({'daily_rate': 'Daily rate must be positive'})

        if not attrs['is_free'] and 'daily_rate_cents' not in attrs:
            raise serializers.ValidationError({
                'daily_rate_cents': 'A daily rate is required for paid items'
            })
        return attrs


class ReservationRequestSerializer(_RatedRangeInputSerializer):
    """Validate input for requesting a reservation."""

    item_owner = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    item_id = serializers.CharField(max_length=64)
    item_title = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    min_days = serializers.IntegerField(min_value=1, required=False, default=1)


class QuoteInputSerializer(_RatedRangeInputSerializer):
    """Validate input for a fee preview."""


class CancelInputSerializer(serializers.Serializer):
    reason = serializers.CharField(
        max_length=CANCEL_REASON_MAX_LENGTH,
        required=False,
        allow_blank=True,
        default='',
    )


class ConfirmPaymentInputSerializer(serializers.Serializer):
    payment_intent_id = serializers.CharField(max_length=100)


class ReservationFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for reservation listing.

    Query Parameters:
        role (str): ``renter`` or ``owner``; both when omitted
        status (str): Filter by reservation status
    """

    role = serializers.ChoiceField(choices=['renter', 'owner'], required=False)
    status = serializers.ChoiceField(choices=ReservationStatus.choices, required=False)


# =============================================================================
# Output Serializers
# =============================================================================


class UserMinimalSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(source='get_display_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'display_name']
        read_only_fields = fields


class ReservationSerializer(serializers.ModelSerializer):
    renter = UserMinimalSerializer(read_only=True)
    item_owner = UserMinimalSerializer(read_only=True)

    class Meta:
        model = Reservation
        fields = [
            'id',
            'renter',
            'item_owner',
            'item_id',
            'item_title',
            'start_date',
            'end_date',
            'days',
            'is_free',
            'daily_rate_cents',
            'total_cents',
            'fee_breakdown',
            'amount_total_cents',
            'payment_intent_id',
            'transfer_id',
            'status',
            'cancel_reason',
            'created_at',
            'updated_at',
            'accepted_at',
            'paid_at',
            'picked_up_at',
            'returned_at',
            'cancelled_at',
            'transferred_at',
        ]
        read_only_fields = fields


class FeeBreakdownSerializer(serializers.Serializer):
    base_cents = serializers.IntegerField()
    service_fee = serializers.IntegerField()
    surcharge = serializers.IntegerField()
    app_fee_from_base = serializers.IntegerField()
    owner_payout = serializers.IntegerField()
    total_to_customer = serializers.IntegerField()


class QuoteSerializer(serializers.Serializer):
    days = serializers.IntegerField()
    base_cents = serializers.IntegerField()
    fees = FeeBreakdownSerializer(allow_null=True)
