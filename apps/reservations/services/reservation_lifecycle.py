"""
Reservation lifecycle service.

Every status change goes through one of these functions. Each runs in a
single transaction with the reservation row locked, checks who is acting
and whether the move is legal, and only then writes. Notifications to
the other party are queued with ``transaction.on_commit`` so they never
fire for a change that rolled back.
"""

import logging
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from apps.accounts.models import User
from apps.notifications.models import EntityType, NotificationType
from apps.notifications.services import dispatch_notification
from apps.reservations.dates import enumerate_inclusive, parse_iso_date, rental_days
from apps.reservations.exceptions import (
    ChargeNotFoundError,
    DateConflictError,
    InvalidTransitionError,
    MissingPaymentIntentError,
    NotReservationOwnerError,
    NotReservationPartyError,
    NotReservationRenterError,
    PaymentAmountMismatchError,
    PaymentIntentInUseError,
    PaymentNotSucceededError,
    ReservationNotFoundError,
    ReservationValidationError,
)
from apps.reservations.models import (
    CANCEL_REASON_MAX_LENGTH,
    BookedDay,
    Reservation,
    ReservationStatus,
)
from apps.reservations.money import FeeBreakdown, compute_fees

logger = logging.getLogger(__name__)

# Only a succeeded intent has funds behind its charge
PAYMENT_INTENT_SUCCEEDED = 'succeeded'


def fees_for_base(base_cents: int) -> FeeBreakdown:
    """Money Engine with the configured fee settings."""
    return compute_fees(
        base_cents,
        service_fee_pct=settings.LEDGER_SERVICE_FEE_PCT,
        stripe_pct=settings.LEDGER_STRIPE_PCT,
        stripe_fixed_cents=settings.LEDGER_STRIPE_FIXED_CENTS,
    )


def _notify_after_commit(reservation, *, recipient_id, type, title, body='', metadata=None):
    payload = {
        'recipient_id': recipient_id,
        'type': type,
        'entity_type': EntityType.RESERVATION,
        'entity_id': str(reservation.id),
        'title': title,
        'body': body,
        'metadata': {'status': str(reservation.status), **(metadata or {})},
    }
    transaction.on_commit(lambda: dispatch_notification(**payload))


def _lock_reservation(reservation_id) -> Reservation:
    try:
        return Reservation.objects.select_for_update().get(id=reservation_id)
    except (Reservation.DoesNotExist, ValueError, DjangoValidationError):
        raise ReservationNotFoundError(f"Reservation {reservation_id} not found")


def _validated_range(start_date, end_date, min_days):
    start = parse_iso_date(start_date)
    end = parse_iso_date(end_date)
    if end < start:
        raise ReservationValidationError('end_date must not be before start_date')
    days = rental_days(start, end)
    if days < max(1, min_days):
        raise ReservationValidationError(f'Reservation must last at least {max(1, min_days)} day(s)')
    return start, end, days


def _first_booked_day(item_id, days, *, exclude_reservation_id=None):
    booked = BookedDay.objects.filter(item_id=item_id, day__in=days)
    if exclude_reservation_id is not None:
        booked = booked.exclude(reservation_id=exclude_reservation_id)
    return booked.order_by('day').values_list('day', flat=True).first()


def quote_reservation(
    *,
    start_date,
    end_date,
    daily_rate_cents: int = 0,
    is_free: bool = False,
) -> dict:
    """Fee preview for a date range. Nothing is persisted."""
    _, _, days = _validated_range(start_date, end_date, 1)
    if is_free:
        return {'days': days, 'base_cents': 0, 'fees': None}
    if not isinstance(daily_rate_cents, int) or daily_rate_cents <= 0:
        raise ReservationValidationError('daily_rate_cents must be a positive integer')
    base_cents = daily_rate_cents * days
    return {
        'days': days,
        'base_cents': base_cents,
        'fees': fees_for_base(base_cents).as_dict(),
    }


@transaction.atomic
def request_reservation(
    *,
    renter: User,
    item_owner: User,
    item_id: str,
    start_date,
    end_date,
    is_free: bool = False,
    daily_rate_cents: Optional[int] = None,
    item_title: str = '',
    min_days: int = 1,
) -> Reservation:
    """
    Create a reservation in ``requested`` state.

    Raises:
        ReservationValidationError: Bad dates, own item, missing rate.
        DateConflictError: Some day is already booked for the item.
    """
    if not item_id:
        raise ReservationValidationError('item_id is required')
    if renter.pk == item_owner.pk:
        raise ReservationValidationError('You cannot reserve your own item')

    start, end, days = _validated_range(start_date, end_date, min_days)

    if is_free:
        daily_rate_cents = 0
    elif not isinstance(daily_rate_cents, int) or isinstance(daily_rate_cents, bool) or daily_rate_cents <= 0:
        raise ReservationValidationError('daily_rate_cents must be a positive integer for paid items')

    conflict = _first_booked_day(item_id, enumerate_inclusive(start, end))
    if conflict is not None:
        raise DateConflictError(
            f'{conflict.isoformat()} is already booked for this item',
            conflicting_day=conflict,
        )

    reservation = Reservation.objects.create(
        renter=renter,
        item_owner=item_owner,
        item_id=item_id,
        item_title=item_title,
        start_date=start,
        end_date=end,
        days=days,
        is_free=is_free,
        daily_rate_cents=daily_rate_cents,
        total_cents=daily_rate_cents * days,
        status=ReservationStatus.REQUESTED,
    )
    logger.info("Reservation %s requested for item %s (%s days)", reservation.id, item_id, days)

    _notify_after_commit(
        reservation,
        recipient_id=item_owner.pk,
        type=NotificationType.RESERVATION_REQUEST,
        title='New reservation request',
        body=f"{renter.get_display_name()} wants to rent {item_title or 'your item'}",
    )
    return reservation


@transaction.atomic
def accept_reservation(*, reservation_id: UUID, user: User) -> Reservation:
    """
    Owner accepts a request. Books the item's days in the same transaction.

    Raises:
        ReservationNotFoundError, NotReservationOwnerError,
        InvalidTransitionError, DateConflictError
    """
    reservation = _lock_reservation(reservation_id)

    if reservation.item_owner_id != user.pk:
        raise NotReservationOwnerError('Only the item owner can accept a reservation')
    reservation.assert_can_transition(ReservationStatus.ACCEPTED)

    days = [parse_iso_date(day) for day in enumerate_inclusive(reservation.start_date, reservation.end_date)]
    conflict = _first_booked_day(reservation.item_id, days, exclude_reservation_id=reservation.id)
    if conflict is not None:
        raise DateConflictError(
            f'{conflict.isoformat()} is already booked for this item',
            conflicting_day=conflict,
        )

    try:
        with transaction.atomic():
            BookedDay.objects.bulk_create([
                BookedDay(item_id=reservation.item_id, day=day, reservation=reservation)
                for day in days
            ])
    except IntegrityError:
        # Another acceptance booked the same days first
        raise DateConflictError('Some of these days were just booked for this item')

    reservation.status = ReservationStatus.ACCEPTED
    reservation.accepted_at = timezone.now()
    reservation.save(update_fields=['status', 'accepted_at', 'updated_at'])
    logger.info("Reservation %s accepted; %s day(s) booked", reservation.id, len(days))

    _notify_after_commit(
        reservation,
        recipient_id=reservation.renter_id,
        type=NotificationType.RESERVATION_STATUS,
        title='Reservation accepted',
        body=f"Your request for {reservation.item_title or 'the item'} was accepted",
    )
    return reservation


@transaction.atomic
def cancel_reservation(*, reservation_id: UUID, user: User, reason: str = '') -> Reservation:
    """
    Cancel a pending request. The renter withdraws it or the owner rejects it.

    Only ``requested`` reservations can be cancelled.
    """
    reservation = _lock_reservation(reservation_id)

    if not reservation.is_party(user):
        raise NotReservationPartyError('You are not part of this reservation')
    reservation.assert_can_transition(ReservationStatus.CANCELLED)

    reservation.status = ReservationStatus.CANCELLED
    reservation.cancelled_by = user
    reservation.cancel_reason = (reason or '').strip()[:CANCEL_REASON_MAX_LENGTH]
    reservation.cancelled_at = timezone.now()
    reservation.save(update_fields=[
        'status', 'cancelled_by', 'cancel_reason', 'cancelled_at', 'updated_at',
    ])

    rejected = user.pk == reservation.item_owner_id
    logger.info(
        "Reservation %s %s by %s",
        reservation.id, 'rejected' if rejected else 'cancelled', user.pk,
    )
    _notify_after_commit(
        reservation,
        recipient_id=reservation.other_party_id(user),
        type=NotificationType.RESERVATION_STATUS,
        title='Reservation rejected' if rejected else 'Reservation cancelled',
        body=reservation.cancel_reason,
        metadata={'reason': reservation.cancel_reason} if reservation.cancel_reason else None,
    )
    return reservation


def confirm_payment(
    *,
    reservation_id: UUID,
    payment_intent_id: str,
    processor,
    user: Optional[User] = None,
) -> Reservation:
    """
    Move an accepted paid-path reservation to ``paid``.

    The payment intent is resolved through ``processor`` before any lock
    is taken. It must have succeeded and its latest charge must be
    captured. The fee breakdown and the charged total are frozen on the
    reservation here and never recomputed.

    A payment intent pays for one reservation only. A repeat confirmation
    with the same payment intent returns the reservation unchanged.

    Raises:
        ReservationNotFoundError, NotReservationRenterError,
        InvalidTransitionError, MissingPaymentIntentError,
        PaymentNotSucceededError, ChargeNotFoundError,
        PaymentAmountMismatchError, PaymentIntentInUseError,
        PaymentProcessorError
    """
    try:
        reservation = Reservation.objects.get(id=reservation_id)
    except (Reservation.DoesNotExist, ValueError, DjangoValidationError):
        raise ReservationNotFoundError(f"Reservation {reservation_id} not found")

    if user is not None and user.pk != reservation.renter_id:
        raise NotReservationRenterError('Only the renter can confirm payment')

    if (reservation.status == ReservationStatus.PAID
            and payment_intent_id
            and reservation.payment_intent_id == payment_intent_id):
        return reservation

    if reservation.is_free:
        raise InvalidTransitionError(
            'Free reservations do not take payments',
            current_state=str(reservation.status),
            required_state=[],
        )
    reservation.assert_can_transition(ReservationStatus.PAID)

    if not payment_intent_id:
        raise MissingPaymentIntentError('payment_intent_id is required')

    intent = processor.retrieve_payment_intent(payment_intent_id)
    if intent.status != PAYMENT_INTENT_SUCCEEDED:
        raise PaymentNotSucceededError(
            f"Payment intent {payment_intent_id} is '{intent.status or 'unknown'}', not succeeded",
            current_state=str(reservation.status),
        )
    if not intent.latest_charge_id:
        raise ChargeNotFoundError(f'Payment intent {payment_intent_id} has no charge')

    charge = processor.retrieve_charge(intent.latest_charge_id)
    if not charge.captured:
        raise ChargeNotFoundError(f'Charge {charge.id} is not captured')

    return _record_payment(
        reservation_id=reservation.id,
        payment_intent_id=payment_intent_id,
        charge_id=charge.id,
        charged_amount=charge.amount,
    )


@transaction.atomic
def _record_payment(*, reservation_id, payment_intent_id, charge_id, charged_amount):
    reservation = _lock_reservation(reservation_id)
    # Re-check under the lock; the status may have moved since the processor call
    reservation.assert_can_transition(ReservationStatus.PAID)

    already_used = (
        Reservation.objects
        .filter(payment_intent_id=payment_intent_id)
        .exclude(id=reservation.id)
        .exists()
    )
    if already_used:
        raise PaymentIntentInUseError(
            f'Payment intent {payment_intent_id} already pays for another reservation',
            current_state=str(reservation.status),
        )

    fees = fees_for_base(reservation.total_cents)
    if charged_amount is not None and charged_amount != fees.total_to_customer:
        raise PaymentAmountMismatchError(
            f'Charged {charged_amount} cents, expected {fees.total_to_customer}',
            current_state=str(reservation.status),
        )

    previous_status = str(reservation.status)
    reservation.payment_intent_id = payment_intent_id
    reservation.charge_id = charge_id
    reservation.fee_breakdown = fees.as_dict()
    reservation.amount_total_cents = fees.total_to_customer
    reservation.status = ReservationStatus.PAID
    reservation.paid_at = timezone.now()
    try:
        with transaction.atomic():
            reservation.save(update_fields=[
                'payment_intent_id', 'charge_id', 'fee_breakdown', 'amount_total_cents',
                'status', 'paid_at', 'updated_at',
            ])
    except IntegrityError:
        # Another reservation stored the same intent after the check above
        raise PaymentIntentInUseError(
            f'Payment intent {payment_intent_id} already pays for another reservation',
            current_state=previous_status,
        )
    logger.info(
        "Reservation %s paid: %s cents via %s",
        reservation.id, fees.total_to_customer, payment_intent_id,
    )

    for recipient_id in (reservation.renter_id, reservation.item_owner_id):
        _notify_after_commit(
            reservation,
            recipient_id=recipient_id,
            type=NotificationType.PAYMENT_UPDATE,
            title='Payment confirmed',
            metadata={'amount_total_cents': fees.total_to_customer},
        )
    return reservation


@transaction.atomic
def confirm_pickup(*, reservation_id: UUID, user: User) -> Reservation:
    """Renter confirms receiving a free item. Terminal for the free path."""
    reservation = _lock_reservation(reservation_id)

    if user.pk != reservation.renter_id:
        raise NotReservationRenterError('Only the renter can confirm pickup')
    if not reservation.is_free:
        raise InvalidTransitionError(
            'Paid reservations must be paid, not picked up directly',
            current_state=str(reservation.status),
            required_state=[],
        )
    reservation.assert_can_transition(ReservationStatus.PICKED_UP)

    reservation.status = ReservationStatus.PICKED_UP
    reservation.picked_up_at = timezone.now()
    reservation.save(update_fields=['status', 'picked_up_at', 'updated_at'])

    _notify_after_commit(
        reservation,
        recipient_id=reservation.item_owner_id,
        type=NotificationType.RESERVATION_STATUS,
        title='Item picked up',
    )
    return reservation


@transaction.atomic
def confirm_return(*, reservation_id: UUID, user: User) -> Reservation:
    """Either party confirms the item is back. Makes the payout eligible."""
    reservation = _lock_reservation(reservation_id)

    if not reservation.is_party(user):
        raise NotReservationPartyError('You are not part of this reservation')
    reservation.assert_can_transition(ReservationStatus.RETURNED)

    reservation.status = ReservationStatus.RETURNED
    reservation.returned_at = timezone.now()
    reservation.save(update_fields=['status', 'returned_at', 'updated_at'])

    _notify_after_commit(
        reservation,
        recipient_id=reservation.other_party_id(user),
        type=NotificationType.RESERVATION_STATUS,
        title='Item returned',
    )
    return reservation


def get_reservation_for_party(*, reservation_id: UUID, user: User) -> Reservation:
    try:
        reservation = Reservation.objects.select_related('renter', 'item_owner').get(id=reservation_id)
    except (Reservation.DoesNotExist, ValueError, DjangoValidationError):
        raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
    if not reservation.is_party(user):
        raise NotReservationPartyError('You are not part of this reservation')
    return reservation


def list_reservations_for_user(
    *,
    user: User,
    role: Optional[str] = None,
    status: Optional[str] = None,
) -> QuerySet:
    """Reservations where ``user`` is renter, owner (``role``), or either."""
    queryset = Reservation.objects.select_related('renter', 'item_owner')
    if role == 'renter':
        queryset = queryset.filter(renter=user)
    elif role == 'owner':
        queryset = queryset.filter(item_owner=user)
    else:
        queryset = queryset.filter(Q(renter=user) | Q(item_owner=user))
    if status:
        queryset = queryset.filter(status=status)
    return queryset
