"""
Payout release service.

Transfers the owner's share of a returned reservation from the
platform's collected charge to the owner's connected account.

The transfer is a network call that cannot join a database transaction.
It sits between two short transactions:

    1. claim: lock the reservation, make sure no transfer is recorded or
       in flight, stamp ``payout_started_at``;
    2. record: lock again, write ``transfer_id``/``transferred_at`` and
       move the reservation to ``paid_out``.

A crash between the call and step 2 leaves a transfer without a record.
Every request for a reservation uses the same idempotency key, so a
retry returns the original transfer instead of paying twice. The
``reconcile_payouts`` command lists claims that never completed.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from apps.accounts.models import User
from apps.notifications.models import EntityType, NotificationType
from apps.notifications.services import dispatch_notification
from apps.reservations.exceptions import (
    ChargeNotFoundError,
    InvalidTransitionError,
    MissingPaymentIntentError,
    NotReservationOwnerError,
    ReservationNotFoundError,
)
from apps.reservations.models import Reservation, ReservationStatus
from apps.reservations.money import compute_payout_split

from .exceptions import (
    FundsNotYetAvailableError,
    MissingPayoutAccountError,
    PaymentProcessorError,
    PayoutAlreadyReleasedError,
    PayoutInProgressError,
    PayoutOutcomeUnknownError,
    ProcessorConnectionError,
    ZeroPayoutError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayoutResult:
    reservation: Reservation
    transfer_id: str
    transfer_amount_cents: int
    platform_fee_cents: int


def payout_idempotency_key(reservation_id) -> str:
    return f"payout-{reservation_id}"


def claim_is_stale(started_at: Optional[datetime], now: datetime) -> bool:
    if started_at is None:
        return True
    return now - started_at >= timedelta(minutes=settings.PAYOUT_CLAIM_STALE_MINUTES)


def _assert_release_eligible(reservation: Reservation):
    if reservation.payout_released:
        raise PayoutAlreadyReleasedError(
            'Payout was already released for this reservation',
            current_state=str(reservation.status),
        )
    if reservation.status != ReservationStatus.RETURNED:
        raise InvalidTransitionError(
            f"Payout requires a returned reservation, status is '{reservation.status}'",
            current_state=str(reservation.status),
            required_state=[str(ReservationStatus.RETURNED)],
        )


def _resolve_charge(reservation: Reservation, processor):
    charge_id = reservation.charge_id
    if not charge_id:
        intent = processor.retrieve_payment_intent(reservation.payment_intent_id)
        charge_id = intent.latest_charge_id
    if not charge_id:
        raise ChargeNotFoundError(
            f'Payment intent {reservation.payment_intent_id} has no charge'
        )
    charge = processor.retrieve_charge(charge_id)
    if not charge.captured or not charge.balance_transaction_id:
        raise ChargeNotFoundError(f'Charge {charge_id} is not captured')
    return charge


@transaction.atomic
def _claim_payout(reservation_id, now):
    reservation = Reservation.objects.select_for_update().get(id=reservation_id)
    _assert_release_eligible(reservation)
    if not claim_is_stale(reservation.payout_started_at, now):
        raise PayoutInProgressError(
            'A payout for this reservation is already in progress',
            current_state=str(reservation.status),
        )
    reservation.payout_started_at = now
    reservation.save(update_fields=['payout_started_at', 'updated_at'])
    return reservation


@transaction.atomic
def _release_claim(reservation_id):
    Reservation.objects.select_for_update().filter(
        id=reservation_id, transfer_id=''
    ).update(payout_started_at=None)


@transaction.atomic
def _record_transfer(reservation_id, transfer_id):
    reservation = Reservation.objects.select_for_update().get(id=reservation_id)
    reservation.assert_can_transition(ReservationStatus.PAID_OUT)
    reservation.transfer_id = transfer_id
    reservation.transferred_at = timezone.now()
    reservation.status = ReservationStatus.PAID_OUT
    reservation.payout_started_at = None
    reservation.save(update_fields=[
        'transfer_id', 'transferred_at', 'status', 'payout_started_at', 'updated_at',
    ])
    return reservation


def release_payout(
    *,
    reservation_id: UUID,
    requesting_user: User,
    processor,
    now: Optional[datetime] = None,
) -> PayoutResult:
    """
    Release the owner's payout for a returned reservation.

    Checks run in this order, each with its own error:
    reservation exists, requester is the owner, a destination account
    exists, a payment intent exists, the reservation is returned and not
    yet paid out, the intent resolves to a captured charge, the funds are
    available, and the transfer amount is positive.

    Args:
        reservation_id: Reservation to settle.
        requesting_user: Must be the item owner.
        processor: ``PaymentProcessor`` used for lookups and the transfer.
        now: Clock override for the availability gate.

    Raises:
        ReservationNotFoundError, NotReservationOwnerError,
        MissingPayoutAccountError, MissingPaymentIntentError,
        InvalidTransitionError, PayoutAlreadyReleasedError,
        ChargeNotFoundError, FundsNotYetAvailableError, ZeroPayoutError,
        PayoutInProgressError, PaymentProcessorError,
        PayoutOutcomeUnknownError
    """
    now = now or timezone.now()

    try:
        reservation = Reservation.objects.select_related('item_owner').get(id=reservation_id)
    except (Reservation.DoesNotExist, ValueError, DjangoValidationError):
        raise ReservationNotFoundError(f"Reservation {reservation_id} not found")

    if reservation.item_owner_id != requesting_user.pk:
        raise NotReservationOwnerError('Only the item owner can release the payout')

    destination = reservation.owner_stripe_account_id or reservation.item_owner.stripe_account_id
    if not destination:
        raise MissingPayoutAccountError('Connect a payout account before releasing funds')

    if not reservation.payment_intent_id:
        raise MissingPaymentIntentError(
            'Reservation has no payment intent',
            current_state=str(reservation.status),
        )

    _assert_release_eligible(reservation)

    charge = _resolve_charge(reservation, processor)
    balance = processor.retrieve_balance_transaction(charge.balance_transaction_id)
    available_on = datetime.fromtimestamp(balance.available_on_epoch_seconds, tz=dt_timezone.utc)
    if now < available_on:
        logger.info(
            "Payout for reservation %s deferred until %s",
            reservation.id, available_on.isoformat(),
        )
        raise FundsNotYetAvailableError(
            f'Funds become available on {available_on.isoformat()}',
            available_on=available_on,
        )

    platform_fee, transfer_amount = compute_payout_split(reservation.amount_total_cents)
    if transfer_amount <= 0:
        raise ZeroPayoutError('Nothing to transfer for this reservation')

    _claim_payout(reservation.id, now)

    try:
        transfer_id = processor.create_transfer(
            amount=transfer_amount,
            currency=settings.PAYOUT_CURRENCY,
            destination=destination,
            source_charge=charge.id,
            idempotency_key=payout_idempotency_key(reservation.id),
            metadata={'reservation_id': str(reservation.id)},
        )
    except ProcessorConnectionError as exc:
        _release_claim(reservation.id)
        logger.error(
            "Payout for reservation %s has unknown outcome: %s",
            reservation.id, exc,
        )
        raise PayoutOutcomeUnknownError(
            'The payment processor did not answer; the transfer may have been made. '
            'Retrying is safe.'
        ) from exc
    except PaymentProcessorError as exc:
        _release_claim(reservation.id)
        logger.warning(
            "Payout for reservation %s rejected by processor: %s %s",
            reservation.id, exc.code, exc.message,
        )
        raise

    reservation = _record_transfer(reservation.id, transfer_id)
    logger.info(
        "Payout released for reservation %s: transfer %s, %s cents (fee %s)",
        reservation.id, transfer_id, transfer_amount, platform_fee,
    )

    dispatch_notification(
        recipient_id=reservation.item_owner_id,
        type=NotificationType.PAYMENT_UPDATE,
        entity_type=EntityType.RESERVATION,
        entity_id=str(reservation.id),
        title='Payout released',
        metadata={'transfer_id': transfer_id, 'amount_cents': transfer_amount},
    )

    return PayoutResult(
        reservation=reservation,
        transfer_id=transfer_id,
        transfer_amount_cents=transfer_amount,
        platform_fee_cents=platform_fee,
    )
