"""
Payout reconciliation.

Finds payout claims that were started but never recorded, which is what
a crash between the transfer call and the write-back leaves behind.
This is a report only; an operator decides what to do with each entry.
"""

from datetime import datetime, timedelta
from typing import Optional

from django.conf import settings
from django.db.models import QuerySet
from django.utils import timezone

from apps.reservations.models import Reservation, ReservationStatus

from .payout_release import payout_idempotency_key


def find_stale_payout_claims(*, now: Optional[datetime] = None,
                             older_than_minutes: Optional[int] = None) -> QuerySet:
    now = now or timezone.now()
    if older_than_minutes is None:
        older_than_minutes = settings.PAYOUT_CLAIM_STALE_MINUTES
    cutoff = now - timedelta(minutes=older_than_minutes)
    return (
        Reservation.objects
        .filter(
            status=ReservationStatus.RETURNED,
            transfer_id='',
            payout_started_at__isnull=False,
            payout_started_at__lte=cutoff,
        )
        .select_related('item_owner')
        .order_by('payout_started_at')
    )


def describe_stale_claim(reservation: Reservation) -> dict:
    return {
        'reservation_id': str(reservation.id),
        'owner': reservation.item_owner.email,
        'payment_intent_id': reservation.payment_intent_id,
        'charge_id': reservation.charge_id,
        'payout_started_at': reservation.payout_started_at.isoformat(),
        'idempotency_key': payout_idempotency_key(reservation.id),
    }
