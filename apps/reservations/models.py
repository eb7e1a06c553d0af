from django.db import models
from django.core.validators import MaxLengthValidator
import uuid

from .exceptions import InvalidTransitionError


class ReservationStatus(models.TextChoices):
    REQUESTED = 'requested', 'Requested'
    ACCEPTED = 'accepted', 'Accepted'
    PAID = 'paid', 'Paid'
    PICKED_UP = 'picked_up', 'Picked up'
    RETURNED = 'returned', 'Returned'
    CANCELLED = 'cancelled', 'Cancelled'
    PAID_OUT = 'paid_out', 'Paid out'


# Legal status changes. Anything not listed here is rejected.
ALLOWED_TRANSITIONS = {
    ReservationStatus.REQUESTED: frozenset({ReservationStatus.ACCEPTED, ReservationStatus.CANCELLED}),
    ReservationStatus.ACCEPTED: frozenset({ReservationStatus.PAID, ReservationStatus.PICKED_UP}),
    ReservationStatus.PAID: frozenset({ReservationStatus.RETURNED}),
    ReservationStatus.RETURNED: frozenset({ReservationStatus.PAID_OUT}),
    ReservationStatus.PICKED_UP: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.PAID_OUT: frozenset(),
}

CANCEL_REASON_MAX_LENGTH = 300


def can_transition(current, target):
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def states_leading_to(target):
    """Statuses from which ``target`` can be reached in one step."""
    return [
        str(state) for state, targets in ALLOWED_TRANSITIONS.items()
        if target in targets
    ]


class Reservation(models.Model):
    """
    One rental agreement between a renter and an item owner.

    The status field is governed by ``ALLOWED_TRANSITIONS``; only the
    service layer changes it. Money fields are integer cents.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Parties
    renter = models.ForeignKey(
        'accounts.User',
        on_delete=models.PROTECT,
        related_name='reservations_as_renter'
    )
    item_owner = models.ForeignKey(
        'accounts.User',
        on_delete=models.PROTECT,
        related_name='reservations_as_owner'
    )

    # Item reference (items live outside this service)
    item_id = models.CharField(max_length=64, db_index=True)
    item_title = models.CharField(max_length=200, blank=True)

    # Rental period (inclusive)
    start_date = models.DateField()
    end_date = models.DateField()
    days = models.PositiveIntegerField()

    # Pricing
    is_free = models.BooleanField(default=False)
    daily_rate_cents = models.PositiveIntegerField(default=0)
    total_cents = models.PositiveIntegerField(default=0)

    # Frozen when the reservation is paid
    fee_breakdown = models.JSONField(default=dict, blank=True)
    amount_total_cents = models.PositiveIntegerField(null=True, blank=True)

    # Payment processor linkage
    payment_intent_id = models.CharField(max_length=100, blank=True)
    charge_id = models.CharField(max_length=100, blank=True)
    transfer_id = models.CharField(max_length=100, blank=True)
    owner_stripe_account_id = models.CharField(max_length=64, blank=True)

    status = models.CharField(
        max_length=20,
        choices=ReservationStatus.choices,
        default=ReservationStatus.REQUESTED
    )

    # Cancellation / rejection
    cancelled_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    cancel_reason = models.TextField(
        blank=True,
        validators=[MaxLengthValidator(CANCEL_REASON_MAX_LENGTH)]
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    picked_up_at = models.DateTimeField(null=True, blank=True)
    returned_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    payout_started_at = models.DateTimeField(null=True, blank=True)
    transferred_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'reservations'
        indexes = [
            models.Index(fields=['renter', 'status'], name='reservation_renter_status_idx'),
            models.Index(fields=['item_owner', 'status'], name='reservation_owner_status_idx'),
            models.Index(fields=['item_id', 'start_date'], name='reservation_item_start_idx'),
            models.Index(fields=['status', 'payout_started_at'], name='reservation_payout_claim_idx'),
        ]
        constraints = [
            # One payment intent pays for one reservation
            models.UniqueConstraint(
                fields=['payment_intent_id'],
                condition=~models.Q(payment_intent_id=''),
                name='unique_reservation_payment_intent'
            )
        ]
        ordering = ['-created_at']

    def __str__(self):
        title = self.item_title or self.item_id
        return f"{title} {self.start_date}..{self.end_date} ({self.status})"

    def is_party(self, user):
        return user is not None and user.pk in (self.renter_id, self.item_owner_id)

    def other_party_id(self, user):
        """uid of the counterpart of ``user`` in this reservation."""
        return self.item_owner_id if user.pk == self.renter_id else self.renter_id

    def assert_can_transition(self, target):
        if not can_transition(self.status, target):
            raise InvalidTransitionError(
                f"Cannot move reservation from '{self.status}' to '{target}'",
                current_state=str(self.status),
                required_state=states_leading_to(target),
            )

    @property
    def payout_released(self):
        return bool(self.transfer_id) or self.transferred_at is not None


class BookedDay(models.Model):
    """Per-item booked-day index; one row per item per calendar day."""

    item_id = models.CharField(max_length=64)
    day = models.DateField()
    reservation = models.ForeignKey(
        Reservation,
        on_delete=models.CASCADE,
        related_name='booked_days'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'booked_days'
        constraints = [
            models.UniqueConstraint(
                fields=['item_id', 'day'],
                name='unique_booked_item_day'
            )
        ]
        ordering = ['item_id', 'day']

    def __str__(self):
        return f"{self.item_id} @ {self.day}"
