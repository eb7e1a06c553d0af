"""
Service layer tests for the reservation lifecycle.

Tests cover:
- Request validation
- Acceptance and the booked-day index
- Cancellation and rejection
- Payment confirmation and the frozen fee breakdown
- Free-path pickup and return
- Notification fan-out after commit
"""

from datetime import date

import pytest
from django.db import IntegrityError, transaction

from apps.notifications.models import CounterBucket, Notification, NotificationType
from apps.reservations.exceptions import (
    ChargeNotFoundError,
    DateConflictError,
    InvalidDateError,
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
from apps.reservations.models import BookedDay, Reservation, ReservationStatus
from apps.reservations.services import (
    accept_reservation,
    cancel_reservation,
    confirm_payment,
    confirm_pickup,
    confirm_return,
    get_reservation_for_party,
    list_reservations_for_user,
    quote_reservation,
)
from apps.settlements.services.exceptions import PaymentProcessorError


@pytest.mark.django_db
class TestRequestReservation:

    def test_creates_requested_reservation_with_totals(self, make_reservation, renter, owner):
        reservation = make_reservation(start_date='2025-03-01', end_date='2025-03-03')

        assert reservation.status == ReservationStatus.REQUESTED
        assert reservation.renter == renter
        assert reservation.item_owner == owner
        assert reservation.days == 3
        assert reservation.total_cents == 15000
        assert reservation.fee_breakdown == {}
        assert reservation.amount_total_cents is None

    def test_free_reservation_has_no_rate(self, make_reservation):
        reservation = make_reservation(is_free=True, daily_rate_cents=900)

        assert reservation.daily_rate_cents == 0
        assert reservation.total_cents == 0

    def test_end_before_start_rejected(self, make_reservation):
        with pytest.raises(ReservationValidationError):
            make_reservation(start_date='2030-03-05', end_date='2030-03-01')

    def test_malformed_date_rejected(self, make_reservation):
        with pytest.raises(InvalidDateError):
            make_reservation(start_date='03/01/2030')

    def test_paid_item_requires_positive_rate(self, make_reservation):
        with pytest.raises(ReservationValidationError):
            make_reservation(daily_rate_cents=0)
        with pytest.raises(ReservationValidationError):
            make_reservation(daily_rate_cents=None)

    def test_cannot_reserve_own_item(self, make_reservation, owner):
        with pytest.raises(ReservationValidationError):
            make_reservation(renter=owner)

    def test_min_days_enforced(self, make_reservation):
        with pytest.raises(ReservationValidationError):
            make_reservation(min_days=3)

    def test_booked_days_block_new_requests(self, make_reservation, owner):
        first = make_reservation()
        accept_reservation(reservation_id=first.id, user=owner)

        with pytest.raises(DateConflictError) as exc_info:
            make_reservation(start_date='2030-03-02', end_date='2030-03-04')

        assert exc_info.value.conflicting_day == date(2030, 3, 2)

    def test_other_items_are_independent(self, make_reservation, owner):
        first = make_reservation()
        accept_reservation(reservation_id=first.id, user=owner)

        second = make_reservation(item_id='saw-9')

        assert second.status == ReservationStatus.REQUESTED


@pytest.mark.django_db
class TestAcceptReservation:

    def test_owner_accepts_and_books_days(self, requested_reservation, owner):
        reservation = accept_reservation(reservation_id=requested_reservation.id, user=owner)

        assert reservation.status == ReservationStatus.ACCEPTED
        assert reservation.accepted_at is not None
        days = list(
            BookedDay.objects.filter(reservation=reservation).values_list('day', flat=True)
        )
        assert days == [date(2030, 3, 1), date(2030, 3, 2)]

    def test_renter_cannot_accept(self, requested_reservation, renter):
        with pytest.raises(NotReservationOwnerError):
            accept_reservation(reservation_id=requested_reservation.id, user=renter)

        requested_reservation.refresh_from_db()
        assert requested_reservation.status == ReservationStatus.REQUESTED

    def test_overlapping_request_cannot_be_accepted(self, make_reservation, owner):
        first = make_reservation()
        overlapping = make_reservation(start_date='2030-03-02', end_date='2030-03-05')
        accept_reservation(reservation_id=first.id, user=owner)

        with pytest.raises(DateConflictError):
            accept_reservation(reservation_id=overlapping.id, user=owner)

        overlapping.refresh_from_db()
        assert overlapping.status == ReservationStatus.REQUESTED
        assert not BookedDay.objects.filter(reservation=overlapping).exists()

    def test_accepting_twice_is_illegal(self, requested_reservation, owner):
        accept_reservation(reservation_id=requested_reservation.id, user=owner)

        with pytest.raises(InvalidTransitionError) as exc_info:
            accept_reservation(reservation_id=requested_reservation.id, user=owner)

        assert exc_info.value.current_state == 'accepted'
        assert exc_info.value.required_state == ['requested']

    def test_unknown_reservation(self, owner):
        with pytest.raises(ReservationNotFoundError):
            accept_reservation(reservation_id='00000000-0000-0000-0000-000000000000', user=owner)


@pytest.mark.django_db
class TestCancelReservation:

    def test_renter_withdraws_request(self, requested_reservation, renter):
        reservation = cancel_reservation(reservation_id=requested_reservation.id, user=renter)

        assert reservation.status == ReservationStatus.CANCELLED
        assert reservation.cancelled_by == renter
        assert reservation.cancelled_at is not None

    def test_owner_rejection_keeps_truncated_reason(self, requested_reservation, owner):
        reservation = cancel_reservation(
            reservation_id=requested_reservation.id,
            user=owner,
            reason='x' * 500,
        )

        assert reservation.status == ReservationStatus.CANCELLED
        assert reservation.cancel_reason == 'x' * 300

    def test_outsider_cannot_cancel(self, requested_reservation, outsider):
        with pytest.raises(NotReservationPartyError):
            cancel_reservation(reservation_id=requested_reservation.id, user=outsider)

    def test_cannot_cancel_after_acceptance(self, accepted_reservation, renter):
        with pytest.raises(InvalidTransitionError):
            cancel_reservation(reservation_id=accepted_reservation.id, user=renter)


@pytest.mark.django_db
class TestConfirmPayment:

    def test_freezes_breakdown_and_total(self, accepted_reservation, renter, processor):
        reservation = confirm_payment(
            reservation_id=accepted_reservation.id,
            payment_intent_id='pi_test',
            processor=processor,
            user=renter,
        )

        assert reservation.status == ReservationStatus.PAID
        assert reservation.payment_intent_id == 'pi_test'
        assert reservation.charge_id == 'ch_test'
        assert reservation.amount_total_cents == 10739
        assert reservation.fee_breakdown == {
            'base_cents': 10000,
            'service_fee': 700,
            'surcharge': 39,
            'app_fee_from_base': 1000,
            'owner_payout': 9000,
            'total_to_customer': 10739,
        }
        assert reservation.paid_at is not None

    def test_breakdown_not_recomputed_after_rate_change(self, accepted_reservation, processor, settings):
        confirm_payment(
            reservation_id=accepted_reservation.id,
            payment_intent_id='pi_test',
            processor=processor,
        )
        settings.LEDGER_SERVICE_FEE_PCT = 0.5
        Reservation.objects.filter(id=accepted_reservation.id).update(daily_rate_cents=1)

        reservation = Reservation.objects.get(id=accepted_reservation.id)
        assert reservation.amount_total_cents == 10739
        assert reservation.fee_breakdown['service_fee'] == 700

    def test_amount_mismatch_rejected(self, accepted_reservation, processor):
        processor.add_payment(payment_intent_id='pi_short', charge_id='ch_short', amount=500)

        with pytest.raises(PaymentAmountMismatchError):
            confirm_payment(
                reservation_id=accepted_reservation.id,
                payment_intent_id='pi_short',
                processor=processor,
            )

        accepted_reservation.refresh_from_db()
        assert accepted_reservation.status == ReservationStatus.ACCEPTED
        assert accepted_reservation.payment_intent_id == ''

    def test_missing_payment_intent(self, accepted_reservation, processor):
        with pytest.raises(MissingPaymentIntentError):
            confirm_payment(
                reservation_id=accepted_reservation.id,
                payment_intent_id='',
                processor=processor,
            )

    def test_intent_without_charge(self, accepted_reservation, processor):
        processor.add_payment(payment_intent_id='pi_nocharge', charge_id=None)

        with pytest.raises(ChargeNotFoundError):
            confirm_payment(
                reservation_id=accepted_reservation.id,
                payment_intent_id='pi_nocharge',
                processor=processor,
            )

    def test_unknown_intent_surfaces_processor_error(self, accepted_reservation, processor):
        with pytest.raises(PaymentProcessorError) as exc_info:
            confirm_payment(
                reservation_id=accepted_reservation.id,
                payment_intent_id='pi_unknown',
                processor=processor,
            )

        assert exc_info.value.code == 'resource_missing'

    def test_only_renter_confirms(self, accepted_reservation, owner, processor):
        with pytest.raises(NotReservationRenterError):
            confirm_payment(
                reservation_id=accepted_reservation.id,
                payment_intent_id='pi_test',
                processor=processor,
                user=owner,
            )

    def test_requested_reservation_cannot_be_paid(self, requested_reservation, processor):
        with pytest.raises(InvalidTransitionError):
            confirm_payment(
                reservation_id=requested_reservation.id,
                payment_intent_id='pi_test',
                processor=processor,
            )
        assert processor.calls == []

    def test_free_reservation_cannot_be_paid(self, free_reservation, processor):
        with pytest.raises(InvalidTransitionError):
            confirm_payment(
                reservation_id=free_reservation.id,
                payment_intent_id='pi_test',
                processor=processor,
            )

        free_reservation.refresh_from_db()
        assert free_reservation.payment_intent_id == ''

    def test_repeat_confirmation_is_a_no_op(self, accepted_reservation, processor):
        first = confirm_payment(
            reservation_id=accepted_reservation.id,
            payment_intent_id='pi_test',
            processor=processor,
        )
        calls_after_first = len(processor.calls)

        again = confirm_payment(
            reservation_id=accepted_reservation.id,
            payment_intent_id='pi_test',
            processor=processor,
        )

        assert again.paid_at == first.paid_at
        assert len(processor.calls) == calls_after_first

    def test_different_intent_after_payment_is_illegal(self, accepted_reservation, processor):
        confirm_payment(
            reservation_id=accepted_reservation.id,
            payment_intent_id='pi_test',
            processor=processor,
        )
        processor.add_payment(payment_intent_id='pi_other', charge_id='ch_other')

        with pytest.raises(InvalidTransitionError):
            confirm_payment(
                reservation_id=accepted_reservation.id,
                payment_intent_id='pi_other',
                processor=processor,
            )

    @pytest.mark.parametrize('intent_status', ['requires_payment_method', 'requires_capture', 'processing'])
    def test_intent_that_has_not_succeeded_is_rejected(self, accepted_reservation, processor, intent_status):
        processor.add_payment(
            payment_intent_id='pi_pending',
            charge_id='ch_pending',
            captured=False,
            intent_status=intent_status,
        )

        with pytest.raises(PaymentNotSucceededError) as exc_info:
            confirm_payment(
                reservation_id=accepted_reservation.id,
                payment_intent_id='pi_pending',
                processor=processor,
            )

        assert exc_info.value.current_state == 'accepted'
        accepted_reservation.refresh_from_db()
        assert accepted_reservation.status == ReservationStatus.ACCEPTED
        assert accepted_reservation.payment_intent_id == ''

    def test_uncaptured_charge_is_rejected(self, accepted_reservation, processor):
        processor.add_payment(payment_intent_id='pi_uncaptured', charge_id='ch_uncaptured', captured=False)

        with pytest.raises(ChargeNotFoundError):
            confirm_payment(
                reservation_id=accepted_reservation.id,
                payment_intent_id='pi_uncaptured',
                processor=processor,
            )

        accepted_reservation.refresh_from_db()
        assert accepted_reservation.status == ReservationStatus.ACCEPTED

    def test_one_intent_pays_for_one_reservation(self, accepted_reservation, make_reservation, processor):
        second = make_reservation(item_id='saw-1', item_title='Circular saw')
        Reservation.objects.filter(id=second.id).update(status=ReservationStatus.ACCEPTED)
        confirm_payment(
            reservation_id=accepted_reservation.id,
            payment_intent_id='pi_test',
            processor=processor,
        )

        with pytest.raises(PaymentIntentInUseError) as exc_info:
            confirm_payment(
                reservation_id=second.id,
                payment_intent_id='pi_test',
                processor=processor,
            )

        assert exc_info.value.code == 'payment_intent_in_use'
        second.refresh_from_db()
        assert second.status == ReservationStatus.ACCEPTED
        assert second.payment_intent_id == ''
        assert second.amount_total_cents is None

    def test_database_rejects_shared_intent(self, accepted_reservation, make_reservation):
        second = make_reservation(item_id='saw-1')
        Reservation.objects.filter(id=accepted_reservation.id).update(payment_intent_id='pi_test')

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                Reservation.objects.filter(id=second.id).update(payment_intent_id='pi_test')

        # Empty intents are not covered by the constraint
        assert Reservation.objects.filter(id=second.id, payment_intent_id='').exists()


@pytest.mark.django_db
class TestPickupAndReturn:

    def test_renter_picks_up_free_item(self, free_reservation, renter):
        reservation = confirm_pickup(reservation_id=free_reservation.id, user=renter)

        assert reservation.status == ReservationStatus.PICKED_UP
        assert reservation.picked_up_at is not None

    def test_paid_item_cannot_skip_payment(self, accepted_reservation, renter):
        with pytest.raises(InvalidTransitionError):
            confirm_pickup(reservation_id=accepted_reservation.id, user=renter)

    def test_owner_cannot_confirm_pickup(self, free_reservation, owner):
        with pytest.raises(NotReservationRenterError):
            confirm_pickup(reservation_id=free_reservation.id, user=owner)

    def test_either_party_confirms_return(self, accepted_reservation, owner, processor):
        confirm_payment(
            reservation_id=accepted_reservation.id,
            payment_intent_id='pi_test',
            processor=processor,
        )

        reservation = confirm_return(reservation_id=accepted_reservation.id, user=owner)

        assert reservation.status == ReservationStatus.RETURNED
        assert reservation.returned_at is not None

    def test_return_requires_payment(self, accepted_reservation, renter):
        with pytest.raises(InvalidTransitionError):
            confirm_return(reservation_id=accepted_reservation.id, user=renter)


@pytest.mark.django_db
class TestReadHelpers:

    def test_quote_previews_fees(self):
        quote = quote_reservation(start_date='2030-03-01', end_date='2030-03-02', daily_rate_cents=5000)

        assert quote['days'] == 2
        assert quote['base_cents'] == 10000
        assert quote['fees']['total_to_customer'] == 10739
        assert not Reservation.objects.exists()

    def test_quote_for_free_item(self):
        quote = quote_reservation(start_date='2030-03-01', end_date='2030-03-01', is_free=True)

        assert quote == {'days': 1, 'base_cents': 0, 'fees': None}

    def test_get_reservation_for_outsider(self, requested_reservation, outsider):
        with pytest.raises(NotReservationPartyError):
            get_reservation_for_party(reservation_id=requested_reservation.id, user=outsider)

    def test_list_by_role(self, requested_reservation, renter, owner):
        assert list(list_reservations_for_user(user=renter, role='renter')) == [requested_reservation]
        assert list(list_reservations_for_user(user=renter, role='owner')) == []
        assert list(list_reservations_for_user(user=owner)) == [requested_reservation]
        assert list(list_reservations_for_user(user=owner, status='paid')) == []


@pytest.mark.django_db
class TestNotificationFanOut:

    def test_request_notifies_owner(self, make_reservation, owner, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            reservation = make_reservation()

        notification = Notification.objects.get(recipient=owner)
        assert notification.type == NotificationType.RESERVATION_REQUEST
        assert notification.entity_id == str(reservation.id)
        assert CounterBucket.objects.get(recipient=owner).reservations == 1

    def test_payment_notifies_both_parties(self, accepted_reservation, renter, owner, processor,
                                           django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            confirm_payment(
                reservation_id=accepted_reservation.id,
                payment_intent_id='pi_test',
                processor=processor,
            )

        for user in (renter, owner):
            counters = CounterBucket.objects.get(recipient=user)
            assert counters.payments == 1
            assert counters.total == 1

    def test_failed_transition_sends_nothing(self, requested_reservation, renter,
                                             django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            with pytest.raises(NotReservationOwnerError):
                accept_reservation(reservation_id=requested_reservation.id, user=renter)

        assert not Notification.objects.filter(recipient=renter).exists()
