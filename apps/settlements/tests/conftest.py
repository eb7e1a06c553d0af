from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.reservations.models import Reservation, ReservationStatus
from apps.reservations.services import fees_for_base

from .fakes import FakePaymentProcessor

# Fixed clock for the availability gate
NOW = datetime(2030, 4, 10, 12, 0, tzinfo=dt_timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def renter(db):
    return User.objects.create_user(
        email='renter@example.com',
        password='TestPass123!',
        display_name='Rita Renter',
    )


@pytest.fixture
def owner(db):
    """Item owner with a connected payout account."""
    return User.objects.create_user(
        email='owner@example.com',
        password='TestPass123!',
        display_name='Otto Owner',
        stripe_account_id='acct_1Owner',
    )


@pytest.fixture
def owner_client(owner):
    client = APIClient()
    refresh = RefreshToken.for_user(owner)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def renter_client(renter):
    client = APIClient()
    refresh = RefreshToken.for_user(renter)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def processor(now):
    """Captured 10739-cent charge whose funds became available a day ago."""
    fake = FakePaymentProcessor()
    fake.add_payment(
        payment_intent_id='pi_test',
        charge_id='ch_test',
        amount=10739,
        available_on=int((now - timedelta(days=1)).timestamp()),
    )
    return fake


@pytest.fixture
def returned_reservation(renter, owner):
    """Paid-path reservation that has been returned and awaits payout."""
    fees = fees_for_base(10000)
    return Reservation.objects.create(
        renter=renter,
        item_owner=owner,
        item_id='drill-1',
        item_title='Cordless drill',
        start_date='2030-03-01',
        end_date='2030-03-02',
        days=2,
        daily_rate_cents=5000,
        total_cents=10000,
        fee_breakdown=fees.as_dict(),
        amount_total_cents=fees.total_to_customer,
        payment_intent_id='pi_test',
        charge_id='ch_test',
        status=ReservationStatus.RETURNED,
    )
