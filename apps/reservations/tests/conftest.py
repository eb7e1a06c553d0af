import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.reservations.models import ReservationStatus
from apps.reservations.services import request_reservation
from apps.settlements.tests.fakes import FakePaymentProcessor


def authenticated_client(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def renter(db):
    """Create and return a user who rents items."""
    return User.objects.create_user(
        email='renter@example.com',
        password='TestPass123!',
        display_name='Rita Renter',
    )


@pytest.fixture
def owner(db):
    """Create and return a user who lists an item."""
    return User.objects.create_user(
        email='owner@example.com',
        password='TestPass123!',
        display_name='Otto Owner',
        stripe_account_id='acct_1Owner',
    )


@pytest.fixture
def outsider(db):
    """Create and return a user unrelated to any reservation."""
    return User.objects.create_user(
        email='outsider@example.com',
        password='TestPass123!',
        display_name='Outsider',
    )


@pytest.fixture
def renter_client(renter):
    return authenticated_client(renter)


@pytest.fixture
def owner_client(owner):
    return authenticated_client(owner)


@pytest.fixture
def outsider_client(outsider):
    return authenticated_client(outsider)


@pytest.fixture
def processor():
    """Fake processor holding a captured charge for the default paid reservation."""
    fake = FakePaymentProcessor()
    fake.add_payment(payment_intent_id='pi_test', charge_id='ch_test', amount=10739)
    return fake


@pytest.fixture
def make_reservation(renter, owner):
    """
    Factory for reservations in ``requested`` state.

    Defaults: item ``drill-1``, 2030-03-01..2030-03-02 (2 days) at 5000
    cents/day, so the base is 10000 cents and the customer total 10739.
    """
    def _make(**overrides):
        params = {
            'renter': renter,
            'item_owner': owner,
            'item_id': 'drill-1',
            'item_title': 'Cordless drill',
            'start_date': '2030-03-01',
            'end_date': '2030-03-02',
            'is_free': False,
            'daily_rate_cents': 5000,
        }
        params.update(overrides)
        return request_reservation(**params)
    return _make


@pytest.fixture
def requested_reservation(make_reservation):
    return make_reservation()


@pytest.fixture
def accepted_reservation(requested_reservation):
    requested_reservation.status = ReservationStatus.ACCEPTED
    requested_reservation.save()
    return requested_reservation


@pytest.fixture
def free_reservation(make_reservation):
    reservation = make_reservation(item_id='ladder-1', item_title='Ladder', is_free=True)
    reservation.status = ReservationStatus.ACCEPTED
    reservation.save()
    return reservation
