from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import stripe
from django.core.exceptions import ImproperlyConfigured

from apps.settlements.processor import StripePaymentProcessor, get_payment_processor
from apps.settlements.services import PaymentProcessorError, ProcessorConnectionError


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def stripe_processor(client):
    return StripePaymentProcessor('sk_test_123', client=client)


class TestStripePaymentProcessor:

    def test_payment_intent_with_expanded_charge(self, stripe_processor, client):
        client.payment_intents.retrieve.return_value = SimpleNamespace(
            id='pi_1', amount=10739, latest_charge=SimpleNamespace(id='ch_1'), status='succeeded',
        )

        intent = stripe_processor.retrieve_payment_intent('pi_1')

        assert intent.latest_charge_id == 'ch_1'
        assert intent.amount == 10739
        client.payment_intents.retrieve.assert_called_once_with('pi_1')

    def test_charge_with_balance_transaction_id(self, stripe_processor, client):
        client.charges.retrieve.return_value = SimpleNamespace(
            id='ch_1', amount=10739, captured=True, balance_transaction='txn_1',
        )

        charge = stripe_processor.retrieve_charge('ch_1')

        assert charge.captured is True
        assert charge.balance_transaction_id == 'txn_1'

    def test_balance_transaction_available_on(self, stripe_processor, client):
        client.balance_transactions.retrieve.return_value = SimpleNamespace(
            id='txn_1', available_on=1900000000,
        )

        balance = stripe_processor.retrieve_balance_transaction('txn_1')

        assert balance.available_on_epoch_seconds == 1900000000

    def test_transfer_passes_idempotency_key(self, stripe_processor, client):
        client.transfers.create.return_value = SimpleNamespace(id='tr_1')

        transfer_id = stripe_processor.create_transfer(
            amount=9665,
            currency='brl',
            destination='acct_1Owner',
            source_charge='ch_1',
            idempotency_key='payout-abc',
            metadata={'reservation_id': 'abc'},
        )

        assert transfer_id == 'tr_1'
        client.transfers.create.assert_called_once_with(
            params={
                'amount': 9665,
                'currency': 'brl',
                'destination': 'acct_1Owner',
                'source_transaction': 'ch_1',
                'metadata': {'reservation_id': 'abc'},
            },
            options={'idempotency_key': 'payout-abc'},
        )

    def test_connection_error_is_mapped(self, stripe_processor, client):
        client.transfers.create.side_effect = stripe.APIConnectionError('Read timed out')

        with pytest.raises(ProcessorConnectionError):
            stripe_processor.create_transfer(
                amount=1, currency='brl', destination='acct_1', source_charge='ch_1',
                idempotency_key='payout-x',
            )

    def test_provider_error_keeps_code_and_message(self, stripe_processor, client):
        client.charges.retrieve.side_effect = stripe.InvalidRequestError(
            'No such charge: ch_404', param='id', code='resource_missing',
        )

        with pytest.raises(PaymentProcessorError) as exc_info:
            stripe_processor.retrieve_charge('ch_404')

        assert not isinstance(exc_info.value, ProcessorConnectionError)
        assert exc_info.value.code == 'resource_missing'
        assert exc_info.value.message == 'No such charge: ch_404'


class TestGetPaymentProcessor:

    def test_requires_secret_key(self, settings):
        settings.STRIPE_SECRET_KEY = ''

        with pytest.raises(ImproperlyConfigured):
            get_payment_processor()

    def test_builds_stripe_processor(self, settings):
        settings.STRIPE_SECRET_KEY = 'sk_test_123'

        assert isinstance(get_payment_processor(), StripePaymentProcessor)
