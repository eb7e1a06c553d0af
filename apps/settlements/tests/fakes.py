"""
In-memory payment processor for tests.
"""

from apps.settlements.processor import (
    BalanceTransactionInfo,
    ChargeInfo,
    PaymentIntentInfo,
    PaymentProcessor,
)
from apps.settlements.services.exceptions import PaymentProcessorError


class FakePaymentProcessor(PaymentProcessor):
    """
    Records every call and serves objects registered with ``add_payment``.

    Set ``transfer_error`` to an exception instance to make
    ``create_transfer`` raise it.
    """

    def __init__(self):
        self.payment_intents = {}
        self.charges = {}
        self.balance_transactions = {}
        self.transfers = []
        self.calls = []
        self.transfer_error = None

    def add_payment(self, *, payment_intent_id='pi_test', charge_id='ch_test',
                    amount=10739, available_on=0, captured=True,
                    balance_transaction_id='txn_test', intent_status='succeeded'):
        self.payment_intents[payment_intent_id] = PaymentIntentInfo(
            id=payment_intent_id,
            amount=amount,
            latest_charge_id=charge_id,
            status=intent_status,
        )
        if charge_id:
            self.charges[charge_id] = ChargeInfo(
                id=charge_id,
                amount=amount,
                captured=captured,
                balance_transaction_id=balance_transaction_id,
            )
            self.balance_transactions[balance_transaction_id] = BalanceTransactionInfo(
                id=balance_transaction_id,
                available_on_epoch_seconds=available_on,
            )

    def _lookup(self, table, key, kind):
        try:
            return table[key]
        except KeyError:
            raise PaymentProcessorError(f'No such {kind}: {key}', code='resource_missing')

    def retrieve_payment_intent(self, payment_intent_id):
        self.calls.append(('retrieve_payment_intent', payment_intent_id))
        return self._lookup(self.payment_intents, payment_intent_id, 'payment_intent')

    def retrieve_charge(self, charge_id):
        self.calls.append(('retrieve_charge', charge_id))
        return self._lookup(self.charges, charge_id, 'charge')

    def retrieve_balance_transaction(self, balance_transaction_id):
        self.calls.append(('retrieve_balance_transaction', balance_transaction_id))
        return self._lookup(self.balance_transactions, balance_transaction_id, 'balance_transaction')

    def create_transfer(self, *, amount, currency, destination, source_charge,
                        idempotency_key, metadata=None):
        request = {
            'amount': amount,
            'currency': currency,
            'destination': destination,
            'source_charge': source_charge,
            'idempotency_key': idempotency_key,
            'metadata': metadata or {},
        }
        self.calls.append(('create_transfer', request))
        if self.transfer_error is not None:
            raise self.transfer_error
        self.transfers.append(request)
        return f'tr_{len(self.transfers)}'

    @property
    def transfer_attempts(self):
        return [args for name, args in self.calls if name == 'create_transfer']
