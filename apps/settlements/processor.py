"""
Payment processor client.

Services never talk to Stripe directly. They receive a ``PaymentProcessor``
instance, built by ``get_payment_processor()`` in views and commands, or
a fake in tests.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import stripe
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .services.exceptions import PaymentProcessorError, ProcessorConnectionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentIntentInfo:
    id: str
    amount: Optional[int]
    latest_charge_id: Optional[str]
    status: str = ''


@dataclass(frozen=True)
class ChargeInfo:
    id: str
    amount: int
    captured: bool
    balance_transaction_id: Optional[str]


@dataclass(frozen=True)
class BalanceTransactionInfo:
    id: str
    available_on_epoch_seconds: int


class PaymentProcessor:
    """Operations the ledger needs from a payment processor."""

    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentInfo:
        raise NotImplementedError

    def retrieve_charge(self, charge_id: str) -> ChargeInfo:
        raise NotImplementedError

    def retrieve_balance_transaction(self, balance_transaction_id: str) -> BalanceTransactionInfo:
        raise NotImplementedError

    def create_transfer(
        self,
        *,
        amount: int,
        currency: str,
        destination: str,
        source_charge: str,
        idempotency_key: str,
        metadata: Optional[dict] = None,
    ) -> str:
        """Move ``amount`` cents to ``destination``; return the transfer id."""
        raise NotImplementedError


def _object_id(value):
    # Stripe returns either the id or the expanded object
    if value is None or isinstance(value, str):
        return value
    return getattr(value, 'id', None)


class StripePaymentProcessor(PaymentProcessor):
    """
    ``PaymentProcessor`` backed by the official ``stripe`` library.

    Network retries are disabled and every request has a bounded timeout,
    so a hung call fails fast instead of blocking the caller.
    """

    def __init__(self, api_key, *, timeout=10, client=None):
        if client is None:
            client = stripe.StripeClient(
                api_key,
                http_client=stripe.RequestsClient(timeout=timeout),
                max_network_retries=0,
            )
        self._client = client

    def _call(self, operation, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except stripe.APIConnectionError as exc:
            logger.warning("Stripe %s failed to connect: %s", operation, exc)
            raise ProcessorConnectionError(str(exc) or 'Payment processor unreachable') from exc
        except stripe.StripeError as exc:
            logger.warning("Stripe %s rejected: code=%s message=%s", operation, exc.code, exc.user_message)
            raise PaymentProcessorError(
                exc.user_message or str(exc),
                code=exc.code or type(exc).__name__,
            ) from exc

    def retrieve_payment_intent(self, payment_intent_id):
        intent = self._call(
            'payment_intents.retrieve',
            self._client.payment_intents.retrieve,
            payment_intent_id,
        )
        return PaymentIntentInfo(
            id=intent.id,
            amount=intent.amount,
            latest_charge_id=_object_id(intent.latest_charge),
            status=intent.status or '',
        )

    def retrieve_charge(self, charge_id):
        charge = self._call('charges.retrieve', self._client.charges.retrieve, charge_id)
        return ChargeInfo(
            id=charge.id,
            amount=charge.amount,
            captured=bool(charge.captured),
            balance_transaction_id=_object_id(charge.balance_transaction),
        )

    def retrieve_balance_transaction(self, balance_transaction_id):
        balance = self._call(
            'balance_transactions.retrieve',
            self._client.balance_transactions.retrieve,
            balance_transaction_id,
        )
        return BalanceTransactionInfo(
            id=balance.id,
            available_on_epoch_seconds=int(balance.available_on),
        )

    def create_transfer(self, *, amount, currency, destination, source_charge,
                        idempotency_key, metadata=None):
        transfer = self._call(
            'transfers.create',
            self._client.transfers.create,
            params={
                'amount': amount,
                'currency': currency,
                'destination': destination,
                'source_transaction': source_charge,
                'metadata': metadata or {},
            },
            options={'idempotency_key': idempotency_key},
        )
        return transfer.id


def get_payment_processor():
    """Build the configured processor client. Raises if no secret key is set."""
    if not settings.STRIPE_SECRET_KEY:
        raise ImproperlyConfigured('STRIPE_SECRET_KEY is not configured')
    return StripePaymentProcessor(
        settings.STRIPE_SECRET_KEY,
        timeout=settings.STRIPE_TIMEOUT_SECONDS,
    )
