"""
Settlements app services layer.

The payment processor is always passed in explicitly; services never
build their own client.
"""

from .exceptions import (
    MissingPayoutAccountError,
    PayoutAlreadyReleasedError,
    PayoutInProgressError,
    ZeroPayoutError,
    FundsNotYetAvailableError,
    PaymentProcessorError,
    ProcessorConnectionError,
    PayoutOutcomeUnknownError,
)

from .payout_release import (
    PayoutResult,
    release_payout,
    payout_idempotency_key,
)

from .reconciliation import (
    find_stale_payout_claims,
    describe_stale_claim,
)


__all__ = [
    # Exceptions
    'MissingPayoutAccountError',
    'PayoutAlreadyReleasedError',
    'PayoutInProgressError',
    'ZeroPayoutError',
    'FundsNotYetAvailableError',
    'PaymentProcessorError',
    'ProcessorConnectionError',
    'PayoutOutcomeUnknownError',
    # Payouts
    'PayoutResult',
    'release_payout',
    'payout_idempotency_key',
    # Reconciliation
    'find_stale_payout_claims',
    'describe_stale_claim',
]
