"""
Domain-specific exceptions for the settlements app.

Precondition and deferral errors reuse the ledger taxonomy from
``apps.reservations.exceptions`` so views map them the same way.
"""

from apps.reservations.exceptions import (
    BusinessRuleDeferral,
    ExternalSystemError,
    PreconditionRejection,
)


class MissingPayoutAccountError(PreconditionRejection):
    """Raised when the owner has no connected account to receive funds."""
    code = 'missing_payout_account'


class PayoutAlreadyReleasedError(PreconditionRejection):
    """Raised when a transfer is already recorded for the reservation."""
    code = 'payout_already_released'


class PayoutInProgressError(PreconditionRejection):
    """Raised when another release holds the payout claim."""
    code = 'payout_in_progress'


class ZeroPayoutError(PreconditionRejection):
    """Raised when the computed transfer amount is not positive."""
    code = 'zero_payout'


class FundsNotYetAvailableError(BusinessRuleDeferral):
    """Raised when the charge's funds settle in the future."""

    code = 'funds_not_available_yet'

    def __init__(self, message='', *, available_on):
        super().__init__(message, retry_after=available_on)

    @property
    def available_on(self):
        return self.retry_after

    def as_dict(self):
        data = super().as_dict()
        data['available_on'] = self.available_on.isoformat()
        return data


class PaymentProcessorError(ExternalSystemError):
    """
    Raised when the payment processor rejects or fails a request.

    ``code`` and the message are the processor's own, unmodified.
    """

    code = 'processor_error'


class ProcessorConnectionError(PaymentProcessorError):
    """Raised when the processor could not be reached or did not answer in time."""
    code = 'processor_unreachable'


class PayoutOutcomeUnknownError(ExternalSystemError):
    """
    Raised when a transfer request got no answer.

    The transfer may have gone through. Retrying is safe because every
    request for the same reservation carries the same idempotency key.
    """

    code = 'payout_outcome_unknown'
