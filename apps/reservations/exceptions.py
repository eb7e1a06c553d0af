"""
Domain exceptions for the reservation ledger.

The first block is the error taxonomy shared by every ledger app
(reservations, settlements, notifications). Views translate each
category to a distinct HTTP status, so callers can tell "fix your
input" from "you may not do this" from "try again later".

The second block holds reservation-specific errors.
"""


class LedgerError(Exception):
    """Base exception for all ledger service errors."""

    code = 'ledger_error'

    def __init__(self, message='', *, code=None):
        super().__init__(message)
        if code:
            self.code = code

    @property
    def message(self):
        return str(self)

    def as_dict(self):
        return {'code': self.code, 'message': self.message}


class ValidationRejection(LedgerError):
    """Bad date range, missing required field, malformed amount."""
    code = 'invalid_argument'


class AuthorizationRejection(LedgerError):
    """The caller is not allowed to act on this resource."""
    code = 'permission_denied'


class NotFoundRejection(LedgerError):
    """Referenced resource does not exist."""
    code = 'not_found'


class PreconditionRejection(LedgerError):
    """Operation is not legal in the resource's current state."""

    code = 'failed_precondition'

    def __init__(self, message='', *, current_state=None, required_state=None, code=None):
        super().__init__(message, code=code)
        self.current_state = current_state
        self.required_state = required_state

    def as_dict(self):
        data = super().as_dict()
        if self.current_state is not None:
            data['current_state'] = self.current_state
        if self.required_state is not None:
            data['required_state'] = self.required_state
        return data


class BusinessRuleDeferral(LedgerError):
    """Not a failure: the operation becomes possible after ``retry_after``."""

    code = 'deferred'

    def __init__(self, message='', *, retry_after, code=None):
        super().__init__(message, code=code)
        self.retry_after = retry_after

    def as_dict(self):
        data = super().as_dict()
        data['retry_after'] = self.retry_after.isoformat()
        return data


class ExternalSystemError(LedgerError):
    """A collaborator outside the database failed; its code/message are kept verbatim."""
    code = 'external_error'


# =============================================================================
# Reservation errors
# =============================================================================

class ReservationValidationError(ValidationRejection):
    """Raised when reservation input is invalid."""
    code = 'invalid_reservation'


class InvalidDateError(ReservationValidationError):
    """Raised when a date is not a YYYY-MM-DD calendar date."""
    code = 'invalid_date'


class AmountParseError(ReservationValidationError):
    """Raised when a display amount cannot be read as cents unambiguously."""
    code = 'invalid_amount'


class ReservationNotFoundError(NotFoundRejection):
    """Raised when a reservation does not exist."""
    code = 'reservation_not_found'


class NotReservationPartyError(AuthorizationRejection):
    """Raised when the user is neither the renter nor the item owner."""
    code = 'not_a_party'


class NotReservationOwnerError(AuthorizationRejection):
    """Raised when an owner-only action is attempted by someone else."""
    code = 'not_item_owner'


class NotReservationRenterError(AuthorizationRejection):
    """Raised when a renter-only action is attempted by someone else."""
    code = 'not_renter'


class InvalidTransitionError(PreconditionRejection):
    """Raised when a status change is not in the transition table."""
    code = 'invalid_transition'


class DateConflictError(PreconditionRejection):
    """Raised when requested days are already booked for the item."""

    code = 'date_conflict'

    def __init__(self, message='', *, conflicting_day=None, **kwargs):
        super().__init__(message, **kwargs)
        self.conflicting_day = conflicting_day

    def as_dict(self):
        data = super().as_dict()
        if self.conflicting_day is not None:
            data['conflicting_day'] = str(self.conflicting_day)
        return data


class MissingPaymentIntentError(PreconditionRejection):
    """Raised when a paid-path operation has no payment intent to work with."""
    code = 'missing_payment_intent'


class ChargeNotFoundError(PreconditionRejection):
    """Raised when the payment intent does not resolve to a captured charge."""
    code = 'charge_not_found'


class PaymentAmountMismatchError(PreconditionRejection):
    """Raised when the processor charged a different total than the ledger computed."""
    code = 'amount_mismatch'


class PaymentNotSucceededError(PreconditionRejection):
    """Raised when the payment intent has not reached ``succeeded``."""
    code = 'payment_not_succeeded'


class PaymentIntentInUseError(PreconditionRejection):
    """Raised when a payment intent already pays for another reservation."""
    code = 'payment_intent_in_use'
