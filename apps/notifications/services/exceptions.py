"""
Domain-specific exceptions for the notifications app.
"""

from apps.reservations.exceptions import NotFoundRejection, ValidationRejection


class NotificationValidationError(ValidationRejection):
    """Raised when a notification or counter request is malformed."""
    code = 'invalid_notification'


class NotificationNotFoundError(NotFoundRejection):
    """Raised when a notification does not exist for this recipient."""
    code = 'notification_not_found'
