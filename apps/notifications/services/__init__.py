"""
Notifications app services layer.

All counter writes happen inside the same transaction as the
notification (or seen-reset) they account for.
"""

from .exceptions import (
    NotificationValidationError,
    NotificationNotFoundError,
)

from .notification_ledger import (
    create_notification,
    dispatch_notification,
    mark_counters_seen,
    mark_notification_read,
    get_counters,
    list_notifications,
)


__all__ = [
    # Exceptions
    'NotificationValidationError',
    'NotificationNotFoundError',
    # Ledger
    'create_notification',
    'dispatch_notification',
    'mark_counters_seen',
    'mark_notification_read',
    'get_counters',
    'list_notifications',
]
