"""
Notification ledger service.

Creates notifications and keeps each recipient's counter bucket in step
with them. A notification and its counter increment are written in one
transaction, so neither is ever visible without the other.
"""

import logging
from typing import Optional
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from django.db.models import QuerySet
from django.utils import timezone

from apps.accounts.models import User
from apps.notifications.models import (
    CounterBucket,
    CounterKey,
    EntityType,
    Notification,
    NotificationType,
    counter_for_type,
)

from .exceptions import NotificationNotFoundError, NotificationValidationError

logger = logging.getLogger(__name__)


def _lock_bucket(recipient_id) -> CounterBucket:
    bucket, _ = CounterBucket.objects.select_for_update().get_or_create(
        recipient_id=recipient_id
    )
    return bucket


def _recipient_exists(recipient_id) -> bool:
    try:
        return User.objects.filter(id=recipient_id).exists()
    except (ValueError, DjangoValidationError):
        return False


def create_notification(
    *,
    recipient_id,
    type: str,
    entity_type: Optional[str] = None,
    entity_id=None,
    title: Optional[str] = None,
    body: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> str:
    """
    Create a notification and bump the recipient's matching counter.

    Returns the new notification id as a string, or ``""`` when either
    ``recipient_id`` or ``type`` is missing (nothing is written).

    Raises:
        NotificationValidationError: Unknown type, entity type or recipient.
    """
    if not recipient_id or not type:
        return ''

    if type not in NotificationType.values:
        raise NotificationValidationError(f"Unknown notification type '{type}'")
    if entity_type and entity_type not in EntityType.values:
        raise NotificationValidationError(f"Unknown entity type '{entity_type}'")
    if not _recipient_exists(recipient_id):
        raise NotificationValidationError(f"Recipient {recipient_id} does not exist")

    with transaction.atomic():
        notification = Notification.objects.create(
            recipient_id=recipient_id,
            type=type,
            entity_type=entity_type or '',
            entity_id=str(entity_id) if entity_id else '',
            title=title or '',
            body=body or '',
            metadata=metadata or {},
        )
        bucket = _lock_bucket(recipient_id)
        bucket.increment(counter_for_type(type))
        bucket.save()

    return str(notification.id)


def dispatch_notification(**kwargs) -> str:
    """
    Best-effort ``create_notification`` for fan-out after a state change.

    Failures are logged and swallowed: a missed notification must never
    undo the reservation or payout that triggered it.
    """
    try:
        return create_notification(**kwargs)
    except (DatabaseError, NotificationValidationError):
        logger.warning(
            "Notification fan-out failed (type=%s, recipient=%s)",
            kwargs.get('type'), kwargs.get('recipient_id'),
            exc_info=True,
        )
        return ''


@transaction.atomic
def mark_counters_seen(*, user: User, bucket: str) -> CounterBucket:
    """
    Zero one counter bucket for ``user`` and stamp ``last_seen[bucket]``.

    Raises:
        NotificationValidationError: ``bucket`` is not a counter name.
    """
    if bucket not in CounterKey.values:
        raise NotificationValidationError(f"Unknown counter bucket '{bucket}'")

    counters = _lock_bucket(user.pk)
    counters.reset(bucket)
    last_seen = dict(counters.last_seen or {})
    last_seen[bucket] = timezone.now().isoformat()
    counters.last_seen = last_seen
    counters.save()
    return counters


def get_counters(*, user: User) -> CounterBucket:
    """Return the user's counters; an unsaved zero bucket if none exist yet."""
    try:
        return CounterBucket.objects.get(recipient=user)
    except CounterBucket.DoesNotExist:
        return CounterBucket(recipient=user)


@transaction.atomic
def mark_notification_read(*, notification_id: UUID, user: User) -> Notification:
    try:
        notification = (
            Notification.objects
            .select_for_update()
            .get(id=notification_id, recipient=user)
        )
    except Notification.DoesNotExist:
        raise NotificationNotFoundError(f"Notification {notification_id} not found")

    if not notification.read:
        notification.read = True
        notification.read_at = timezone.now()
        notification.save(update_fields=['read', 'read_at'])
    return notification


def list_notifications(*, user: User, unread_only: bool = False) -> QuerySet:
    queryset = Notification.objects.filter(recipient=user)
    if unread_only:
        queryset = queryset.filter(read=False)
    return queryset
