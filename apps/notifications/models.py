from django.db import models
import uuid


class NotificationType(models.TextChoices):
    MESSAGE = 'message', 'Message'
    RESERVATION_REQUEST = 'reservation_request', 'Reservation request'
    RESERVATION_STATUS = 'reservation_status', 'Reservation status'
    PAYMENT_UPDATE = 'payment_update', 'Payment update'
    REVIEW = 'review', 'Review'
    SYSTEM = 'system', 'System'


class EntityType(models.TextChoices):
    THREAD = 'thread', 'Thread'
    RESERVATION = 'reservation', 'Reservation'
    PAYMENT = 'payment', 'Payment'
    ITEM = 'item', 'Item'
    USER = 'user', 'User'
    SYSTEM = 'system', 'System'


class CounterKey(models.TextChoices):
    MESSAGES = 'messages', 'Messages'
    RESERVATIONS = 'reservations', 'Reservations'
    PAYMENTS = 'payments', 'Payments'
    INTERACTIONS = 'interactions', 'Interactions'


# Types without an entry count as interactions
TYPE_TO_COUNTER = {
    NotificationType.MESSAGE: CounterKey.MESSAGES,
    NotificationType.RESERVATION_REQUEST: CounterKey.RESERVATIONS,
    NotificationType.RESERVATION_STATUS: CounterKey.RESERVATIONS,
    NotificationType.PAYMENT_UPDATE: CounterKey.PAYMENTS,
}


def counter_for_type(notification_type):
    return TYPE_TO_COUNTER.get(notification_type, CounterKey.INTERACTIONS)


class Notification(models.Model):
    """A notification addressed to one user."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    recipient = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    type = models.CharField(max_length=30, choices=NotificationType.choices)

    # Optional back-reference to what the notification is about
    entity_type = models.CharField(max_length=20, choices=EntityType.choices, blank=True)
    entity_id = models.CharField(max_length=64, blank=True)

    title = models.CharField(max_length=200, blank=True)
    body = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications'
        indexes = [
            models.Index(fields=['recipient', '-created_at'], name='notification_recipient_idx'),
            models.Index(fields=['recipient', 'read'], name='notification_unread_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.type} -> {self.recipient_id}"


class CounterBucket(models.Model):
    """
    Per-recipient notification counters.

    ``total`` is always the sum of the four buckets. Only the notification
    ledger service writes this table, inside the same transaction as the
    notification it accounts for.
    """

    recipient = models.OneToOneField(
        'accounts.User',
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='notification_counters'
    )
    messages = models.PositiveIntegerField(default=0)
    reservations = models.PositiveIntegerField(default=0)
    payments = models.PositiveIntegerField(default=0)
    interactions = models.PositiveIntegerField(default=0)
    total = models.PositiveIntegerField(default=0)

    # bucket name -> ISO timestamp of the last "seen" reset
    last_seen = models.JSONField(default=dict, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'notification_counters'

    def __str__(self):
        return f"Counters for {self.recipient_id}: {self.total}"

    def recompute_total(self):
        self.total = self.messages + self.reservations + self.payments + self.interactions

    def increment(self, key):
        key = str(key)
        setattr(self, key, getattr(self, key) + 1)
        self.recompute_total()

    def reset(self, key):
        setattr(self, str(key), 0)
        self.recompute_total()

    def as_dict(self):
        return {
            'messages': self.messages,
            'reservations': self.reservations,
            'payments': self.payments,
            'interactions': self.interactions,
            'total': self.total,
        }
