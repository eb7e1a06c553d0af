# ==========================================
# apps/notifications/admin.py
# ==========================================

from django.contrib import admin
from django.utils.html import format_html
from .models import Notification, CounterBucket


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Read-only view of sent notifications."""

    list_display = [
        'recipient',
        'type',
        'title',
        'read_badge',
        'created_at',
    ]
    list_filter = ['type', 'read', 'created_at']
    search_fields = ['recipient__email', 'title', 'entity_id']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    readonly_fields = [
        'recipient', 'type', 'entity_type', 'entity_id', 'title', 'body',
        'metadata', 'read', 'read_at', 'created_at',
    ]

    def read_badge(self, obj):
        if obj.read:
            bg, fg, label = '#6B8E5E', 'white', 'Read'
        else:
            bg, fg, label = '#E5C49A', '#2C1810', 'Unread'
        return format_html(
            '<span style="background: {}; color: {}; padding: 3px 8px; '
            'border-radius: 10px; font-size: 11px;">{}</span>',
            bg, fg, label
        )
    read_badge.short_description = 'Read'

    def has_add_permission(self, request):
        """Notifications must be created with their counter increment."""
        return False


@admin.register(CounterBucket)
class CounterBucketAdmin(admin.ModelAdmin):
    list_display = ['recipient', 'messages', 'reservations', 'payments', 'interactions', 'total', 'updated_at']
    search_fields = ['recipient__email']
    readonly_fields = [
        'recipient', 'messages', 'reservations', 'payments', 'interactions',
        'total', 'last_seen', 'updated_at',
    ]

    def has_add_permission(self, request):
        return False
