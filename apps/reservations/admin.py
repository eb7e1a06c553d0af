# ==========================================
# apps/reservations/admin.py
# ==========================================

from django.contrib import admin
from django.utils.html import format_html
from .models import Reservation, BookedDay, ReservationStatus


STATUS_COLORS = {
    ReservationStatus.REQUESTED: ('#E5C49A', '#2C1810'),
    ReservationStatus.ACCEPTED: ('#A47449', 'white'),
    ReservationStatus.PAID: ('#6B8E5E', 'white'),
    ReservationStatus.PICKED_UP: ('#6B8E5E', 'white'),
    ReservationStatus.RETURNED: ('#4A6FA5', 'white'),
    ReservationStatus.CANCELLED: ('#B85C5C', 'white'),
    ReservationStatus.PAID_OUT: ('#2C1810', 'white'),
}


def format_cents(cents):
    if cents is None:
        return '-'
    return f"{cents / 100:.2f}"


class BookedDayInline(admin.TabularInline):
    """Booked calendar days held by a reservation."""
    model = BookedDay
    extra = 0
    fields = ['item_id', 'day', 'created_at']
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        """Days are booked by the accept service only."""
        return False


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    """
    Admin interface for reservations.

    Ledger fields (money, processor ids, status) are read-only; status
    changes must go through the services so transitions stay legal.
    """

    list_display = [
        'item_title',
        'renter',
        'item_owner',
        'start_date',
        'end_date',
        'get_total_display',
        'status_badge',
        'created_at',
    ]

    list_filter = [
        'status',
        'is_free',
        'start_date',
        'created_at',
    ]

    search_fields = [
        'item_id',
        'item_title',
        'renter__email',
        'item_owner__email',
        'payment_intent_id',
        'transfer_id',
    ]

    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    inlines = [BookedDayInline]

    fieldsets = (
        ('Reservation', {
            'fields': ('renter', 'item_owner', 'item_id', 'item_title', 'status')
        }),
        ('Period', {
            'fields': ('start_date', 'end_date', 'days'),
        }),
        ('Money', {
            'fields': (
                'is_free', 'daily_rate_cents', 'total_cents',
                'fee_breakdown', 'amount_total_cents',
            ),
        }),
        ('Payment processor', {
            'fields': (
                'payment_intent_id', 'charge_id', 'owner_stripe_account_id',
                'transfer_id', 'payout_started_at', 'transferred_at',
            ),
        }),
        ('Cancellation', {
            'fields': ('cancelled_by', 'cancel_reason', 'cancelled_at'),
            'classes': ('collapse',),
        }),
        ('Timestamps', {
            'fields': (
                'created_at', 'updated_at', 'accepted_at', 'paid_at',
                'picked_up_at', 'returned_at',
            ),
            'classes': ('collapse',),
        }),
    )

    readonly_fields = [
        'renter', 'item_owner', 'status', 'days',
        'daily_rate_cents', 'total_cents', 'fee_breakdown', 'amount_total_cents',
        'payment_intent_id', 'charge_id', 'transfer_id',
        'payout_started_at', 'transferred_at',
        'cancelled_by', 'cancelled_at',
        'created_at', 'updated_at', 'accepted_at', 'paid_at',
        'picked_up_at', 'returned_at',
    ]

    def get_total_display(self, obj):
        """Base price for the whole stay."""
        if obj.is_free:
            return 'Free'
        return format_cents(obj.total_cents)
    get_total_display.short_description = 'Total'
    get_total_display.admin_order_field = 'total_cents'

    def status_badge(self, obj):
        """Display reservation status as colored badge."""
        bg, fg = STATUS_COLORS.get(obj.status, ('#ccc', '#666'))
        return format_html(
            '<span style="background: {}; color: {}; padding: 3px 8px; '
            'border-radius: 10px; font-size: 11px;">{}</span>',
            bg, fg, obj.get_status_display()
        )
    status_badge.short_description = 'Status'
    status_badge.admin_order_field = 'status'

    def has_add_permission(self, request):
        """Reservations are created through the API."""
        return False
