"""
Reservations app services layer.

Services own every reservation status change. State-changing operations
run in a transaction with the reservation row locked.
"""

from .reservation_lifecycle import (
    fees_for_base,
    quote_reservation,
    request_reservation,
    accept_reservation,
    cancel_reservation,
    confirm_payment,
    confirm_pickup,
    confirm_return,
    get_reservation_for_party,
    list_reservations_for_user,
)


__all__ = [
    'fees_for_base',
    'quote_reservation',
    'request_reservation',
    'accept_reservation',
    'cancel_reservation',
    'confirm_payment',
    'confirm_pickup',
    'confirm_return',
    'get_reservation_for_party',
    'list_reservations_for_user',
]
