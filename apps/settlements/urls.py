from django.urls import path
from . import views

app_name = 'settlements'

urlpatterns = [
    # POST /api/settlements/reservations/{id}/release/ - Release owner payout
    path(
        'reservations/<uuid:reservation_id>/release/',
        views.release_reservation_payout,
        name='release-payout',
    ),
]
