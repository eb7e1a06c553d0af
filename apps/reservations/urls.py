from django.urls import path, include
from rest_framework.routers import SimpleRouter
from . import views

app_name = 'reservations'

router = SimpleRouter()
router.register(r'', views.ReservationViewSet, basename='reservation')

urlpatterns = [
    # GET    /api/reservations/                        - List (?role=renter|owner, ?status=)
    # POST   /api/reservations/                        - Request a reservation
    # GET    /api/reservations/{id}/                   - Reservation details
    # POST   /api/reservations/quote/                  - Fee preview

    # Status changes
    # POST   /api/reservations/{id}/accept/            - Owner accepts
    # POST   /api/reservations/{id}/cancel/            - Renter withdraws / owner rejects
    # POST   /api/reservations/{id}/confirm_payment/   - Renter confirms payment
    # POST   /api/reservations/{id}/confirm_pickup/    - Renter picks up a free item
    # POST   /api/reservations/{id}/confirm_return/    - Either party confirms return

    path('', include(router.urls)),
]
