from django.urls import path, include
from rest_framework.routers import SimpleRouter
from . import views

app_name = 'notifications'

router = SimpleRouter()
router.register(r'', views.NotificationViewSet, basename='notification')

urlpatterns = [
    # GET    /api/notifications/                - List (?unread=true)
    # POST   /api/notifications/{id}/read/      - Mark as read
    # GET    /api/notifications/counters/       - Unread counters
    # POST   /api/notifications/counters/seen/  - Reset one counter bucket
    path('counters/', views.counters, name='counters'),
    path('counters/seen/', views.mark_seen, name='counters-seen'),

    path('', include(router.urls)),
]
