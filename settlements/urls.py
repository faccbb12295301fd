from django.urls import include, path
from rest_framework.routers import SimpleRouter

from . import api_views

router = SimpleRouter()
router.register(r'weeks', api_views.SettlementWeekViewSet, basename='settlement-weeks')
router.register(r'payments', api_views.WeeklySettlementViewSet, basename='settlement-payments')

urlpatterns = [
    path('api/', include(router.urls)),
]
