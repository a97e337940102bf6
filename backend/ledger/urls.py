from django.contrib import admin
from django.urls import include, path

from .views import DailyTripDetailView, DailyTripListCreateView

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('accounts.urls')),
    path('api/', include('core.urls')),
    path('api/daily-trips/', DailyTripListCreateView.as_view(), name='daily-trip-list'),
    path('api/daily-trips/<int:id>/', DailyTripDetailView.as_view(), name='daily-trip-detail'),
]
