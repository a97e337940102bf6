from django.urls import path

from .views import HistoryListView, SettingsView

urlpatterns = [
    path('settings/', SettingsView.as_view(), name='settings'),
    path('histories/', HistoryListView.as_view(), name='histories'),
]
