from django.urls import path
from .views import (
    MeetingSeriesListView, MeetingSeriesDetailView, MeetingSeriesCreateView, MeetingSeriesUpdateView,
    MeetingSeriesDeleteView, MeetingSeriesGenerateView,
    MeetingListView, MeetingDetailView, MeetingCreateView, MeetingUpdateView, MeetingCancelView, MeetingDeleteView,
    MeetingAttendanceView, MeetingExportICSView, CalendarFeedView,
)

app_name = 'meetings'

urlpatterns = [
    # Meeting Series URLs
    path('series/', MeetingSeriesListView.as_view(), name='series-list'),
    path('series/create/', MeetingSeriesCreateView.as_view(), name='series-create'),
    path('series/<int:pk>/', MeetingSeriesDetailView.as_view(), name='series-detail'),
    path('series/<int:pk>/edit/', MeetingSeriesUpdateView.as_view(), name='series-edit'),
    path('series/<int:pk>/delete/', MeetingSeriesDeleteView.as_view(), name='series-delete'),
    path('series/<int:pk>/generate/', MeetingSeriesGenerateView.as_view(), name='series-generate'),

    # Meeting URLs
    path('', MeetingListView.as_view(), name='meeting-list'),
    path('create/', MeetingCreateView.as_view(), name='meeting-create'),
    path('calendar.ics', CalendarFeedView.as_view(), name='calendar-feed'),
    path('<int:pk>/', MeetingDetailView.as_view(), name='meeting-detail'),
    path('<int:pk>/edit/', MeetingUpdateView.as_view(), name='meeting-edit'),
    path('<int:pk>/cancel/', MeetingCancelView.as_view(), name='meeting-cancel'),
    path('<int:pk>/delete/', MeetingDeleteView.as_view(), name='meeting-delete'),
    path('<int:pk>/attendance/', MeetingAttendanceView.as_view(), name='meeting-attendance'),
    path('<int:pk>/export.ics', MeetingExportICSView.as_view(), name='meeting-export-ics'),
]
