from django.urls import path
from .views import (
    MemberListView, MemberDetailView, MemberCreateView, MemberUpdateView, MemberDeactivateView, MemberBulkCreateView,
    GDIListView, GDIDetailView, GDICreateView, GDIUpdateView,
    MinistryAreaListView, MinistryAreaDetailView, MinistryAreaCreateView, MinistryAreaUpdateView,
)

app_name = 'members'

urlpatterns = [
    # Member URLs
    path('', MemberListView.as_view(), name='member-list'),
    path('create/', MemberCreateView.as_view(), name='member-create'),
    path('bulk-add/', MemberBulkCreateView.as_view(), name='member-bulk-create'),
    path('<int:pk>/', MemberDetailView.as_view(), name='member-detail'),
    path('<int:pk>/edit/', MemberUpdateView.as_view(), name='member-edit'),
    path('<int:pk>/deactivate/', MemberDeactivateView.as_view(), name='member-deactivate'),

    # GDI URLs
    path('gdis/', GDIListView.as_view(), name='gdi-list'),
    path('gdis/create/', GDICreateView.as_view(), name='gdi-create'),
    path('gdis/<int:pk>/', GDIDetailView.as_view(), name='gdi-detail'),
    path('gdis/<int:pk>/edit/', GDIUpdateView.as_view(), name='gdi-edit'),

    # Ministry Area URLs
    path('areas/', MinistryAreaListView.as_view(), name='area-list'),
    path('areas/create/', MinistryAreaCreateView.as_view(), name='area-create'),
    path('areas/<int:pk>/', MinistryAreaDetailView.as_view(), name='area-detail'),
    path('areas/<int:pk>/edit/', MinistryAreaUpdateView.as_view(), name='area-edit'),
]
