import logging

from django.db.models import Count
from django.utils import timezone
from django.views.generic import TemplateView

logger = logging.getLogger(__name__)


class HomePageView(TemplateView):
    template_name = "pages/home.html"
    UPCOMING_LIMIT = 5

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        user = self.request.user
        if not user.is_authenticated:
            return context

        if user.is_superuser or user.has_role_permission('members.view'):
            from members.models import GDI, Member, MinistryArea

            status_counts = dict(Member.objects.values_list('status').annotate(count=Count('id')))
            # Ordered list for the status cards
            context['member_status_stats'] = [
                {'status': status, 'label': label, 'count': status_counts.get(status, 0)}
                for status, label in Member.STATUS_CHOICES
            ]
            context['total_members'] = sum(status_counts.values())
            context['gdi_count'] = GDI.objects.count()
            context['area_count'] = MinistryArea.objects.count()

        if user.is_superuser or user.has_role_permission('meetings.view'):
            from meetings.models import Meeting

            context['upcoming_meetings'] = Meeting.objects.filter(
                date__gte=timezone.localdate(),
            ).select_related('series').order_by('date', 'time')[:self.UPCOMING_LIMIT]

        return context
