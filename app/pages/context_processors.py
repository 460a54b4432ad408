import datetime

from django.utils import timezone

from user.models import PERMISSIONS


def navigation(request):
    """Context processor with what the navbar needs on every page"""
    context = {
        'nav_can': {},
        'next_meeting': None,
    }

    user = request.user
    if not user.is_authenticated:
        return context

    # e.g. nav_can.members_view
    context['nav_can'] = {
        permission.replace('.', '_'): user.can(permission)
        for permission, _ in PERMISSIONS
    }

    # Next meeting within 14 days
    if context['nav_can']['meetings_view']:
        from meetings.models import Meeting

        today = timezone.localdate()
        context['next_meeting'] = Meeting.objects.filter(
            status=Meeting.STATUS_SCHEDULED,
            date__gte=today,
            date__lte=today + datetime.timedelta(days=14),
        ).order_by('date', 'time').first()

    return context
