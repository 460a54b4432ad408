"""
Persistence and attendance operations for meetings.

``generate_meetings`` is the only place generated occurrences are written.
It runs in one transaction and skips every date the series already has a
meeting on, whatever that meeting's status, so a cancelled occurrence is
never recreated.
"""

import logging

from django.db import transaction
from django.db.models import Count, Q

from members.models import Member
from .models import AttendanceRecord, Meeting, MeetingSeries
from .recurrence import InvalidSeriesError, generate_occurrences, series_issues

logger = logging.getLogger(__name__)

MEETING_FIELDS_FROM_SERIES = {
    'name': 'name',
    'time': 'default_time',
    'location': 'default_location',
    'description': 'description',
    'image_url': 'default_image_url',
}


def materialize_meeting(series, on_date, **overrides):
    """Unsaved Meeting for ``series`` on ``on_date``; keyword arguments override series defaults."""
    unknown = set(overrides) - set(MEETING_FIELDS_FROM_SERIES)
    if unknown:
        raise TypeError(f"Unknown meeting fields: {', '.join(sorted(unknown))}")

    values = {field: getattr(series, source) for field, source in MEETING_FIELDS_FROM_SERIES.items()}
    values.update(overrides)
    return Meeting(series=series, date=on_date, **values)


def target_attendees(groups, members):
    """Members expected at a meeting addressed to ``groups``, in the order of ``members``."""
    groups = set(groups or ())
    selected = []
    for member in members:
        if MeetingSeries.TARGET_ALL_MEMBERS in groups and member.status != Member.STATUS_INACTIVE:
            selected.append(member)
        elif MeetingSeries.TARGET_WORKERS in groups and member.has_role(Member.ROLE_WORKER):
            selected.append(member)
        elif MeetingSeries.TARGET_LEADERS in groups and member.has_role(Member.ROLE_LEADER):
            selected.append(member)
    return selected


def generate_meetings(series, window_start, window_end):
    """
    Materialise every occurrence of ``series`` in the window that has no meeting yet.

    Returns the newly created meetings. Raises InvalidSeriesError before
    touching the database if the series rule is not usable.
    """
    issues = series_issues(series)
    if issues:
        raise InvalidSeriesError(issues)

    with transaction.atomic():
        existing = series.meetings.filter(date__range=(window_start, window_end)).values_list('date', flat=True)
        dates = list(generate_occurrences(series, window_start, window_end, existing_dates=existing))
        if not dates:
            return []

        attendees = target_attendees(series.target_attendee_groups, Member.objects.all())
        created = []
        for on_date in dates:
            meeting = materialize_meeting(series, on_date)
            meeting.save()
            meeting.attendees.set(attendees)
            created.append(meeting)

    logger.info(
        "Generated %d meetings for series %s between %s and %s",
        len(created), series.pk, window_start, window_end,
    )
    return created


def record_attendance(meeting, member, attended, notes=''):
    record, created = AttendanceRecord.objects.update_or_create(
        meeting=meeting,
        member=member,
        defaults={'attended': attended, 'notes': notes},
    )
    logger.debug(
        "%s attendance of member %s at meeting %s (attended=%s)",
        'Recorded' if created else 'Updated', member.pk, meeting.pk, attended,
    )
    return record


@transaction.atomic
def save_attendance_sheet(meeting, attended_ids, notes_by_member=None):
    """Record attendance for every expected attendee of ``meeting``."""
    attended_ids = {int(pk) for pk in attended_ids}
    notes_by_member = notes_by_member or {}
    records = [
        record_attendance(
            meeting,
            member,
            attended=member.pk in attended_ids,
            notes=notes_by_member.get(member.pk, ''),
        )
        for member in meeting.attendees.all()
    ]
    logger.info(
        "Attendance sheet saved for meeting %s: %d of %d attended",
        meeting.pk, sum(record.attended for record in records), len(records),
    )
    return records


def attendance_summary(member):
    counts = AttendanceRecord.objects.filter(member=member).aggregate(
        recorded=Count('pk'),
        attended=Count('pk', filter=Q(attended=True)),
    )
    recorded = counts['recorded'] or 0
    attended = counts['attended'] or 0
    return {
        'recorded': recorded,
        'attended': attended,
        'rate': round(attended * 100 / recorded) if recorded else None,
    }


def cancel_meeting(meeting):
    if meeting.is_cancelled:
        return False
    meeting.status = Meeting.STATUS_CANCELLED
    meeting.save(update_fields=['status', 'updated_at'])
    logger.info("Meeting %s on %s cancelled", meeting.pk, meeting.date)
    return True
