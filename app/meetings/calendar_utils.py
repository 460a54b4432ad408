"""
ICS export of meetings, for a single meeting download and the subscription feed.
"""
from datetime import timedelta, timezone as dt_timezone

from django.conf import settings
from django.utils import timezone

ICS_DATETIME_FORMAT = '%Y%m%dT%H%M%SZ'


def _escape_ics_text(text):
    if not text:
        return ""
    text = str(text)
    text = text.replace('\\', '\\\\').replace(',', '\\,').replace(';', '\\;').replace('\n', '\\n')
    return text


def _fold_line(line, limit=75):
    """Split content lines longer than ``limit`` octets into continuation lines."""
    if len(line.encode('utf-8')) <= limit:
        return line
    parts = []
    current = ''
    for char in line:
        if len((current + char).encode('utf-8')) > limit:
            parts.append(current)
            current = ' ' + char
        else:
            current += char
    parts.append(current)
    return "\r\n".join(parts)


def build_meetings_ics(meetings, request=None, host=None):
    """
    Build ICS content (str) for the given meetings.

    Cancelled meetings are kept in the feed with STATUS:CANCELLED so
    subscribed calendars drop them. Uses request for absolute URLs and
    falls back to ``host`` for the UID domain.
    """
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Gracehub//Meetings//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
    ]
    host = host or (request.get_host() if request else 'localhost')
    duration = timedelta(minutes=getattr(settings, 'MEETING_DEFAULT_DURATION_MINUTES', 60))
    stamp = timezone.now().astimezone(dt_timezone.utc).strftime(ICS_DATETIME_FORMAT)

    for meeting in meetings:
        start_utc = meeting.starts_at.astimezone(dt_timezone.utc)
        end_utc = start_utc + duration
        url = request.build_absolute_uri(meeting.get_absolute_url()) if request else ''

        lines.append("BEGIN:VEVENT")
        lines.append(f"UID:meeting-{meeting.pk}@{host}")
        lines.append(f"DTSTAMP:{stamp}")
        lines.append(f"DTSTART:{start_utc.strftime(ICS_DATETIME_FORMAT)}")
        lines.append(f"DTEND:{end_utc.strftime(ICS_DATETIME_FORMAT)}")
        lines.append(f"SUMMARY:{_escape_ics_text(meeting.name)}")
        if meeting.description:
            lines.append(f"DESCRIPTION:{_escape_ics_text(meeting.description)}")
        if meeting.location:
            lines.append(f"LOCATION:{_escape_ics_text(meeting.location)}")
        if url:
            lines.append(f"URL:{url}")
        lines.append("STATUS:CANCELLED" if meeting.is_cancelled else "STATUS:CONFIRMED")
        lines.append("END:VEVENT")

    lines.append("END:VCALENDAR")
    return "\r\n".join(_fold_line(line) for line in lines) + "\r\n"
