import datetime
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import RequestFactory, TestCase, override_settings
from django.utils import timezone

from members.models import Member
from .calendar_utils import build_meetings_ics
from .models import AttendanceRecord, Meeting, MeetingSeries
from .recurrence import InvalidSeriesError
from .services import (
    attendance_summary, cancel_meeting, generate_meetings, materialize_meeting, record_attendance,
    save_attendance_sheet, target_attendees,
)
from .templatetags.meeting_extras import sanitize_richtext


def create_member(first_name, last_name='Member', status=Member.STATUS_ACTIVE, roles=None):
    return Member.objects.create(
        first_name=first_name,
        last_name=last_name,
        email=f"{first_name.lower()}@example.com",
        phone='5551234567',
        status=status,
        roles=roles or [],
    )


def create_series(**kwargs):
    fields = {
        'name': 'Prayer meeting',
        'description': 'Weekly prayer',
        'default_time': datetime.time(19, 30),
        'default_location': 'Chapel',
        'target_attendee_groups': [MeetingSeries.TARGET_ALL_MEMBERS],
        'frequency': MeetingSeries.FREQUENCY_WEEKLY,
        'weekly_days': ['Monday', 'Thursday'],
    }
    fields.update(kwargs)
    return MeetingSeries.objects.create(**fields)


MARCH_START = datetime.date(2025, 3, 3)
MARCH_END = datetime.date(2025, 3, 30)


class MaterializeMeetingTests(TestCase):
    def setUp(self):
        self.series = create_series(default_image_url='https://example.com/prayer.png')

    def test_copies_series_defaults(self):
        meeting = materialize_meeting(self.series, MARCH_START)
        self.assertIsNone(meeting.pk)
        self.assertEqual(meeting.series, self.series)
        self.assertEqual(meeting.date, MARCH_START)
        self.assertEqual(meeting.name, 'Prayer meeting')
        self.assertEqual(meeting.time, datetime.time(19, 30))
        self.assertEqual(meeting.location, 'Chapel')
        self.assertEqual(meeting.description, 'Weekly prayer')
        self.assertEqual(meeting.image_url, 'https://example.com/prayer.png')
        self.assertEqual(meeting.status, Meeting.STATUS_SCHEDULED)

    def test_overrides(self):
        meeting = materialize_meeting(self.series, MARCH_START, location='Room 2', time=datetime.time(18, 0))
        self.assertEqual(meeting.location, 'Room 2')
        self.assertEqual(meeting.time, datetime.time(18, 0))
        self.assertEqual(meeting.name, 'Prayer meeting')

    def test_unknown_override_rejected(self):
        with self.assertRaises(TypeError):
            materialize_meeting(self.series, MARCH_START, colour='blue')

    def test_does_not_write(self):
        materialize_meeting(self.series, MARCH_START)
        self.assertEqual(Meeting.objects.count(), 0)


class TargetAttendeesTests(TestCase):
    def setUp(self):
        self.ana = create_member('Ana', roles=[Member.ROLE_LEADER])
        self.ben = create_member('Ben', roles=[Member.ROLE_WORKER])
        self.carla = create_member('Carla', status=Member.STATUS_NEW, roles=[Member.ROLE_GENERAL_ATTENDEE])
        self.dario = create_member('Dario', status=Member.STATUS_INACTIVE, roles=[Member.ROLE_WORKER])
        self.members = [self.ana, self.ben, self.carla, self.dario]

    def test_all_members_excludes_inactive(self):
        self.assertEqual(target_attendees(['allMembers'], self.members), [self.ana, self.ben, self.carla])

    def test_workers(self):
        self.assertEqual(target_attendees(['workers'], self.members), [self.ben, self.dario])

    def test_leaders(self):
        self.assertEqual(target_attendees(['leaders'], self.members), [self.ana])

    def test_union_keeps_input_order_without_duplicates(self):
        result = target_attendees(['leaders', 'workers'], [self.dario, self.ben, self.ana])
        self.assertEqual(result, [self.dario, self.ben, self.ana])

    def test_no_groups(self):
        self.assertEqual(target_attendees([], self.members), [])


class GenerateMeetingsTests(TestCase):
    def setUp(self):
        self.leader = create_member('Ana', roles=[Member.ROLE_LEADER])
        self.worker = create_member('Ben', roles=[Member.ROLE_WORKER])
        self.series = create_series()

    def test_creates_one_meeting_per_occurrence(self):
        created = generate_meetings(self.series, MARCH_START, MARCH_END)
        self.assertEqual(len(created), 8)
        self.assertEqual(
            list(self.series.meetings.values_list('date', flat=True)),
            [meeting.date for meeting in created],
        )
        self.assertEqual(set(created[0].attendees.all()), {self.leader, self.worker})

    def test_attendees_follow_target_groups(self):
        self.series.target_attendee_groups = [MeetingSeries.TARGET_LEADERS]
        self.series.save()
        meeting = generate_meetings(self.series, MARCH_START, MARCH_START)[0]
        self.assertEqual(list(meeting.attendees.all()), [self.leader])

    def test_regenerating_same_window_is_idempotent(self):
        generate_meetings(self.series, MARCH_START, MARCH_END)
        self.assertEqual(generate_meetings(self.series, MARCH_START, MARCH_END), [])
        self.assertEqual(self.series.meetings.count(), 8)

    def test_overlapping_window_only_adds_missing_dates(self):
        generate_meetings(self.series, MARCH_START, datetime.date(2025, 3, 16))
        created = generate_meetings(self.series, datetime.date(2025, 3, 10), MARCH_END)
        self.assertEqual([m.date for m in created], [
            datetime.date(2025, 3, 17), datetime.date(2025, 3, 20),
            datetime.date(2025, 3, 24), datetime.date(2025, 3, 27),
        ])
        self.assertEqual(self.series.meetings.count(), 8)

    def test_cancelled_occurrence_is_not_recreated(self):
        first = generate_meetings(self.series, MARCH_START, MARCH_END)[0]
        cancel_meeting(first)
        self.assertEqual(generate_meetings(self.series, MARCH_START, MARCH_END), [])
        self.assertTrue(Meeting.objects.get(pk=first.pk).is_cancelled)

    def test_deleted_occurrence_is_recreated(self):
        first = generate_meetings(self.series, MARCH_START, MARCH_END)[0]
        first.delete()
        created = generate_meetings(self.series, MARCH_START, MARCH_END)
        self.assertEqual([m.date for m in created], [MARCH_START])

    def test_other_series_meetings_do_not_block(self):
        other = create_series(name='Choir practice')
        generate_meetings(other, MARCH_START, MARCH_END)
        self.assertEqual(len(generate_meetings(self.series, MARCH_START, MARCH_END)), 8)

    def test_invalid_series_writes_nothing(self):
        broken = create_series(weekly_days=[])
        with self.assertRaises(InvalidSeriesError):
            generate_meetings(broken, MARCH_START, MARCH_END)
        self.assertEqual(Meeting.objects.count(), 0)

    def test_invalid_series_is_rejected_before_querying(self):
        broken = create_series(weekly_days=[])
        with self.assertNumQueries(0), self.assertRaises(InvalidSeriesError):
            generate_meetings(broken, MARCH_START, MARCH_END)

    def test_logs_generation(self):
        with self.assertLogs('meetings.services', level='INFO') as logs:
            generate_meetings(self.series, MARCH_START, MARCH_END)
        self.assertIn('Generated 8 meetings', logs.output[0])


class AttendanceTests(TestCase):
    def setUp(self):
        self.ana = create_member('Ana')
        self.ben = create_member('Ben')
        self.series = create_series()
        self.meeting, self.second = generate_meetings(self.series, MARCH_START, datetime.date(2025, 3, 6))

    def test_record_attendance_is_an_upsert(self):
        record_attendance(self.meeting, self.ana, attended=False)
        record = record_attendance(self.meeting, self.ana, attended=True, notes='Arrived late')
        self.assertEqual(AttendanceRecord.objects.count(), 1)
        record.refresh_from_db()
        self.assertTrue(record.attended)
        self.assertEqual(record.notes, 'Arrived late')

    def test_attendance_sheet_records_every_expected_attendee(self):
        records = save_attendance_sheet(self.meeting, [str(self.ana.pk)], {self.ben.pk: 'Travelling'})
        self.assertEqual(len(records), 2)
        self.assertTrue(AttendanceRecord.objects.get(meeting=self.meeting, member=self.ana).attended)
        absent = AttendanceRecord.objects.get(meeting=self.meeting, member=self.ben)
        self.assertFalse(absent.attended)
        self.assertEqual(absent.notes, 'Travelling')

    def test_attendance_sheet_resave_updates(self):
        save_attendance_sheet(self.meeting, [self.ana.pk])
        save_attendance_sheet(self.meeting, [self.ben.pk])
        self.assertEqual(AttendanceRecord.objects.filter(meeting=self.meeting).count(), 2)
        self.assertFalse(AttendanceRecord.objects.get(meeting=self.meeting, member=self.ana).attended)

    def test_summary(self):
        save_attendance_sheet(self.meeting, [self.ana.pk])
        save_attendance_sheet(self.second, [])
        self.assertEqual(attendance_summary(self.ana), {'recorded': 2, 'attended': 1, 'rate': 50})

    def test_summary_without_records(self):
        self.assertEqual(attendance_summary(self.ana), {'recorded': 0, 'attended': 0, 'rate': None})

    def test_cancel_meeting(self):
        self.assertTrue(cancel_meeting(self.meeting))
        self.meeting.refresh_from_db()
        self.assertEqual(self.meeting.status, Meeting.STATUS_CANCELLED)
        self.assertFalse(cancel_meeting(self.meeting))


class GenerateMeetingsCommandTests(TestCase):
    def setUp(self):
        create_member('Ana')
        self.daily = create_series(name='Morning prayer', weekly_days=[day for day, _ in MeetingSeries.DAY_CHOICES])

    def call(self, *args):
        out = StringIO()
        err = StringIO()
        call_command('generate_meetings', *args, stdout=out, stderr=err)
        return out.getvalue(), err.getvalue()

    def test_generates_requested_days(self):
        out, _ = self.call('--days', '6')
        self.assertEqual(self.daily.meetings.count(), 7)
        self.assertEqual(self.daily.meetings.earliest('date').date, timezone.localdate())
        self.assertIn('Generated 7 meetings', out)

    def test_second_run_adds_nothing(self):
        self.call('--days', '6')
        out, _ = self.call('--days', '6')
        self.assertEqual(self.daily.meetings.count(), 7)
        self.assertIn('Generated 0 meetings', out)

    def test_invalid_series_is_skipped(self):
        broken = create_series(name='Broken', weekly_days=[])
        with self.assertLogs('meetings.management.commands.generate_meetings', level='WARNING'):
            out, err = self.call('--days', '6')
        self.assertIn("Skipped 'Broken'", err)
        self.assertIn('skipped 1 invalid series', out)
        self.assertEqual(broken.meetings.count(), 0)
        self.assertEqual(self.daily.meetings.count(), 7)

    def test_series_filter(self):
        other = create_series(name='Other')
        self.call('--days', '6', '--series', str(other.pk))
        self.assertEqual(self.daily.meetings.count(), 0)
        self.assertGreater(other.meetings.count(), 0)

    def test_unknown_series(self):
        with self.assertRaises(CommandError):
            self.call('--series', '9999')

    def test_negative_days(self):
        with self.assertRaises(CommandError):
            self.call('--days', '-1')


@override_settings(TIME_ZONE='UTC', MEETING_DEFAULT_DURATION_MINUTES=90)
class CalendarExportTests(TestCase):
    def setUp(self):
        self.series = create_series(name='Leaders; planning, Q1', description='Budget\nand plans')
        self.meeting = generate_meetings(self.series, MARCH_START, MARCH_START)[0]
        self.request = RequestFactory().get('/meetings/calendar.ics')

    def test_event_fields(self):
        content = build_meetings_ics([self.meeting], self.request)
        self.assertTrue(content.startswith('BEGIN:VCALENDAR\r\n'))
        self.assertIn('DTSTART:20250303T193000Z', content)
        self.assertIn('DTEND:20250303T210000Z', content)
        self.assertIn('SUMMARY:Leaders\\; planning\\, Q1', content)
        self.assertIn('DESCRIPTION:Budget\\nand plans', content)
        self.assertIn(f'UID:meeting-{self.meeting.pk}@testserver', content)
        self.assertIn(f'URL:http://testserver/meetings/{self.meeting.pk}/', content)
        self.assertIn('STATUS:CONFIRMED', content)

    def test_cancelled_meeting_is_marked(self):
        cancel_meeting(self.meeting)
        content = build_meetings_ics([self.meeting], self.request)
        self.assertIn('STATUS:CANCELLED', content)

    def test_long_lines_are_folded(self):
        self.meeting.description = 'x' * 300
        content = build_meetings_ics([self.meeting], self.request)
        for line in content.split('\r\n'):
            self.assertLessEqual(len(line.encode('utf-8')), 75)

    def test_without_request(self):
        content = build_meetings_ics([self.meeting])
        self.assertIn(f'UID:meeting-{self.meeting.pk}@localhost', content)
        self.assertNotIn('URL:', content)


class SanitizeRichtextTests(TestCase):
    def test_strips_scripts(self):
        cleaned = sanitize_richtext('<p>Opening prayer</p><script>alert(1)</script>')
        self.assertIn('<p>Opening prayer</p>', cleaned)
        self.assertNotIn('<script>', cleaned)

    def test_empty(self):
        self.assertEqual(sanitize_richtext(''), '')
