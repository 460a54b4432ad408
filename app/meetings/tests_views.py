import datetime

from django.contrib.auth import get_user_model
from django.contrib.messages import get_messages
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from members.models import Member
from user.models import Role
from .models import AttendanceRecord, Meeting, MeetingSeries
from .services import generate_meetings

User = get_user_model()


def series_post_data(**overrides):
    data = {
        'name': 'Sunday service',
        'description': '',
        'default_time': '19:30',
        'default_location': 'Main hall',
        'default_image_url': '',
        'target_attendee_groups': ['allMembers'],
        'frequency': 'Weekly',
        'weekly_days': ['Sunday'],
        'one_time_date': '',
        'monthly_rule_type': '',
        'monthly_day_of_month': '',
        'monthly_week_ordinal': '',
        'monthly_day_of_week': '',
    }
    data.update(overrides)
    return data


class MeetingViewTestCase(TestCase):
    """Users with and without meeting permissions plus one weekly series"""

    def setUp(self):
        self.superuser = User.objects.create_superuser(
            username='admin', email='admin@example.com', password='testpass123'
        )
        self.viewer_role = Role.objects.create(
            name='Viewer', permissions={'permissions': ['meetings.view']}
        )
        self.viewer = User.objects.create_user(username='viewer', password='testpass123', role=self.viewer_role)
        self.secretary_role = Role.objects.create(
            name='Secretary', permissions={'permissions': ['meetings.view', 'attendance.record']}
        )
        self.secretary = User.objects.create_user(
            username='secretary', password='testpass123', role=self.secretary_role
        )
        self.no_role = User.objects.create_user(username='visitor', password='testpass123')

        self.member = Member.objects.create(first_name='Ana', last_name='Lopez', status=Member.STATUS_ACTIVE)
        self.other_member = Member.objects.create(first_name='Ben', last_name='Ruiz', status=Member.STATUS_NEW)
        self.series = MeetingSeries.objects.create(
            name='Prayer meeting',
            default_time=datetime.time(19, 0),
            default_location='Chapel',
            target_attendee_groups=['allMembers'],
            frequency='Weekly',
            weekly_days=['Monday', 'Thursday'],
        )


class AccessControlTests(MeetingViewTestCase):
    def test_anonymous_is_redirected_to_login(self):
        response = self.client.get(reverse('meetings:meeting-list'))
        self.assertEqual(response.status_code, 302)
        self.assertIn('/accounts/login/', response.url)

    def test_anonymous_is_redirected_before_object_lookup(self):
        for url in (
            reverse('meetings:series-generate', args=[9999]),
            reverse('meetings:meeting-attendance', args=[9999]),
        ):
            response = self.client.get(url)
            self.assertEqual(response.status_code, 302)
            self.assertIn('/accounts/login/', response.url)

    def test_forbidden_before_object_lookup(self):
        self.client.login(username='visitor', password='testpass123')
        self.assertEqual(self.client.get(reverse('meetings:series-generate', args=[9999])).status_code, 403)
        self.assertEqual(self.client.get(reverse('meetings:meeting-attendance', args=[9999])).status_code, 403)

    def test_user_without_role_is_forbidden(self):
        self.client.login(username='visitor', password='testpass123')
        self.assertEqual(self.client.get(reverse('meetings:meeting-list')).status_code, 403)
        self.assertEqual(self.client.get(reverse('meetings:series-list')).status_code, 403)

    def test_viewer_can_list_but_not_create(self):
        self.client.login(username='viewer', password='testpass123')
        self.assertEqual(self.client.get(reverse('meetings:series-list')).status_code, 200)
        self.assertEqual(self.client.get(reverse('meetings:series-create')).status_code, 403)
        self.assertEqual(
            self.client.post(reverse('meetings:series-generate', args=[self.series.pk])).status_code, 403
        )

    def test_viewer_cannot_record_attendance(self):
        meeting = generate_meetings(self.series, datetime.date(2025, 3, 3), datetime.date(2025, 3, 3))[0]
        self.client.login(username='viewer', password='testpass123')
        self.assertEqual(self.client.get(reverse('meetings:meeting-attendance', args=[meeting.pk])).status_code, 403)

    def test_inactive_role_is_forbidden(self):
        self.viewer_role.is_active = False
        self.viewer_role.save()
        self.client.login(username='viewer', password='testpass123')
        self.assertEqual(self.client.get(reverse('meetings:meeting-list')).status_code, 403)


class MeetingSeriesViewTests(MeetingViewTestCase):
    def setUp(self):
        super().setUp()
        self.client.login(username='admin', password='testpass123')

    def test_series_detail_shows_schedule(self):
        response = self.client.get(self.series.get_absolute_url())
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Weekly on Monday, Thursday')
        self.assertIn('generate_form', response.context)

    def test_create_weekly_series(self):
        response = self.client.post(reverse('meetings:series-create'), series_post_data())
        series = MeetingSeries.objects.get(name='Sunday service')
        self.assertRedirects(response, series.get_absolute_url())
        self.assertEqual(series.weekly_days, ['Sunday'])
        self.assertEqual(series.default_time, datetime.time(19, 30))
        self.assertEqual(series.target_attendee_groups, ['allMembers'])

    def test_create_clears_fields_of_other_frequencies(self):
        self.client.post(reverse('meetings:series-create'), series_post_data(
            frequency='Monthly',
            monthly_rule_type='DayOfWeekOfMonth',
            monthly_week_ordinal='Last',
            monthly_day_of_week='Friday',
            monthly_day_of_month='15',
            one_time_date='2025-06-01',
        ))
        series = MeetingSeries.objects.get(name='Sunday service')
        self.assertEqual(series.weekly_days, [])
        self.assertIsNone(series.monthly_day_of_month)
        self.assertIsNone(series.one_time_date)
        self.assertEqual(series.get_schedule_display(), 'Monthly on the last Friday')

    def test_weekly_series_requires_days(self):
        response = self.client.post(reverse('meetings:series-create'), series_post_data(weekly_days=[]))
        self.assertEqual(response.status_code, 200)
        self.assertIn('weekly_days', response.context['form'].errors)
        self.assertFalse(MeetingSeries.objects.filter(name='Sunday service').exists())

    def test_day_of_month_out_of_range(self):
        response = self.client.post(reverse('meetings:series-create'), series_post_data(
            frequency='Monthly', monthly_rule_type='DayOfMonth', monthly_day_of_month='32',
        ))
        self.assertEqual(response.status_code, 200)
        self.assertIn('monthly_day_of_month', response.context['form'].errors)

    def test_time_must_be_hours_and_minutes(self):
        response = self.client.post(reverse('meetings:series-create'), series_post_data(default_time='7pm'))
        self.assertEqual(response.status_code, 200)
        self.assertIn('default_time', response.context['form'].errors)

    def test_target_groups_required(self):
        response = self.client.post(reverse('meetings:series-create'), series_post_data(target_attendee_groups=[]))
        self.assertEqual(response.status_code, 200)
        self.assertIn('target_attendee_groups', response.context['form'].errors)

    def test_short_name_rejected(self):
        response = self.client.post(reverse('meetings:series-create'), series_post_data(name='ab'))
        self.assertEqual(response.status_code, 200)
        self.assertIn('name', response.context['form'].errors)

    def test_update_series(self):
        response = self.client.post(
            reverse('meetings:series-edit', args=[self.series.pk]),
            series_post_data(name='Evening prayer', weekly_days=['Tuesday']),
        )
        self.assertRedirects(response, self.series.get_absolute_url())
        self.series.refresh_from_db()
        self.assertEqual(self.series.name, 'Evening prayer')
        self.assertEqual(self.series.weekly_days, ['Tuesday'])

    def test_delete_series_keeps_meetings(self):
        meetings = generate_meetings(self.series, datetime.date(2025, 3, 3), datetime.date(2025, 3, 9))
        response = self.client.post(reverse('meetings:series-delete', args=[self.series.pk]))
        self.assertRedirects(response, reverse('meetings:series-list'))
        self.assertFalse(MeetingSeries.objects.exists())
        self.assertEqual(Meeting.objects.count(), len(meetings))
        self.assertFalse(Meeting.objects.filter(series__isnull=False).exists())


class GenerateMeetingsViewTests(MeetingViewTestCase):
    def setUp(self):
        super().setUp()
        self.client.login(username='admin', password='testpass123')
        self.url = reverse('meetings:series-generate', args=[self.series.pk])

    def test_get_shows_default_window(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['form'].fields['window_start'].initial, timezone.localdate())

    def test_generate_window(self):
        response = self.client.post(self.url, {'window_start': '2025-03-03', 'window_end': '2025-03-30'})
        self.assertRedirects(response, self.series.get_absolute_url(), fetch_redirect_response=False)
        self.assertEqual(self.series.meetings.count(), 8)
        messages = [str(m) for m in get_messages(response.wsgi_request)]
        self.assertIn('8 meetings generated between 2025-03-03 and 2025-03-30.', messages)

    def test_generate_again_reports_nothing_new(self):
        data = {'window_start': '2025-03-03', 'window_end': '2025-03-30'}
        self.client.post(self.url, data)
        response = self.client.post(self.url, data)
        self.assertEqual(self.series.meetings.count(), 8)
        messages = [str(m) for m in get_messages(response.wsgi_request)]
        self.assertIn('No new meetings: every occurrence in that window already exists.', messages)

    def test_inverted_window_rejected(self):
        response = self.client.post(self.url, {'window_start': '2025-03-30', 'window_end': '2025-03-03'})
        self.assertEqual(response.status_code, 200)
        self.assertIn('window_end', response.context['form'].errors)
        self.assertEqual(self.series.meetings.count(), 0)

    def test_window_too_long(self):
        response = self.client.post(self.url, {'window_start': '2025-01-01', 'window_end': '2026-06-01'})
        self.assertEqual(response.status_code, 200)
        self.assertIn('window_end', response.context['form'].errors)

    def test_incomplete_rule_reports_error(self):
        self.series.weekly_days = []
        self.series.save()
        with self.assertLogs('meetings.views', level='WARNING'):
            response = self.client.post(self.url, {'window_start': '2025-03-03', 'window_end': '2025-03-30'})
        self.assertRedirects(response, self.series.get_absolute_url(), fetch_redirect_response=False)
        messages = [str(m) for m in get_messages(response.wsgi_request)]
        self.assertTrue(messages[0].startswith('The recurrence rule of this series is incomplete'))
        self.assertEqual(Meeting.objects.count(), 0)

    def test_unknown_series(self):
        response = self.client.post(reverse('meetings:series-generate', args=[9999]))
        self.assertEqual(response.status_code, 404)


class MeetingViewTests(MeetingViewTestCase):
    def setUp(self):
        super().setUp()
        today = timezone.localdate()
        self.upcoming = Meeting.objects.create(
            series=self.series, name='Prayer meeting', date=today + datetime.timedelta(days=3),
            time=datetime.time(19, 0), location='Chapel',
        )
        self.upcoming.attendees.set([self.member, self.other_member])
        self.past = Meeting.objects.create(
            series=self.series, name='Old prayer meeting', date=today - datetime.timedelta(days=3),
            time=datetime.time(19, 0), location='Chapel',
        )

    def test_list_defaults_to_upcoming(self):
        self.client.login(username='viewer', password='testpass123')
        response = self.client.get(reverse('meetings:meeting-list'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(list(response.context['meetings']), [self.upcoming])
        self.assertEqual(response.context['when'], 'upcoming')

    def test_list_past(self):
        self.client.login(username='viewer', password='testpass123')
        response = self.client.get(reverse('meetings:meeting-list'), {'when': 'past'})
        self.assertEqual(list(response.context['meetings']), [self.past])
        self.assertEqual(response.context['when'], 'past')

    def test_detail(self):
        self.client.login(username='viewer', password='testpass123')
        response = self.client.get(self.upcoming.get_absolute_url())
        self.assertEqual(response.status_code, 200)
        self.assertEqual(list(response.context['attendees']), [self.member, self.other_member])

    def test_detail_strips_unsafe_minutes(self):
        self.upcoming.minute = '<p>Opened in prayer</p><script>alert(1)</script>'
        self.upcoming.save()
        self.client.login(username='viewer', password='testpass123')
        response = self.client.get(self.upcoming.get_absolute_url())
        self.assertContains(response, '<p>Opened in prayer</p>', html=False)
        self.assertNotContains(response, '<script>alert(1)</script>', html=False)

    def test_create_occasional_meeting(self):
        self.client.login(username='admin', password='testpass123')
        response = self.client.post(reverse('meetings:meeting-create'), {
            'name': 'Leaders retreat',
            'date': '2025-05-10',
            'time': '09:00',
            'location': 'Camp',
            'description': '',
            'image_url': '',
            'attendees': [self.member.pk],
            'minute': '',
        })
        meeting = Meeting.objects.get(name='Leaders retreat')
        self.assertRedirects(response, meeting.get_absolute_url())
        self.assertIsNone(meeting.series)
        self.assertEqual(list(meeting.attendees.all()), [self.member])

    def test_inactive_members_not_offered_as_attendees(self):
        inactive = Member.objects.create(first_name='Carla', last_name='Diaz', status=Member.STATUS_INACTIVE)
        self.client.login(username='admin', password='testpass123')
        response = self.client.get(reverse('meetings:meeting-create'))
        self.assertNotIn(inactive, response.context['form'].fields['attendees'].queryset)

    def test_edit_keeps_inactive_attendee(self):
        inactive = Member.objects.create(first_name='Carla', last_name='Diaz', status=Member.STATUS_INACTIVE)
        self.upcoming.attendees.add(inactive)
        self.client.login(username='admin', password='testpass123')
        url = reverse('meetings:meeting-edit', args=[self.upcoming.pk])
        form = self.client.get(url).context['form']
        self.assertIn(inactive, form.fields['attendees'].queryset)

        response = self.client.post(url, {
            'name': 'Prayer meeting',
            'date': self.upcoming.date.isoformat(),
            'time': '19:00',
            'location': 'Upper room',
            'description': '',
            'image_url': '',
            'attendees': [self.member.pk, self.other_member.pk, inactive.pk],
            'minute': '',
        })
        self.assertRedirects(response, self.upcoming.get_absolute_url())
        self.upcoming.refresh_from_db()
        self.assertEqual(self.upcoming.location, 'Upper room')
        self.assertIn(inactive, self.upcoming.attendees.all())

    def test_cancel_requires_post(self):
        self.client.login(username='admin', password='testpass123')
        response = self.client.get(reverse('meetings:meeting-cancel', args=[self.upcoming.pk]))
        self.assertEqual(response.status_code, 405)

    def test_cancel(self):
        self.client.login(username='admin', password='testpass123')
        response = self.client.post(reverse('meetings:meeting-cancel', args=[self.upcoming.pk]))
        self.assertRedirects(response, self.upcoming.get_absolute_url(), fetch_redirect_response=False)
        self.upcoming.refresh_from_db()
        self.assertTrue(self.upcoming.is_cancelled)

    def test_viewer_cannot_cancel(self):
        self.client.login(username='viewer', password='testpass123')
        response = self.client.post(reverse('meetings:meeting-cancel', args=[self.upcoming.pk]))
        self.assertEqual(response.status_code, 403)

    def test_delete(self):
        self.client.login(username='admin', password='testpass123')
        response = self.client.post(reverse('meetings:meeting-delete', args=[self.past.pk]))
        self.assertRedirects(response, reverse('meetings:meeting-list'))
        self.assertFalse(Meeting.objects.filter(pk=self.past.pk).exists())

    def test_attendance_sheet(self):
        self.client.login(username='secretary', password='testpass123')
        url = reverse('meetings:meeting-attendance', args=[self.upcoming.pk])
        response = self.client.get(url)
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Ana Lopez')

        response = self.client.post(url, {
            f'attended_{self.member.pk}': 'on',
            f'notes_{self.other_member.pk}': 'Sick',
        })
        self.assertRedirects(response, self.upcoming.get_absolute_url(), fetch_redirect_response=False)
        self.assertTrue(AttendanceRecord.objects.get(meeting=self.upcoming, member=self.member).attended)
        absent = AttendanceRecord.objects.get(meeting=self.upcoming, member=self.other_member)
        self.assertFalse(absent.attended)
        self.assertEqual(absent.notes, 'Sick')
        messages = [str(m) for m in get_messages(response.wsgi_request)]
        self.assertIn('Attendance saved: 1 of 2 attended.', messages)

    def test_attendance_sheet_prefills_existing_records(self):
        AttendanceRecord.objects.create(meeting=self.upcoming, member=self.member, attended=True, notes='Early')
        self.client.login(username='secretary', password='testpass123')
        response = self.client.get(reverse('meetings:meeting-attendance', args=[self.upcoming.pk]))
        form = response.context['form']
        self.assertTrue(form.fields[f'attended_{self.member.pk}'].initial)
        self.assertEqual(form.fields[f'notes_{self.member.pk}'].initial, 'Early')

    def test_export_single_meeting(self):
        self.client.login(username='viewer', password='testpass123')
        response = self.client.get(reverse('meetings:meeting-export-ics', args=[self.upcoming.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'text/calendar; charset=utf-8')
        self.assertIn(f'meeting-{self.upcoming.pk}.ics', response['Content-Disposition'])
        self.assertEqual(response.content.decode().count('BEGIN:VEVENT'), 1)

    def test_calendar_feed_includes_recent_and_upcoming(self):
        Meeting.objects.create(
            name='Ancient meeting', date=timezone.localdate() - datetime.timedelta(days=90),
            time=datetime.time(10, 0), location='Chapel',
        )
        self.client.login(username='viewer', password='testpass123')
        response = self.client.get(reverse('meetings:calendar-feed'))
        content = response.content.decode()
        self.assertEqual(content.count('BEGIN:VEVENT'), 2)
        self.assertNotIn('Ancient meeting', content)


class NavigationContextTests(MeetingViewTestCase):
    def test_next_meeting_within_two_weeks(self):
        meeting = Meeting.objects.create(
            name='Prayer meeting', date=timezone.localdate() + datetime.timedelta(days=2),
            time=datetime.time(19, 0), location='Chapel',
        )
        Meeting.objects.create(
            name='Later meeting', date=timezone.localdate() + datetime.timedelta(days=30),
            time=datetime.time(19, 0), location='Chapel',
        )
        self.client.login(username='viewer', password='testpass123')
        response = self.client.get(reverse('meetings:meeting-list'))
        self.assertEqual(response.context['next_meeting'], meeting)
        self.assertTrue(response.context['nav_can']['meetings_view'])
        self.assertFalse(response.context['nav_can']['meetings_create'])

    def test_cancelled_meeting_is_not_next(self):
        Meeting.objects.create(
            name='Prayer meeting', date=timezone.localdate() + datetime.timedelta(days=2),
            time=datetime.time(19, 0), location='Chapel', status=Meeting.STATUS_CANCELLED,
        )
        self.client.login(username='viewer', password='testpass123')
        response = self.client.get(reverse('meetings:meeting-list'))
        self.assertIsNone(response.context['next_meeting'])
