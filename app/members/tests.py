from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from meetings.models import AttendanceRecord, Meeting
from user.models import Role
from .forms import BulkMemberForm, GDIForm, MemberForm, MemberListQueryForm, MinistryAreaForm
from .models import GDI, Member, MinistryArea
from .query import GUIDE_NOT_FOUND, UNASSIGNED
from .services import roster_inconsistencies, set_area_roster, set_gdi_roster

User = get_user_model()


def member_post_data(**overrides):
    data = {
        'first_name': 'Carla',
        'last_name': 'Diaz',
        'email': 'carla@example.com',
        'phone': '5551234567',
        'birth_date': '',
        'church_join_date': '2024-02-11',
        'baptism_date': 'June 2024',
        'status': Member.STATUS_NEW,
        'avatar_url': '',
        'roles': ['Worker'],
        'assigned_gdi': '',
        'assigned_areas': [],
    }
    data.update(overrides)
    return data


class MemberModelTests(TestCase):
    def test_full_name_and_initials(self):
        member = Member.objects.create(first_name='ana', last_name='lopez')
        self.assertEqual(member.full_name, 'ana lopez')
        self.assertEqual(member.initials, 'AL')
        self.assertEqual(str(member), 'ana lopez')

    def test_new_member_defaults(self):
        member = Member.objects.create(first_name='Ana', last_name='Lopez')
        self.assertEqual(member.status, Member.STATUS_NEW)
        self.assertEqual(member.roles, [])
        self.assertTrue(member.is_active)

    def test_roles(self):
        member = Member.objects.create(first_name='Ana', last_name='Lopez', roles=['Leader', 'GeneralAttendee'])
        self.assertTrue(member.has_role('Leader'))
        self.assertFalse(member.has_role('Worker'))
        self.assertEqual(member.get_roles_display(), 'Leader, General attendee')

    def test_deleting_gdi_unassigns_members(self):
        gdi = GDI.objects.create(name='Central')
        member = Member.objects.create(first_name='Ana', last_name='Lopez', assigned_gdi=gdi)
        gdi.delete()
        member.refresh_from_db()
        self.assertIsNone(member.assigned_gdi)


class MemberFormTests(TestCase):
    def test_valid(self):
        form = MemberForm(data=member_post_data())
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['roles'], ['Worker'])

    def test_email_and_phone_required(self):
        form = MemberForm(data=member_post_data(email='', phone=''))
        self.assertFalse(form.is_valid())
        self.assertIn('email', form.errors)
        self.assertIn('phone', form.errors)

    def test_short_names_rejected(self):
        form = MemberForm(data=member_post_data(first_name='C', last_name=' D '))
        self.assertFalse(form.is_valid())
        self.assertIn('first_name', form.errors)
        self.assertIn('last_name', form.errors)

    def test_short_phone_rejected(self):
        form = MemberForm(data=member_post_data(phone='123'))
        self.assertFalse(form.is_valid())
        self.assertEqual(form.errors['phone'], ['Phone number looks too short.'])

    def test_unknown_role_rejected(self):
        form = MemberForm(data=member_post_data(roles=['Pastor']))
        self.assertFalse(form.is_valid())
        self.assertIn('roles', form.errors)


class MemberListQueryFormTests(TestCase):
    def test_unknown_sort_key_is_invalid(self):
        self.assertFalse(MemberListQueryForm({'sort': 'email'}).is_valid())

    def test_page_size_must_be_an_option(self):
        self.assertFalse(MemberListQueryForm({'page_size': '7'}).is_valid())
        form = MemberListQueryForm({'page_size': '25'})
        self.assertTrue(form.is_valid())
        self.assertEqual(form.cleaned_data['page_size'], 25)


class BulkMemberFormTests(TestCase):
    def test_parses_rows_and_skips_blank_lines(self):
        form = BulkMemberForm(data={
            'rows': 'Ana,Lopez,ana@example.com,5551234567\n\n Ben , Ruiz ,ben@example.com, 5557654321 \n',
            'status': Member.STATUS_ACTIVE,
        })
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['rows'][1], {
            'first_name': 'Ben', 'last_name': 'Ruiz', 'email': 'ben@example.com', 'phone': '5557654321',
        })

    def test_reports_every_bad_line(self):
        form = BulkMemberForm(data={
            'rows': 'Ana,Lopez,not-an-email,5551234567\nBen,Ruiz\nCarla,Diaz,carla@example.com,555',
            'status': Member.STATUS_NEW,
        })
        self.assertFalse(form.is_valid())
        errors = form.errors['rows']
        self.assertEqual(len(errors), 2)
        self.assertIn("Line 1: invalid email address 'not-an-email'.", errors)
        self.assertIn('Line 2: expected 4 values, got 2.', errors)

    def test_blank_input(self):
        form = BulkMemberForm(data={'rows': '\n\n', 'status': Member.STATUS_NEW})
        self.assertFalse(form.is_valid())


class GroupFormTests(TestCase):
    def setUp(self):
        self.guide = Member.objects.create(first_name='Pedro', last_name='Gomez', status=Member.STATUS_ACTIVE)
        self.inactive = Member.objects.create(first_name='Old', last_name='Member', status=Member.STATUS_INACTIVE)

    def test_gdi_requires_guide(self):
        form = GDIForm(data={'name': 'Central', 'guide': ''})
        self.assertFalse(form.is_valid())
        self.assertIn('guide', form.errors)

    def test_inactive_members_not_offered(self):
        form = GDIForm()
        self.assertNotIn(self.inactive, form.fields['guide'].queryset)
        self.assertNotIn(self.inactive, form.fields['members'].queryset)

    def test_area_description_min_length(self):
        form = MinistryAreaForm(data={'name': 'Worship', 'description': 'Music', 'leader': self.guide.pk})
        self.assertFalse(form.is_valid())
        self.assertIn('description', form.errors)

    def test_area_valid(self):
        form = MinistryAreaForm(data={
            'name': 'Worship', 'description': 'Music and singing on Sundays', 'leader': self.guide.pk,
            'image_url': '', 'members': [self.guide.pk],
        })
        self.assertTrue(form.is_valid(), form.errors)


class MemberViewTestCase(TestCase):
    def setUp(self):
        self.superuser = User.objects.create_superuser(
            username='admin', email='admin@example.com', password='testpass123'
        )
        viewer_role = Role.objects.create(name='Viewer', permissions={'permissions': ['members.view']})
        self.viewer = User.objects.create_user(username='viewer', password='testpass123', role=viewer_role)
        self.no_role = User.objects.create_user(username='visitor', password='testpass123')

        self.guide = Member.objects.create(
            first_name='Pedro', last_name='Gomez', email='pedro@example.com', status=Member.STATUS_ACTIVE,
        )
        self.gdi = GDI.objects.create(name='Central', guide=self.guide)
        self.area = MinistryArea.objects.create(name='Worship', description='Music and singing', leader=self.guide)


class MemberAccessTests(MemberViewTestCase):
    def test_anonymous_redirected(self):
        response = self.client.get(reverse('members:member-list'))
        self.assertEqual(response.status_code, 302)
        self.assertIn('/accounts/login/', response.url)

    def test_without_role_forbidden(self):
        self.client.login(username='visitor', password='testpass123')
        self.assertEqual(self.client.get(reverse('members:member-list')).status_code, 403)

    def test_viewer_cannot_create_or_deactivate(self):
        self.client.login(username='viewer', password='testpass123')
        self.assertEqual(self.client.get(reverse('members:member-create')).status_code, 403)
        self.assertEqual(self.client.get(reverse('members:gdi-create')).status_code, 403)
        response = self.client.post(reverse('members:member-deactivate', args=[self.guide.pk]))
        self.assertEqual(response.status_code, 403)


class MemberListViewTests(MemberViewTestCase):
    def setUp(self):
        super().setUp()
        for i in range(1, 13):
            Member.objects.create(first_name=f'Person{i:02d}', last_name='Test', email=f'p{i}@example.com')
        self.client.login(username='viewer', password='testpass123')

    def test_default_page(self):
        response = self.client.get(reverse('members:member-list'))
        self.assertEqual(response.status_code, 200)
        member_page = response.context['member_page']
        self.assertEqual(member_page.total_count, 13)
        self.assertEqual(member_page.page_size, 10)
        self.assertEqual(len(response.context['rows']), 10)

    def test_second_page(self):
        response = self.client.get(reverse('members:member-list'), {'page': 2})
        self.assertEqual(len(response.context['rows']), 3)

    def test_search(self):
        response = self.client.get(reverse('members:member-list'), {'search': 'pedro'})
        rows = response.context['rows']
        self.assertEqual([member for member, _ in rows], [self.guide])
        self.assertContains(response, 'Pedro Gomez')

    def test_sort_descending(self):
        response = self.client.get(reverse('members:member-list'), {'sort': 'full_name', 'order': 'desc', 'page_size': 25})
        names = [member.first_name for member, _ in response.context['rows']]
        self.assertEqual(names[0], 'Person12')
        self.assertEqual(names[-1], 'Pedro')

    def test_invalid_query_falls_back_to_defaults(self):
        response = self.client.get(reverse('members:member-list'), {'sort': 'email', 'page_size': '7'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['member_page'].sort_key, 'full_name')

    def test_invalid_field_does_not_discard_valid_ones(self):
        response = self.client.get(reverse('members:member-list'), {'search': 'pedro', 'page_size': '7'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['member_page'].total_count, 1)
        self.assertEqual([member for member, _ in response.context['rows']], [self.guide])
        self.assertIn('page_size', response.context['query_form'].errors)
        self.assertContains(response, 'Some list options were ignored')

    def test_guide_names(self):
        Member.objects.filter(first_name='Person01').update(assigned_gdi=self.gdi)
        response = self.client.get(reverse('members:member-list'), {'search': 'Person0', 'page_size': 25})
        guides = dict((member.first_name, guide) for member, guide in response.context['rows'])
        self.assertEqual(guides['Person01'], 'Pedro Gomez')
        self.assertEqual(guides['Person02'], UNASSIGNED)

    def test_guide_not_found(self):
        orphan = GDI.objects.create(name='North')
        Member.objects.filter(first_name='Person01').update(assigned_gdi=orphan)
        response = self.client.get(reverse('members:member-list'), {'search': 'Person01'})
        self.assertEqual(response.context['rows'][0][1], GUIDE_NOT_FOUND)

    def test_sort_header_flips_current_column(self):
        response = self.client.get(reverse('members:member-list'), {'sort': 'full_name', 'order': 'asc'})
        name_column = response.context['sort_columns'][0]
        self.assertTrue(name_column['current'])
        self.assertIn('order=desc', name_column['query'])


class MemberEditViewTests(MemberViewTestCase):
    def setUp(self):
        super().setUp()
        self.client.login(username='admin', password='testpass123')

    def test_create_member_joins_rosters(self):
        response = self.client.post(reverse('members:member-create'), member_post_data(
            assigned_gdi=self.gdi.pk, assigned_areas=[self.area.pk],
        ))
        member = Member.objects.get(first_name='Carla')
        self.assertRedirects(response, member.get_absolute_url())
        self.assertIn(member, self.gdi.members.all())
        self.assertIn(member, self.area.members.all())
        self.assertEqual(member.roles, ['Worker'])
        self.assertEqual(roster_inconsistencies(), [])

    def test_update_member_moves_gdi(self):
        north = GDI.objects.create(name='North', guide=self.guide)
        self.client.post(reverse('members:member-create'), member_post_data(assigned_gdi=self.gdi.pk))
        member = Member.objects.get(first_name='Carla')
        response = self.client.post(
            reverse('members:member-edit', args=[member.pk]), member_post_data(assigned_gdi=north.pk),
        )
        self.assertRedirects(response, member.get_absolute_url())
        self.assertFalse(self.gdi.members.filter(pk=member.pk).exists())
        self.assertTrue(north.members.filter(pk=member.pk).exists())

    def test_invalid_member_form(self):
        response = self.client.post(reverse('members:member-create'), member_post_data(phone='1'))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Member.objects.filter(first_name='Carla').exists())

    def test_deactivate(self):
        response = self.client.post(reverse('members:member-deactivate', args=[self.guide.pk]))
        self.assertRedirects(response, self.guide.get_absolute_url())
        self.guide.refresh_from_db()
        self.assertEqual(self.guide.status, Member.STATUS_INACTIVE)
        self.assertTrue(Member.objects.filter(pk=self.guide.pk).exists())

    def test_bulk_add(self):
        response = self.client.post(reverse('members:member-bulk-create'), {
            'rows': 'Ana,Lopez,ana@example.com,5551234567\nBen,Ruiz,ben@example.com,5557654321',
            'status': Member.STATUS_NEW,
        })
        self.assertRedirects(response, reverse('members:member-list'))
        self.assertEqual(Member.objects.filter(status=Member.STATUS_NEW).count(), 2)

    def test_member_detail_shows_guide_and_attendance(self):
        member = Member.objects.create(first_name='Ana', last_name='Lopez', assigned_gdi=self.gdi)
        meeting = Meeting.objects.create(name='Prayer', date='2025-03-03', time='19:00', location='Chapel')
        AttendanceRecord.objects.create(meeting=meeting, member=member, attended=True)
        response = self.client.get(member.get_absolute_url())
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['guide_name'], 'Pedro Gomez')
        self.assertEqual(response.context['attendance_summary'], {'recorded': 1, 'attended': 1, 'rate': 100})


class GroupViewTests(MemberViewTestCase):
    def setUp(self):
        super().setUp()
        self.ana = Member.objects.create(first_name='Ana', last_name='Lopez')
        self.ben = Member.objects.create(first_name='Ben', last_name='Ruiz')
        self.client.login(username='admin', password='testpass123')

    def test_create_gdi_with_roster(self):
        response = self.client.post(reverse('members:gdi-create'), {
            'name': 'East', 'guide': self.guide.pk, 'members': [self.ana.pk, self.ben.pk],
        })
        gdi = GDI.objects.get(name='East')
        self.assertRedirects(response, gdi.get_absolute_url())
        self.assertEqual(set(gdi.members.all()), {self.ana, self.ben})
        self.assertEqual(Member.objects.get(pk=self.ana.pk).assigned_gdi, gdi)

    def test_update_gdi_roster_moves_members(self):
        self.client.post(reverse('members:gdi-edit', args=[self.gdi.pk]), {
            'name': 'Central', 'guide': self.guide.pk, 'members': [self.ana.pk],
        })
        east_response = self.client.post(reverse('members:gdi-create'), {
            'name': 'East', 'guide': self.guide.pk, 'members': [self.ana.pk],
        })
        self.assertEqual(east_response.status_code, 302)
        self.assertFalse(self.gdi.members.exists())
        self.assertEqual(Member.objects.get(pk=self.ana.pk).assigned_gdi.name, 'East')
        self.assertEqual(roster_inconsistencies(), [])

    def test_update_area_roster(self):
        response = self.client.post(reverse('members:area-edit', args=[self.area.pk]), {
            'name': 'Worship', 'description': 'Music and singing', 'leader': self.guide.pk,
            'image_url': '', 'members': [self.ben.pk],
        })
        self.assertRedirects(response, self.area.get_absolute_url())
        self.assertEqual(list(self.area.members.all()), [self.ben])
        self.assertIn(self.area, self.ben.assigned_areas.all())

    def test_gdi_edit_keeps_inactive_roster_member_and_guide(self):
        set_gdi_roster(self.gdi, [self.ana, self.ben])
        Member.objects.filter(pk__in=[self.guide.pk, self.ana.pk]).update(status=Member.STATUS_INACTIVE)
        url = reverse('members:gdi-edit', args=[self.gdi.pk])
        form = self.client.get(url).context['form']
        self.assertIn(self.ana, form.fields['members'].queryset)
        self.assertIn(self.guide, form.fields['guide'].queryset)
        self.assertEqual(set(form.fields['members'].initial), {self.ana.pk, self.ben.pk})

        response = self.client.post(url, {
            'name': 'Central West', 'guide': self.guide.pk, 'members': form.fields['members'].initial,
        })
        self.assertRedirects(response, self.gdi.get_absolute_url())
        self.assertEqual(set(self.gdi.members.all()), {self.ana, self.ben})
        self.assertEqual(Member.objects.get(pk=self.ana.pk).assigned_gdi, self.gdi)
        self.assertEqual(GDI.objects.get(pk=self.gdi.pk).name, 'Central West')

    def test_area_edit_keeps_inactive_roster_member_and_leader(self):
        set_area_roster(self.area, [self.ana])
        Member.objects.filter(pk__in=[self.guide.pk, self.ana.pk]).update(status=Member.STATUS_INACTIVE)
        url = reverse('members:area-edit', args=[self.area.pk])
        form = self.client.get(url).context['form']
        self.assertIn(self.ana, form.fields['members'].queryset)
        self.assertIn(self.guide, form.fields['leader'].queryset)

        response = self.client.post(url, {
            'name': 'Worship', 'description': 'Music and singing on Sundays', 'leader': self.guide.pk,
            'image_url': '', 'members': form.fields['members'].initial,
        })
        self.assertRedirects(response, self.area.get_absolute_url())
        self.assertEqual(list(self.area.members.all()), [self.ana])
        self.assertIn(self.area, Member.objects.get(pk=self.ana.pk).assigned_areas.all())

    def test_inactive_member_cannot_be_newly_added(self):
        carla = Member.objects.create(first_name='Carla', last_name='Diaz', status=Member.STATUS_INACTIVE)
        response = self.client.post(reverse('members:gdi-edit', args=[self.gdi.pk]), {
            'name': 'Central', 'guide': self.guide.pk, 'members': [carla.pk],
        })
        self.assertEqual(response.status_code, 200)
        self.assertIn('members', response.context['form'].errors)
        self.assertFalse(self.gdi.members.exists())

    def test_lists_and_details(self):
        for url in (
            reverse('members:gdi-list'), self.gdi.get_absolute_url(),
            reverse('members:area-list'), self.area.get_absolute_url(),
        ):
            with self.subTest(url=url):
                self.assertEqual(self.client.get(url).status_code, 200)
