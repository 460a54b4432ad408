import datetime

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import resolve, reverse
from django.utils import timezone

from meetings.models import Meeting
from members.models import GDI, Member
from user.models import Role
from .views import HomePageView

User = get_user_model()


class HomepageTests(TestCase):
    """Test cases for the home page"""

    def setUp(self):
        Member.objects.create(first_name='Ana', last_name='Lopez', status=Member.STATUS_ACTIVE)
        Member.objects.create(first_name='Ben', last_name='Ruiz', status=Member.STATUS_ACTIVE)
        Member.objects.create(first_name='Carla', last_name='Diaz', status=Member.STATUS_INACTIVE)
        GDI.objects.create(name='Central')

        today = timezone.localdate()
        self.upcoming = [
            Meeting.objects.create(
                name=f'Meeting {i}', date=today + datetime.timedelta(days=i),
                time=datetime.time(19, 0), location='Chapel',
            )
            for i in range(7)
        ]
        Meeting.objects.create(
            name='Yesterday', date=today - datetime.timedelta(days=1), time=datetime.time(19, 0), location='Chapel',
        )

    def test_homepage_url_resolves_homepageview(self):
        view = resolve('/')
        self.assertEqual(view.func.__name__, HomePageView.as_view().__name__)

    def test_anonymous_sees_login_link(self):
        response = self.client.get(reverse('home'))
        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, 'pages/home.html')
        self.assertContains(response, 'Log in')
        self.assertNotIn('member_status_stats', response.context)

    def test_superuser_dashboard(self):
        User.objects.create_superuser(username='admin', email='admin@example.com', password='testpass123')
        self.client.login(username='admin', password='testpass123')
        response = self.client.get(reverse('home'))
        stats = {stat['status']: stat['count'] for stat in response.context['member_status_stats']}
        self.assertEqual(stats, {'Active': 2, 'Inactive': 1, 'New': 0})
        self.assertEqual(response.context['total_members'], 3)
        self.assertEqual(response.context['gdi_count'], 1)
        self.assertEqual(list(response.context['upcoming_meetings']), self.upcoming[:5])

    def test_meetings_only_role(self):
        role = Role.objects.create(name='Usher', permissions={'permissions': ['meetings.view']})
        User.objects.create_user(username='usher', password='testpass123', role=role)
        self.client.login(username='usher', password='testpass123')
        response = self.client.get(reverse('home'))
        self.assertNotIn('member_status_stats', response.context)
        self.assertIn('upcoming_meetings', response.context)
        self.assertEqual(response.context['next_meeting'], self.upcoming[0])

    def test_user_without_role(self):
        User.objects.create_user(username='visitor', password='testpass123')
        self.client.login(username='visitor', password='testpass123')
        response = self.client.get(reverse('home'))
        self.assertEqual(response.status_code, 200)
        self.assertNotIn('upcoming_meetings', response.context)
        self.assertIsNone(response.context['next_meeting'])
