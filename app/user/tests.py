from django.contrib.auth import get_user_model
from django.test import RequestFactory, TestCase, override_settings

from .adapters import AccountAdapter
from .forms import CustomUserCreationForm, CustomUserEditForm, RoleForm
from .models import Role

User = get_user_model()


class CustomUserTests(TestCase):
    def test_create_user(self):
        user = User.objects.create_user(
            username="maria", email="maria@example.com", password="testpass123"
        )
        self.assertEqual(user.username, "maria")
        self.assertEqual(user.email, "maria@example.com")
        self.assertTrue(user.is_active)
        self.assertFalse(user.is_staff)
        self.assertFalse(user.is_superuser)
        self.assertIsNone(user.role)

    def test_create_superuser(self):
        admin_user = User.objects.create_superuser(
            username="pastor", email="pastor@example.com", password="testpass123"
        )
        self.assertTrue(admin_user.is_staff)
        self.assertTrue(admin_user.is_superuser)

    def test_str_includes_email(self):
        user = User.objects.create_user(username="maria", email="maria@example.com", password="x")
        self.assertEqual(str(user), "maria (maria@example.com)")


class RolePermissionTests(TestCase):
    """Permissions granted through the user's role"""

    def setUp(self):
        self.role = Role.objects.create(
            name='Secretary',
            permissions={'permissions': ['members.view', 'attendance.record']},
        )
        self.user = User.objects.create_user(username='secretary', password='testpass123', role=self.role)

    def test_role_get_permissions(self):
        self.assertEqual(self.role.get_permissions(), ['members.view', 'attendance.record'])

    def test_role_without_permissions_key(self):
        role = Role.objects.create(name='Empty')
        self.assertEqual(role.get_permissions(), [])
        self.assertFalse(role.has_permission('members.view'))

    def test_user_has_role_permission(self):
        self.assertTrue(self.user.has_role_permission('members.view'))
        self.assertFalse(self.user.has_role_permission('members.edit'))

    def test_inactive_role_grants_nothing(self):
        self.role.is_active = False
        self.role.save()
        self.assertFalse(self.user.has_role_permission('members.view'))

    def test_user_without_role(self):
        user = User.objects.create_user(username='visitor', password='testpass123')
        self.assertFalse(user.has_role_permission('members.view'))
        self.assertFalse(user.can('members.view'))

    def test_superuser_can_everything(self):
        admin_user = User.objects.create_superuser(username='admin', email='admin@example.com', password='x')
        self.assertTrue(admin_user.can('meetings.delete'))
        self.assertFalse(admin_user.has_role_permission('meetings.delete'))

    def test_deleting_role_keeps_user(self):
        self.role.delete()
        self.user.refresh_from_db()
        self.assertIsNone(self.user.role)


class CustomUserFormTests(TestCase):
    def setUp(self):
        self.role = Role.objects.create(name='Usher', is_active=True)

    def test_creation_form_valid_data(self):
        """Test CustomUserCreationForm with valid data"""
        form = CustomUserCreationForm(data={
            'username': 'usher1',
            'email': 'usher1@example.com',
            'first_name': 'Juan',
            'last_name': 'Perez',
            'password1': 'a-Long-pass-123',
            'password2': 'a-Long-pass-123',
            'role': self.role.pk,
        })
        self.assertTrue(form.is_valid(), form.errors)

    def test_creation_form_password_mismatch(self):
        form = CustomUserCreationForm(data={
            'username': 'usher1',
            'password1': 'a-Long-pass-123',
            'password2': 'something-else-456',
        })
        self.assertFalse(form.is_valid())
        self.assertIn('password2', form.errors)

    def test_inactive_roles_are_not_offered(self):
        inactive = Role.objects.create(name='Retired', is_active=False)
        form = CustomUserEditForm()
        self.assertIn(self.role, form.fields['role'].queryset)
        self.assertNotIn(inactive, form.fields['role'].queryset)


class RoleFormTests(TestCase):
    def test_list_is_stored_under_permissions_key(self):
        form = RoleForm(data={'name': 'Leader', 'permissions': '["members.view", "meetings.view"]', 'is_active': True})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['permissions'], {'permissions': ['members.view', 'meetings.view']})

    def test_dict_form_is_accepted(self):
        form = RoleForm(data={'name': 'Leader', 'permissions': '{"permissions": ["attendance.record"]}'})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['permissions'], {'permissions': ['attendance.record']})

    def test_unknown_permission_rejected(self):
        form = RoleForm(data={'name': 'Leader', 'permissions': '["members.view", "sermons.view"]'})
        self.assertFalse(form.is_valid())
        self.assertIn('Unknown permissions: sermons.view', form.errors['permissions'][0])

    def test_invalid_json_rejected(self):
        form = RoleForm(data={'name': 'Leader', 'permissions': '["members.view"'})
        self.assertFalse(form.is_valid())
        self.assertIn('permissions', form.errors)

    def test_non_list_rejected(self):
        form = RoleForm(data={'name': 'Leader', 'permissions': '"members.view"'})
        self.assertFalse(form.is_valid())
        self.assertIn('permissions', form.errors)


class AccountAdapterTests(TestCase):
    def setUp(self):
        self.request = RequestFactory().get('/accounts/signup/')

    @override_settings(ACCOUNT_ALLOW_REGISTRATION=False)
    def test_signup_closed_by_default(self):
        self.assertFalse(AccountAdapter(self.request).is_open_for_signup(self.request))

    @override_settings(ACCOUNT_ALLOW_REGISTRATION=True)
    def test_signup_open_when_enabled(self):
        self.assertTrue(AccountAdapter(self.request).is_open_for_signup(self.request))


class LoginTests(TestCase):
    def test_login_page_renders(self):
        response = self.client.get('/accounts/login/')
        self.assertEqual(response.status_code, 200)

    def test_login_with_username(self):
        User.objects.create_user(username='maria', email='maria@example.com', password='testpass123')
        response = self.client.post('/accounts/login/', {'login': 'maria', 'password': 'testpass123'})
        self.assertEqual(response.status_code, 302)
        self.assertIn('_auth_user_id', self.client.session)
