import logging
import os
import sys
from unittest import mock

from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.test import SimpleTestCase, TestCase
from django.urls import reverse

from .logging_filters import SuppressExpectedRequestErrors
from .settings import env_bool


def _record(msg, exc=None):
    exc_info = None
    if exc is not None:
        try:
            raise exc
        except type(exc):
            exc_info = sys.exc_info()
    return logging.LogRecord('django.request', logging.WARNING, __file__, 1, msg, (), exc_info)


class SuppressExpectedRequestErrorsTests(SimpleTestCase):
    def setUp(self):
        self.log_filter = SuppressExpectedRequestErrors()

    def test_permission_denied_exception_is_dropped(self):
        self.assertFalse(self.log_filter.filter(_record("Forbidden: /members/", PermissionDenied())))

    def test_forbidden_message_is_dropped(self):
        self.assertFalse(self.log_filter.filter(_record("Forbidden (Permission denied): /meetings/series/create/")))

    def test_form_validation_message_is_dropped(self):
        self.assertFalse(self.log_filter.filter(_record("Form validation failed for member form: {}")))

    def test_other_records_pass(self):
        self.assertTrue(self.log_filter.filter(_record("Internal Server Error: /members/", ValueError("boom"))))
        self.assertTrue(self.log_filter.filter(_record("Roster update failed (save member); rolled back")))

    def test_filter_is_installed_on_console_handler(self):
        self.assertIn('suppress_expected', settings.LOGGING['handlers']['console']['filters'])


class EnvBoolTests(SimpleTestCase):
    def test_truthy_values(self):
        for value in ('1', 'true', 'True', 'yes', 'on'):
            with self.subTest(value=value), mock.patch.dict(os.environ, {'GRACEHUB_TEST_FLAG': value}):
                self.assertTrue(env_bool('GRACEHUB_TEST_FLAG'))

    def test_falsy_value(self):
        with mock.patch.dict(os.environ, {'GRACEHUB_TEST_FLAG': 'no'}):
            self.assertFalse(env_bool('GRACEHUB_TEST_FLAG', True))

    def test_default_when_unset(self):
        self.assertFalse(env_bool('GRACEHUB_UNSET_FLAG'))
        self.assertTrue(env_bool('GRACEHUB_UNSET_FLAG', True))


class ApplicationSettingsTests(SimpleTestCase):
    def test_generation_window_default(self):
        self.assertEqual(settings.MEETING_GENERATION_DAYS, 60)

    def test_custom_user_model(self):
        self.assertEqual(settings.AUTH_USER_MODEL, 'user.CustomUser')

    def test_audit_middleware_enabled(self):
        self.assertIn('auditlog.middleware.AuditlogMiddleware', settings.MIDDLEWARE)


class HomeUrlTests(TestCase):
    def test_home_resolves(self):
        self.assertEqual(reverse('home'), '/')

    def test_admin_login_page(self):
        response = self.client.get('/admin/login/')
        self.assertEqual(response.status_code, 200)
