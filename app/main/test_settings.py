"""
Test settings for Django project.
Uses in-memory SQLite for testing instead of PostgreSQL.
"""

from .settings import *

# Override database settings for testing
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

# Disable migrations for faster tests
class DisableMigrations:
    def __contains__(self, item):
        return True

    def __getitem__(self, item):
        return None

MIGRATION_MODULES = DisableMigrations()

# Disable password hashing for faster tests
PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

# Use in-memory email backend for testing
EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

ACCOUNT_ALLOW_REGISTRATION = False

# Keep test output quiet; the application loggers still run at INFO so
# assertLogs works.
LOGGING['handlers']['console']['level'] = 'CRITICAL'
