from django.contrib.auth.models import AbstractUser
from django.db import models
from auditlog.registry import auditlog
from auditlog.models import AuditlogHistoryField


# Permission strings a role can grant
PERMISSIONS = [
    ('members.view', 'View members, GDIs and ministry areas'),
    ('members.create', 'Add members, GDIs and ministry areas'),
    ('members.edit', 'Edit and deactivate members, edit rosters'),
    ('meetings.view', 'View meetings and series'),
    ('meetings.create', 'Create series and meetings, generate meetings'),
    ('meetings.edit', 'Edit and cancel meetings and series'),
    ('meetings.delete', 'Delete meetings and series'),
    ('attendance.record', 'Record meeting attendance'),
]


class Role(models.Model):
    """Role model for role-based access control"""
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    permissions = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name

    def get_permissions(self):
        """Get list of permissions for this role"""
        return self.permissions.get('permissions', [])

    def has_permission(self, permission):
        """Check if role has specific permission"""
        return permission in self.get_permissions()


class CustomUser(AbstractUser):
    """Staff account that logs in to manage the congregation's records."""
    history = AuditlogHistoryField()

    role = models.ForeignKey(
        Role,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='users'
    )

    class Meta:
        ordering = ['username']

    def __str__(self):
        return f"{self.username} ({self.email})"

    def has_role_permission(self, permission):
        """Check if user has permission through their role"""
        if self.role and self.role.is_active:
            return self.role.has_permission(permission)
        return False

    def can(self, permission):
        """Superusers can do everything; everyone else needs the role permission."""
        return self.is_superuser or self.has_role_permission(permission)


# Register models for audit logging
auditlog.register(CustomUser)
auditlog.register(Role)
