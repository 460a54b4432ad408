from django.db import models
from django.urls import reverse
from auditlog.registry import auditlog
from auditlog.models import AuditlogHistoryField


class Member(models.Model):
    """A person in the congregation"""
    STATUS_ACTIVE = 'Active'
    STATUS_INACTIVE = 'Inactive'
    STATUS_NEW = 'New'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
        (STATUS_NEW, 'New'),
    ]

    ROLE_LEADER = 'Leader'
    ROLE_WORKER = 'Worker'
    ROLE_GENERAL_ATTENDEE = 'GeneralAttendee'
    ROLE_CHOICES = [
        (ROLE_LEADER, 'Leader'),
        (ROLE_WORKER, 'Worker'),
        (ROLE_GENERAL_ATTENDEE, 'General attendee'),
    ]

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    birth_date = models.DateField(null=True, blank=True)
    church_join_date = models.DateField(null=True, blank=True)
    baptism_date = models.CharField(max_length=50, blank=True, help_text="Free text, e.g. 'June 2023' or '2023-06-15'")
    attends_life_school = models.BooleanField(default=False)
    attends_bible_institute = models.BooleanField(default=False)
    from_another_church = models.BooleanField(default=False)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_NEW)
    avatar_url = models.URLField(blank=True)
    roles = models.JSONField(default=list, blank=True, help_text="Subset of Leader, Worker, GeneralAttendee")
    assigned_gdi = models.ForeignKey(
        'GDI',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_members',
        help_text="Small group the member attends",
    )
    assigned_areas = models.ManyToManyField(
        'MinistryArea',
        blank=True,
        related_name='assigned_members',
        help_text="Ministry areas the member serves in",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = AuditlogHistoryField()

    class Meta:
        ordering = ['first_name', 'last_name']
        verbose_name = "Member"
        verbose_name_plural = "Members"

    def __str__(self):
        return self.full_name

    def get_absolute_url(self):
        return reverse('members:member-detail', args=[str(self.pk)])

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def initials(self):
        return f"{self.first_name[:1]}{self.last_name[:1]}".upper()

    @property
    def is_active(self):
        return self.status != self.STATUS_INACTIVE

    def has_role(self, role_name):
        return role_name in (self.roles or [])

    def get_roles_display(self):
        labels = dict(self.ROLE_CHOICES)
        return ', '.join(labels.get(role, role) for role in self.roles or [])


class GDI(models.Model):
    """Small integration group led by a guide"""
    name = models.CharField(max_length=200, unique=True)
    guide = models.ForeignKey(
        Member,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='guided_gdis',
    )
    members = models.ManyToManyField(Member, blank=True, related_name='gdi_memberships')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = AuditlogHistoryField()

    class Meta:
        ordering = ['name']
        verbose_name = "GDI"
        verbose_name_plural = "GDIs"

    def __str__(self):
        return self.name

    def get_absolute_url(self):
        return reverse('members:gdi-detail', args=[str(self.pk)])

    @property
    def member_count(self):
        return self.members.count()


class MinistryArea(models.Model):
    """Ministry team with a leader and a roster"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField()
    leader = models.ForeignKey(
        Member,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='led_areas',
    )
    members = models.ManyToManyField(Member, blank=True, related_name='area_memberships')
    image_url = models.URLField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = AuditlogHistoryField()

    class Meta:
        ordering = ['name']
        verbose_name = "Ministry Area"
        verbose_name_plural = "Ministry Areas"

    def __str__(self):
        return self.name

    def get_absolute_url(self):
        return reverse('members:area-detail', args=[str(self.pk)])

    @property
    def member_count(self):
        return self.members.count()


# Register models for audit logging
auditlog.register(Member, m2m_fields={'assigned_areas'})
auditlog.register(GDI, m2m_fields={'members'})
auditlog.register(MinistryArea, m2m_fields={'members'})
