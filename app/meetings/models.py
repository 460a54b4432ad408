import datetime

from django.core.exceptions import ValidationError
from django.db import models
from django.urls import reverse
from django.utils import timezone
from auditlog.registry import auditlog
from auditlog.models import AuditlogHistoryField

from members.models import Member


class MeetingSeries(models.Model):
    """Recurrence template from which dated meetings are generated"""
    FREQUENCY_ONE_TIME = 'OneTime'
    FREQUENCY_WEEKLY = 'Weekly'
    FREQUENCY_MONTHLY = 'Monthly'
    FREQUENCY_CHOICES = [
        (FREQUENCY_ONE_TIME, 'One time'),
        (FREQUENCY_WEEKLY, 'Weekly'),
        (FREQUENCY_MONTHLY, 'Monthly'),
    ]

    RULE_DAY_OF_MONTH = 'DayOfMonth'
    RULE_DAY_OF_WEEK_OF_MONTH = 'DayOfWeekOfMonth'
    MONTHLY_RULE_CHOICES = [
        (RULE_DAY_OF_MONTH, 'Day of the month'),
        (RULE_DAY_OF_WEEK_OF_MONTH, 'Weekday of the month'),
    ]

    DAY_CHOICES = [
        ('Sunday', 'Sunday'),
        ('Monday', 'Monday'),
        ('Tuesday', 'Tuesday'),
        ('Wednesday', 'Wednesday'),
        ('Thursday', 'Thursday'),
        ('Friday', 'Friday'),
        ('Saturday', 'Saturday'),
    ]

    WEEK_ORDINAL_CHOICES = [
        ('First', 'First'),
        ('Second', 'Second'),
        ('Third', 'Third'),
        ('Fourth', 'Fourth'),
        ('Last', 'Last'),
    ]

    TARGET_ALL_MEMBERS = 'allMembers'
    TARGET_WORKERS = 'workers'
    TARGET_LEADERS = 'leaders'
    TARGET_GROUP_CHOICES = [
        (TARGET_ALL_MEMBERS, 'All members'),
        (TARGET_WORKERS, 'Workers'),
        (TARGET_LEADERS, 'Leaders'),
    ]

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    default_time = models.TimeField(help_text="Start time (HH:MM)")
    default_location = models.CharField(max_length=200)
    default_image_url = models.URLField(blank=True)
    target_attendee_groups = models.JSONField(default=list, help_text="Audience: allMembers, workers and/or leaders")
    frequency = models.CharField(max_length=10, choices=FREQUENCY_CHOICES, default=FREQUENCY_WEEKLY)
    one_time_date = models.DateField(null=True, blank=True)
    weekly_days = models.JSONField(default=list, blank=True)
    monthly_rule_type = models.CharField(max_length=20, choices=MONTHLY_RULE_CHOICES, blank=True)
    monthly_day_of_month = models.PositiveSmallIntegerField(null=True, blank=True)
    monthly_week_ordinal = models.CharField(max_length=10, choices=WEEK_ORDINAL_CHOICES, blank=True)
    monthly_day_of_week = models.CharField(max_length=10, choices=DAY_CHOICES, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = AuditlogHistoryField()

    class Meta:
        ordering = ['name']
        verbose_name = "Meeting Series"
        verbose_name_plural = "Meeting Series"

    def __str__(self):
        return self.name

    def get_absolute_url(self):
        return reverse('meetings:series-detail', args=[str(self.pk)])

    def clean(self):
        from .recurrence import issues_as_error_dict, series_issues

        issues = series_issues(self)
        if issues:
            raise ValidationError(issues_as_error_dict(issues))

    def get_schedule_display(self):
        """Human readable recurrence, e.g. 'Weekly on Monday, Thursday'"""
        if self.frequency == self.FREQUENCY_ONE_TIME:
            return f"Once on {self.one_time_date:%Y-%m-%d}" if self.one_time_date else "Once"
        if self.frequency == self.FREQUENCY_WEEKLY:
            return f"Weekly on {', '.join(self.weekly_days or [])}"
        if self.monthly_rule_type == self.RULE_DAY_OF_MONTH:
            return f"Monthly on day {self.monthly_day_of_month}"
        return f"Monthly on the {self.monthly_week_ordinal.lower()} {self.monthly_day_of_week}"

    def get_target_groups_display(self):
        labels = dict(self.TARGET_GROUP_CHOICES)
        return ', '.join(labels.get(group, group) for group in self.target_attendee_groups or [])


class Meeting(models.Model):
    """One concrete, dated occurrence"""
    STATUS_SCHEDULED = 'scheduled'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    series = models.ForeignKey(
        MeetingSeries,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='meetings',
        help_text="Series this meeting was generated from; kept when the series is deleted",
    )
    name = models.CharField(max_length=200)
    date = models.DateField()
    time = models.TimeField()
    location = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    image_url = models.URLField(blank=True)
    attendees = models.ManyToManyField(Member, blank=True, related_name='expected_meetings')
    minute = models.TextField(blank=True, help_text="Meeting minutes (rich text)")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SCHEDULED)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = AuditlogHistoryField()

    class Meta:
        ordering = ['date', 'time']
        verbose_name = "Meeting"
        verbose_name_plural = "Meetings"
        indexes = [models.Index(fields=['series', 'date'], name='meeting_series_date_idx')]

    def __str__(self):
        return f"{self.name} ({self.date:%Y-%m-%d})"

    def get_absolute_url(self):
        return reverse('meetings:meeting-detail', args=[str(self.pk)])

    @property
    def starts_at(self):
        """Aware datetime of the start, in the current time zone"""
        return timezone.make_aware(datetime.datetime.combine(self.date, self.time))

    @property
    def is_cancelled(self):
        return self.status == self.STATUS_CANCELLED

    @property
    def is_upcoming(self):
        return self.date >= timezone.localdate()


class AttendanceRecord(models.Model):
    """Whether one member attended one meeting"""
    meeting = models.ForeignKey(Meeting, on_delete=models.CASCADE, related_name='attendance_records')
    member = models.ForeignKey(Member, on_delete=models.CASCADE, related_name='attendance_records')
    attended = models.BooleanField(default=False)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['meeting__date', 'member__first_name']
        verbose_name = "Attendance Record"
        verbose_name_plural = "Attendance Records"
        constraints = [
            models.UniqueConstraint(fields=['meeting', 'member'], name='unique_attendance_per_meeting_member'),
        ]

    def __str__(self):
        state = 'attended' if self.attended else 'absent'
        return f"{self.member} - {self.meeting} ({state})"


# Register models for audit logging
auditlog.register(MeetingSeries)
auditlog.register(Meeting, m2m_fields={'attendees'})
auditlog.register(AttendanceRecord)
