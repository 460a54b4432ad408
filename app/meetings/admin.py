from django.contrib import admin
from .models import AttendanceRecord, Meeting, MeetingSeries


class MeetingInline(admin.TabularInline):
    model = Meeting
    extra = 0
    fields = ['date', 'time', 'location', 'status']
    show_change_link = True


@admin.register(MeetingSeries)
class MeetingSeriesAdmin(admin.ModelAdmin):
    list_display = ['name', 'frequency', 'schedule', 'default_time', 'default_location', 'created_at']
    list_filter = ['frequency', 'monthly_rule_type']
    search_fields = ['name', 'description', 'default_location']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [MeetingInline]
    fieldsets = (
        ('Series', {'fields': ('name', 'description', 'default_time', 'default_location', 'default_image_url', 'target_attendee_groups')}),
        ('Recurrence', {'fields': ('frequency', 'one_time_date', 'weekly_days', 'monthly_rule_type', 'monthly_day_of_month', 'monthly_week_ordinal', 'monthly_day_of_week')}),
        ('Dates', {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )

    @admin.display(description='Schedule')
    def schedule(self, obj):
        return obj.get_schedule_display()


class AttendanceRecordInline(admin.TabularInline):
    model = AttendanceRecord
    extra = 0
    autocomplete_fields = ['member']


@admin.register(Meeting)
class MeetingAdmin(admin.ModelAdmin):
    list_display = ['name', 'date', 'time', 'location', 'series', 'status']
    list_filter = ['status', 'series', 'date']
    search_fields = ['name', 'location', 'description']
    readonly_fields = ['created_at', 'updated_at']
    date_hierarchy = 'date'
    filter_horizontal = ['attendees']
    inlines = [AttendanceRecordInline]


@admin.register(AttendanceRecord)
class AttendanceRecordAdmin(admin.ModelAdmin):
    list_display = ['meeting', 'member', 'attended', 'updated_at']
    list_filter = ['attended', 'meeting__series']
    search_fields = ['member__first_name', 'member__last_name', 'meeting__name']
    readonly_fields = ['created_at', 'updated_at']
