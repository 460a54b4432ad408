import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('members', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='MeetingSeries',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('default_time', models.TimeField(help_text='Start time (HH:MM)')),
                ('default_location', models.CharField(max_length=200)),
                ('default_image_url', models.URLField(blank=True)),
                ('target_attendee_groups', models.JSONField(default=list, help_text='Audience: allMembers, workers and/or leaders')),
                ('frequency', models.CharField(choices=[('OneTime', 'One time'), ('Weekly', 'Weekly'), ('Monthly', 'Monthly')], default='Weekly', max_length=10)),
                ('one_time_date', models.DateField(blank=True, null=True)),
                ('weekly_days', models.JSONField(blank=True, default=list)),
                ('monthly_rule_type', models.CharField(blank=True, choices=[('DayOfMonth', 'Day of the month'), ('DayOfWeekOfMonth', 'Weekday of the month')], max_length=20)),
                ('monthly_day_of_month', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('monthly_week_ordinal', models.CharField(blank=True, choices=[('First', 'First'), ('Second', 'Second'), ('Third', 'Third'), ('Fourth', 'Fourth'), ('Last', 'Last')], max_length=10)),
                ('monthly_day_of_week', models.CharField(blank=True, choices=[('Sunday', 'Sunday'), ('Monday', 'Monday'), ('Tuesday', 'Tuesday'), ('Wednesday', 'Wednesday'), ('Thursday', 'Thursday'), ('Friday', 'Friday'), ('Saturday', 'Saturday')], max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Meeting Series',
                'verbose_name_plural': 'Meeting Series',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Meeting',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('date', models.DateField()),
                ('time', models.TimeField()),
                ('location', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('image_url', models.URLField(blank=True)),
                ('minute', models.TextField(blank=True, help_text='Meeting minutes (rich text)')),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('cancelled', 'Cancelled')], default='scheduled', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('attendees', models.ManyToManyField(blank=True, related_name='expected_meetings', to='members.member')),
                ('series', models.ForeignKey(blank=True, help_text='Series this meeting was generated from; kept when the series is deleted', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='meetings', to='meetings.meetingseries')),
            ],
            options={
                'verbose_name': 'Meeting',
                'verbose_name_plural': 'Meetings',
                'ordering': ['date', 'time'],
                'indexes': [models.Index(fields=['series', 'date'], name='meeting_series_date_idx')],
            },
        ),
        migrations.CreateModel(
            name='AttendanceRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('attended', models.BooleanField(default=False)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('meeting', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attendance_records', to='meetings.meeting')),
                ('member', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attendance_records', to='members.member')),
            ],
            options={
                'verbose_name': 'Attendance Record',
                'verbose_name_plural': 'Attendance Records',
                'ordering': ['meeting__date', 'member__first_name'],
                'constraints': [models.UniqueConstraint(fields=('meeting', 'member'), name='unique_attendance_per_meeting_member')],
            },
        ),
    ]
