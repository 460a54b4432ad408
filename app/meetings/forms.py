import datetime

from django import forms
from django.conf import settings
from django.utils import timezone

from members.forms import selectable_members
from .models import Meeting, MeetingSeries

TIME_INPUT_FORMATS = ['%H:%M']

# Fields that only mean something for one frequency / monthly rule type.
RULE_FIELD_BLANKS = {
    'one_time_date': None,
    'weekly_days': [],
    'monthly_rule_type': '',
    'monthly_day_of_month': None,
    'monthly_week_ordinal': '',
    'monthly_day_of_week': '',
}


def _relevant_rule_fields(frequency, monthly_rule_type):
    if frequency == MeetingSeries.FREQUENCY_ONE_TIME:
        return {'one_time_date'}
    if frequency == MeetingSeries.FREQUENCY_WEEKLY:
        return {'weekly_days'}
    if frequency == MeetingSeries.FREQUENCY_MONTHLY:
        if monthly_rule_type == MeetingSeries.RULE_DAY_OF_MONTH:
            return {'monthly_rule_type', 'monthly_day_of_month'}
        return {'monthly_rule_type', 'monthly_week_ordinal', 'monthly_day_of_week'}
    return set(RULE_FIELD_BLANKS)


class MeetingSeriesForm(forms.ModelForm):
    """
    Form for creating and editing meeting series.

    Fields that do not belong to the chosen frequency are cleared before
    the model validates the recurrence rule, so switching a series from
    weekly to monthly does not leave stale weekdays behind. Rule problems
    are raised by ``MeetingSeries.clean`` and land on the offending field.
    """
    default_time = forms.TimeField(
        input_formats=TIME_INPUT_FORMATS,
        widget=forms.TimeInput(attrs={'type': 'time', 'class': 'form-control'}, format='%H:%M'),
        help_text="Start time (HH:MM)",
    )
    target_attendee_groups = forms.MultipleChoiceField(
        choices=MeetingSeries.TARGET_GROUP_CHOICES,
        widget=forms.CheckboxSelectMultiple,
        label="Target attendees",
    )
    weekly_days = forms.MultipleChoiceField(
        choices=MeetingSeries.DAY_CHOICES,
        required=False,
        widget=forms.CheckboxSelectMultiple,
    )

    class Meta:
        model = MeetingSeries
        fields = [
            'name', 'description', 'default_time', 'default_location', 'default_image_url',
            'target_attendee_groups', 'frequency', 'one_time_date', 'weekly_days',
            'monthly_rule_type', 'monthly_day_of_month', 'monthly_week_ordinal', 'monthly_day_of_week',
        ]
        widgets = {
            'name': forms.TextInput(attrs={'class': 'form-control'}),
            'description': forms.Textarea(attrs={'class': 'form-control', 'rows': 3}),
            'default_location': forms.TextInput(attrs={'class': 'form-control'}),
            'default_image_url': forms.URLInput(attrs={'class': 'form-control'}),
            'frequency': forms.Select(attrs={'class': 'form-select'}),
            'one_time_date': forms.DateInput(attrs={'type': 'date', 'class': 'form-control'}, format='%Y-%m-%d'),
            'monthly_rule_type': forms.Select(attrs={'class': 'form-select'}),
            'monthly_day_of_month': forms.NumberInput(attrs={'class': 'form-control'}),
            'monthly_week_ordinal': forms.Select(attrs={'class': 'form-select'}),
            'monthly_day_of_week': forms.Select(attrs={'class': 'form-select'}),
        }

    def clean_name(self):
        name = self.cleaned_data['name'].strip()
        if len(name) < 3:
            raise forms.ValidationError("Series name must be at least 3 characters.")
        return name

    def clean(self):
        cleaned_data = super().clean()
        relevant = _relevant_rule_fields(cleaned_data.get('frequency'), cleaned_data.get('monthly_rule_type'))
        for field, blank in RULE_FIELD_BLANKS.items():
            if field not in relevant and field in cleaned_data:
                cleaned_data[field] = blank
        return cleaned_data


class GenerateMeetingsForm(forms.Form):
    """Date window to materialise meetings for"""
    MAX_WINDOW_DAYS = 366

    window_start = forms.DateField(widget=forms.DateInput(attrs={'type': 'date', 'class': 'form-control'}, format='%Y-%m-%d'))
    window_end = forms.DateField(widget=forms.DateInput(attrs={'type': 'date', 'class': 'form-control'}, format='%Y-%m-%d'))

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        today = timezone.localdate()
        self.fields['window_start'].initial = today
        self.fields['window_end'].initial = today + datetime.timedelta(days=settings.MEETING_GENERATION_DAYS)

    def clean(self):
        cleaned_data = super().clean()
        start = cleaned_data.get('window_start')
        end = cleaned_data.get('window_end')
        if start and end:
            if end < start:
                self.add_error('window_end', "The end date must not be before the start date.")
            elif (end - start).days > self.MAX_WINDOW_DAYS:
                self.add_error('window_end', f"Generate at most {self.MAX_WINDOW_DAYS} days at a time.")
        return cleaned_data


class MeetingForm(forms.ModelForm):
    """Form for editing a meeting or creating an occasional one outside any series"""
    time = forms.TimeField(
        input_formats=TIME_INPUT_FORMATS,
        widget=forms.TimeInput(attrs={'type': 'time', 'class': 'form-control'}, format='%H:%M'),
        help_text="Start time (HH:MM)",
    )

    class Meta:
        model = Meeting
        fields = ['name', 'date', 'time', 'location', 'description', 'image_url', 'attendees', 'minute']
        widgets = {
            'name': forms.TextInput(attrs={'class': 'form-control'}),
            'date': forms.DateInput(attrs={'type': 'date', 'class': 'form-control'}, format='%Y-%m-%d'),
            'location': forms.TextInput(attrs={'class': 'form-control'}),
            'description': forms.Textarea(attrs={'class': 'form-control', 'rows': 3}),
            'image_url': forms.URLInput(attrs={'class': 'form-control'}),
            'attendees': forms.CheckboxSelectMultiple,
            'minute': forms.Textarea(attrs={'class': 'form-control', 'rows': 8}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        attendee_ids = list(self.instance.attendees.values_list('pk', flat=True)) if self.instance.pk else []
        self.fields['attendees'].queryset = selectable_members(attendee_ids)
        self.fields['minute'].label = "Minutes"


class AttendanceSheetForm(forms.Form):
    """One attended checkbox and one notes field per expected attendee"""

    def __init__(self, *args, meeting, **kwargs):
        super().__init__(*args, **kwargs)
        self.meeting = meeting
        self.members = list(meeting.attendees.order_by('first_name', 'last_name'))
        existing = {record.member_id: record for record in meeting.attendance_records.all()}
        for member in self.members:
            record = existing.get(member.pk)
            self.fields[f'attended_{member.pk}'] = forms.BooleanField(
                required=False,
                initial=record.attended if record else False,
                label=member.full_name,
                widget=forms.CheckboxInput(attrs={'class': 'form-check-input'}),
            )
            self.fields[f'notes_{member.pk}'] = forms.CharField(
                required=False,
                initial=record.notes if record else '',
                label="Notes",
                widget=forms.TextInput(attrs={'class': 'form-control form-control-sm'}),
            )

    def rows(self):
        for member in self.members:
            yield member, self[f'attended_{member.pk}'], self[f'notes_{member.pk}']

    def attended_ids(self):
        return [member.pk for member in self.members if self.cleaned_data.get(f'attended_{member.pk}')]

    def notes_by_member(self):
        return {
            member.pk: self.cleaned_data.get(f'notes_{member.pk}', '').strip()
            for member in self.members
        }
