"""
Meeting-series recurrence rules: validation and expansion into dates.

A series is validated as a whole before any date is produced. Expansion
builds an iCalendar-style rule and evaluates it with ``dateutil.rrule``
over an inclusive date window. Day-of-month rules skip months that are too
short (a rule for the 31st has no occurrence in April) rather than
clamping to the last day.
"""

import datetime
from collections import defaultdict
from typing import NamedTuple

from dateutil import rrule
from django.core.exceptions import ValidationError

from .models import MeetingSeries

WEEKDAYS = {
    'Monday': rrule.MO,
    'Tuesday': rrule.TU,
    'Wednesday': rrule.WE,
    'Thursday': rrule.TH,
    'Friday': rrule.FR,
    'Saturday': rrule.SA,
    'Sunday': rrule.SU,
}

WEEK_ORDINALS = {
    'First': 1,
    'Second': 2,
    'Third': 3,
    'Fourth': 4,
    'Last': -1,
}

FREQUENCIES = {value for value, _ in MeetingSeries.FREQUENCY_CHOICES}
MONTHLY_RULE_TYPES = {value for value, _ in MeetingSeries.MONTHLY_RULE_CHOICES}
TARGET_GROUPS = {value for value, _ in MeetingSeries.TARGET_GROUP_CHOICES}


class RuleIssue(NamedTuple):
    field: str
    message: str


class InvalidSeriesError(ValidationError):
    """Raised when asked to expand a series whose rule is incomplete or malformed."""

    def __init__(self, issues):
        self.issues = list(issues)
        super().__init__(issues_as_error_dict(self.issues))


def issues_as_error_dict(issues):
    errors = defaultdict(list)
    for issue in issues:
        errors[issue.field].append(issue.message)
    return dict(errors)


def validate_rule(*, frequency, target_attendee_groups=None, one_time_date=None, weekly_days=None,
                  monthly_rule_type=None, monthly_day_of_month=None, monthly_week_ordinal=None,
                  monthly_day_of_week=None):
    """
    Check the cross-field requirements of a recurrence rule.

    Only the fields that belong to ``frequency`` (and, for monthly rules,
    ``monthly_rule_type``) are looked at; the rest are ignored. Returns a
    list of RuleIssue, empty when the rule is usable.
    """
    issues = []

    if target_attendee_groups is not None:
        if not target_attendee_groups:
            issues.append(RuleIssue('target_attendee_groups', "Select at least one attendee group."))
        elif not set(target_attendee_groups) <= TARGET_GROUPS:
            issues.append(RuleIssue('target_attendee_groups', "Unknown attendee group."))

    if frequency not in FREQUENCIES:
        issues.append(RuleIssue('frequency', "Select a valid frequency."))
        return issues

    if frequency == MeetingSeries.FREQUENCY_ONE_TIME:
        if not one_time_date:
            issues.append(RuleIssue('one_time_date', "A date is required for one-time meetings."))
        elif not isinstance(one_time_date, datetime.date):
            issues.append(RuleIssue('one_time_date', "Enter a valid date."))

    elif frequency == MeetingSeries.FREQUENCY_WEEKLY:
        if not weekly_days:
            issues.append(RuleIssue('weekly_days', "Select at least one day for weekly meetings."))
        elif not set(weekly_days) <= WEEKDAYS.keys():
            issues.append(RuleIssue('weekly_days', "Unknown day of the week."))

    elif frequency == MeetingSeries.FREQUENCY_MONTHLY:
        if not monthly_rule_type:
            issues.append(RuleIssue('monthly_rule_type', "Select a monthly rule type."))
        elif monthly_rule_type not in MONTHLY_RULE_TYPES:
            issues.append(RuleIssue('monthly_rule_type', "Unknown monthly rule type."))
        elif monthly_rule_type == MeetingSeries.RULE_DAY_OF_MONTH:
            day = monthly_day_of_month
            if isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= 31:
                issues.append(RuleIssue('monthly_day_of_month', "The day of the month must be between 1 and 31."))
        else:
            if not monthly_week_ordinal:
                issues.append(RuleIssue('monthly_week_ordinal', "Select which week of the month (e.g. First, Last)."))
            elif monthly_week_ordinal not in WEEK_ORDINALS:
                issues.append(RuleIssue('monthly_week_ordinal', "Unknown week of the month."))
            if not monthly_day_of_week:
                issues.append(RuleIssue('monthly_day_of_week', "Select the day of the week (e.g. Monday)."))
            elif monthly_day_of_week not in WEEKDAYS:
                issues.append(RuleIssue('monthly_day_of_week', "Unknown day of the week."))

    return issues


def series_issues(series):
    return validate_rule(
        frequency=series.frequency,
        target_attendee_groups=series.target_attendee_groups,
        one_time_date=series.one_time_date,
        weekly_days=series.weekly_days,
        monthly_rule_type=series.monthly_rule_type,
        monthly_day_of_month=series.monthly_day_of_month,
        monthly_week_ordinal=series.monthly_week_ordinal,
        monthly_day_of_week=series.monthly_day_of_week,
    )


def _as_datetime(day):
    return datetime.datetime.combine(day, datetime.time.min)


def _build_rule(series, window_start, window_end):
    bounds = {'dtstart': _as_datetime(window_start), 'until': _as_datetime(window_end)}

    if series.frequency == MeetingSeries.FREQUENCY_WEEKLY:
        # Sorted so the byweekday tuple is canonical; rrule output is ordered anyway.
        days = sorted({WEEKDAYS[name] for name in series.weekly_days}, key=lambda wd: wd.weekday)
        return rrule.rrule(rrule.DAILY, byweekday=days, **bounds)

    if series.monthly_rule_type == MeetingSeries.RULE_DAY_OF_MONTH:
        return rrule.rrule(rrule.MONTHLY, bymonthday=series.monthly_day_of_month, **bounds)

    weekday = WEEKDAYS[series.monthly_day_of_week](WEEK_ORDINALS[series.monthly_week_ordinal])
    return rrule.rrule(rrule.MONTHLY, byweekday=weekday, **bounds)


def _rule_dates(series, window_start, window_end):
    if window_start > window_end:
        return
    if series.frequency == MeetingSeries.FREQUENCY_ONE_TIME:
        if window_start <= series.one_time_date <= window_end:
            yield series.one_time_date
        return
    for occurrence in _build_rule(series, window_start, window_end):
        yield occurrence.date()


def generate_occurrences(series, window_start, window_end, existing_dates=()):
    """
    Dates in [window_start, window_end] on which ``series`` meets.

    Ascending, without duplicates, and without any date in
    ``existing_dates`` so that regenerating an overlapping window does not
    produce occurrences that were already materialised. Raises
    InvalidSeriesError straight away if the series rule is not usable.
    """
    issues = series_issues(series)
    if issues:
        raise InvalidSeriesError(issues)
    already = frozenset(existing_dates)
    return (day for day in _rule_dates(series, window_start, window_end) if day not in already)
