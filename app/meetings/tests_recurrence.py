import datetime

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase

from .models import MeetingSeries
from .recurrence import InvalidSeriesError, RuleIssue, generate_occurrences, series_issues, validate_rule


def make_series(**kwargs):
    fields = {
        'name': 'Sunday service',
        'default_time': datetime.time(10, 0),
        'default_location': 'Main hall',
        'target_attendee_groups': [MeetingSeries.TARGET_ALL_MEMBERS],
        'frequency': MeetingSeries.FREQUENCY_WEEKLY,
        'weekly_days': ['Sunday'],
    }
    fields.update(kwargs)
    return MeetingSeries(**fields)


def monthly_series(**kwargs):
    return make_series(frequency=MeetingSeries.FREQUENCY_MONTHLY, weekly_days=[], **kwargs)


def dates(*isoformats):
    return [datetime.date.fromisoformat(value) for value in isoformats]


class WeeklyOccurrenceTests(SimpleTestCase):
    def test_two_days_a_week_for_four_weeks(self):
        series = make_series(weekly_days=['Monday', 'Thursday'])
        result = list(generate_occurrences(series, datetime.date(2025, 3, 3), datetime.date(2025, 3, 30)))
        self.assertEqual(result, dates(
            '2025-03-03', '2025-03-06', '2025-03-10', '2025-03-13',
            '2025-03-17', '2025-03-20', '2025-03-24', '2025-03-27',
        ))

    def test_day_order_in_rule_does_not_matter(self):
        series = make_series(weekly_days=['Thursday', 'Monday'])
        result = list(generate_occurrences(series, datetime.date(2025, 3, 3), datetime.date(2025, 3, 9)))
        self.assertEqual(result, dates('2025-03-03', '2025-03-06'))

    def test_repeated_day_gives_no_duplicates(self):
        series = make_series(weekly_days=['Sunday', 'Sunday'])
        result = list(generate_occurrences(series, datetime.date(2025, 3, 1), datetime.date(2025, 3, 31)))
        self.assertEqual(result, dates('2025-03-02', '2025-03-09', '2025-03-16', '2025-03-23', '2025-03-30'))

    def test_window_bounds_are_inclusive(self):
        series = make_series(weekly_days=['Monday'])
        result = list(generate_occurrences(series, datetime.date(2025, 3, 3), datetime.date(2025, 3, 10)))
        self.assertEqual(result, dates('2025-03-03', '2025-03-10'))

    def test_single_day_window(self):
        series = make_series(weekly_days=['Monday'])
        self.assertEqual(
            list(generate_occurrences(series, datetime.date(2025, 3, 3), datetime.date(2025, 3, 3))),
            dates('2025-03-03'),
        )
        self.assertEqual(list(generate_occurrences(series, datetime.date(2025, 3, 4), datetime.date(2025, 3, 4))), [])

    def test_crosses_year_boundary(self):
        series = make_series(weekly_days=['Wednesday'])
        result = list(generate_occurrences(series, datetime.date(2025, 12, 29), datetime.date(2026, 1, 10)))
        self.assertEqual(result, dates('2025-12-31', '2026-01-07'))

    def test_every_day_of_the_week(self):
        series = make_series(weekly_days=[day for day, _ in MeetingSeries.DAY_CHOICES])
        result = list(generate_occurrences(series, datetime.date(2025, 3, 1), datetime.date(2025, 3, 31)))
        self.assertEqual(len(result), 31)
        self.assertEqual(result, sorted(set(result)))


class MonthlyOccurrenceTests(SimpleTestCase):
    def test_day_of_month_skips_short_months(self):
        series = monthly_series(monthly_rule_type=MeetingSeries.RULE_DAY_OF_MONTH, monthly_day_of_month=31)
        result = list(generate_occurrences(series, datetime.date(2025, 1, 1), datetime.date(2025, 5, 31)))
        self.assertEqual(result, dates('2025-01-31', '2025-03-31', '2025-05-31'))

    def test_day_29_in_leap_and_common_years(self):
        series = monthly_series(monthly_rule_type=MeetingSeries.RULE_DAY_OF_MONTH, monthly_day_of_month=29)
        self.assertEqual(
            list(generate_occurrences(series, datetime.date(2024, 2, 1), datetime.date(2024, 2, 29))),
            dates('2024-02-29'),
        )
        self.assertEqual(list(generate_occurrences(series, datetime.date(2025, 2, 1), datetime.date(2025, 2, 28))), [])

    def test_day_of_month_respects_window_inside_month(self):
        series = monthly_series(monthly_rule_type=MeetingSeries.RULE_DAY_OF_MONTH, monthly_day_of_month=15)
        result = list(generate_occurrences(series, datetime.date(2025, 1, 16), datetime.date(2025, 3, 14)))
        self.assertEqual(result, dates('2025-02-15'))

    def test_last_friday(self):
        series = monthly_series(
            monthly_rule_type=MeetingSeries.RULE_DAY_OF_WEEK_OF_MONTH,
            monthly_week_ordinal='Last',
            monthly_day_of_week='Friday',
        )
        result = list(generate_occurrences(series, datetime.date(2025, 1, 1), datetime.date(2025, 3, 31)))
        self.assertEqual(result, dates('2025-01-31', '2025-02-28', '2025-03-28'))

    def test_first_sunday(self):
        series = monthly_series(
            monthly_rule_type=MeetingSeries.RULE_DAY_OF_WEEK_OF_MONTH,
            monthly_week_ordinal='First',
            monthly_day_of_week='Sunday',
        )
        result = list(generate_occurrences(series, datetime.date(2025, 1, 1), datetime.date(2025, 3, 31)))
        self.assertEqual(result, dates('2025-01-05', '2025-02-02', '2025-03-02'))

    def test_fourth_thursday(self):
        series = monthly_series(
            monthly_rule_type=MeetingSeries.RULE_DAY_OF_WEEK_OF_MONTH,
            monthly_week_ordinal='Fourth',
            monthly_day_of_week='Thursday',
        )
        result = list(generate_occurrences(series, datetime.date(2025, 11, 1), datetime.date(2025, 11, 30)))
        self.assertEqual(result, dates('2025-11-27'))

    def test_weekday_of_month_outside_window_is_dropped(self):
        series = monthly_series(
            monthly_rule_type=MeetingSeries.RULE_DAY_OF_WEEK_OF_MONTH,
            monthly_week_ordinal='First',
            monthly_day_of_week='Sunday',
        )
        self.assertEqual(list(generate_occurrences(series, datetime.date(2025, 1, 6), datetime.date(2025, 2, 1))), [])


class OneTimeOccurrenceTests(SimpleTestCase):
    def setUp(self):
        self.series = make_series(
            frequency=MeetingSeries.FREQUENCY_ONE_TIME,
            weekly_days=[],
            one_time_date=datetime.date(2025, 4, 20),
        )

    def test_date_inside_window(self):
        result = list(generate_occurrences(self.series, datetime.date(2025, 4, 1), datetime.date(2025, 4, 30)))
        self.assertEqual(result, dates('2025-04-20'))

    def test_date_on_window_edges(self):
        self.assertEqual(len(list(generate_occurrences(self.series, datetime.date(2025, 4, 20), datetime.date(2025, 4, 30)))), 1)
        self.assertEqual(len(list(generate_occurrences(self.series, datetime.date(2025, 4, 1), datetime.date(2025, 4, 20)))), 1)

    def test_date_outside_window(self):
        self.assertEqual(list(generate_occurrences(self.series, datetime.date(2025, 5, 1), datetime.date(2025, 5, 31))), [])


class GenerationWindowTests(SimpleTestCase):
    def test_inverted_window_yields_nothing(self):
        series = make_series(weekly_days=['Monday'])
        self.assertEqual(list(generate_occurrences(series, datetime.date(2025, 3, 31), datetime.date(2025, 3, 1))), [])

    def test_existing_dates_are_skipped(self):
        series = make_series(weekly_days=['Monday', 'Thursday'])
        existing = dates('2025-03-03', '2025-03-13', '2024-01-01')
        result = list(generate_occurrences(series, datetime.date(2025, 3, 3), datetime.date(2025, 3, 16), existing_dates=existing))
        self.assertEqual(result, dates('2025-03-06', '2025-03-10'))

    def test_existing_dates_may_be_any_iterable(self):
        series = make_series(weekly_days=['Monday'])
        existing = (day for day in dates('2025-03-03'))
        result = list(generate_occurrences(series, datetime.date(2025, 3, 3), datetime.date(2025, 3, 10), existing_dates=existing))
        self.assertEqual(result, dates('2025-03-10'))

    def test_result_is_lazy(self):
        series = make_series(weekly_days=['Monday'])
        occurrences = generate_occurrences(series, datetime.date(2025, 1, 1), datetime.date(2125, 1, 1))
        self.assertEqual(next(occurrences), datetime.date(2025, 1, 6))
        self.assertEqual(next(occurrences), datetime.date(2025, 1, 13))

    def test_invalid_series_raises_before_iteration(self):
        series = make_series(weekly_days=[])
        with self.assertRaises(InvalidSeriesError) as caught:
            generate_occurrences(series, datetime.date(2025, 1, 1), datetime.date(2025, 1, 31))
        self.assertEqual(caught.exception.issues, [RuleIssue('weekly_days', "Select at least one day for weekly meetings.")])
        self.assertIsInstance(caught.exception, ValidationError)
        self.assertIn('weekly_days', caught.exception.message_dict)


class ValidateRuleTests(SimpleTestCase):
    def fields(self, issues):
        return [issue.field for issue in issues]

    def test_valid_weekly_rule(self):
        self.assertEqual(validate_rule(frequency='Weekly', target_attendee_groups=['workers'], weekly_days=['Monday']), [])

    def test_unknown_frequency(self):
        self.assertEqual(self.fields(validate_rule(frequency='Daily')), ['frequency'])

    def test_one_time_needs_a_date(self):
        self.assertEqual(self.fields(validate_rule(frequency='OneTime')), ['one_time_date'])

    def test_one_time_rejects_non_dates(self):
        self.assertEqual(self.fields(validate_rule(frequency='OneTime', one_time_date='2025-04-20')), ['one_time_date'])

    def test_weekly_needs_days(self):
        self.assertEqual(self.fields(validate_rule(frequency='Weekly', weekly_days=[])), ['weekly_days'])

    def test_weekly_rejects_unknown_day(self):
        issues = validate_rule(frequency='Weekly', weekly_days=['Monday', 'Funday'])
        self.assertEqual(issues, [RuleIssue('weekly_days', "Unknown day of the week.")])

    def test_monthly_needs_rule_type(self):
        self.assertEqual(self.fields(validate_rule(frequency='Monthly')), ['monthly_rule_type'])

    def test_day_of_month_range(self):
        for day in (None, 0, 32, -1, True, '15'):
            with self.subTest(day=day):
                issues = validate_rule(frequency='Monthly', monthly_rule_type='DayOfMonth', monthly_day_of_month=day)
                self.assertEqual(self.fields(issues), ['monthly_day_of_month'])
        for day in (1, 15, 31):
            with self.subTest(day=day):
                self.assertEqual(validate_rule(frequency='Monthly', monthly_rule_type='DayOfMonth', monthly_day_of_month=day), [])

    def test_weekday_of_month_reports_each_missing_field(self):
        issues = validate_rule(frequency='Monthly', monthly_rule_type='DayOfWeekOfMonth')
        self.assertEqual(self.fields(issues), ['monthly_week_ordinal', 'monthly_day_of_week'])

    def test_weekday_of_month_rejects_unknown_values(self):
        issues = validate_rule(
            frequency='Monthly',
            monthly_rule_type='DayOfWeekOfMonth',
            monthly_week_ordinal='Fifth',
            monthly_day_of_week='Caturday',
        )
        self.assertEqual(self.fields(issues), ['monthly_week_ordinal', 'monthly_day_of_week'])

    def test_fields_of_other_frequencies_are_ignored(self):
        issues = validate_rule(
            frequency='Weekly',
            weekly_days=['Friday'],
            monthly_rule_type='Bogus',
            monthly_day_of_month=99,
        )
        self.assertEqual(issues, [])

    def test_target_groups_required(self):
        issues = validate_rule(frequency='Weekly', target_attendee_groups=[], weekly_days=['Friday'])
        self.assertEqual(self.fields(issues), ['target_attendee_groups'])

    def test_unknown_target_group(self):
        issues = validate_rule(frequency='Weekly', target_attendee_groups=['visitors'], weekly_days=['Friday'])
        self.assertEqual(self.fields(issues), ['target_attendee_groups'])

    def test_series_issues_reads_model_fields(self):
        series = monthly_series(monthly_rule_type='DayOfMonth', monthly_day_of_month=40)
        self.assertEqual(self.fields(series_issues(series)), ['monthly_day_of_month'])


class MeetingSeriesCleanTests(SimpleTestCase):
    def test_clean_raises_field_errors(self):
        series = make_series(weekly_days=[])
        with self.assertRaises(ValidationError) as caught:
            series.clean()
        self.assertEqual(caught.exception.message_dict, {'weekly_days': ["Select at least one day for weekly meetings."]})

    def test_clean_accepts_valid_rule(self):
        make_series().clean()

    def test_schedule_display(self):
        self.assertEqual(make_series(weekly_days=['Monday', 'Thursday']).get_schedule_display(), "Weekly on Monday, Thursday")
        self.assertEqual(
            monthly_series(monthly_rule_type='DayOfWeekOfMonth', monthly_week_ordinal='Last', monthly_day_of_week='Friday').get_schedule_display(),
            "Monthly on the last Friday",
        )
        self.assertEqual(monthly_series(monthly_rule_type='DayOfMonth', monthly_day_of_month=15).get_schedule_display(), "Monthly on day 15")
