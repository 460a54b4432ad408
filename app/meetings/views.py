import datetime
import logging

from django.contrib import messages
from django.contrib.auth.mixins import LoginRequiredMixin, UserPassesTestMixin
from django.http import HttpResponse
from django.shortcuts import get_object_or_404, redirect
from django.urls import reverse_lazy
from django.utils import timezone
from django.utils.functional import cached_property
from django.views import View
from django.views.generic import CreateView, DeleteView, DetailView, FormView, ListView, UpdateView

from .calendar_utils import build_meetings_ics
from .forms import AttendanceSheetForm, GenerateMeetingsForm, MeetingForm, MeetingSeriesForm
from .models import Meeting, MeetingSeries
from .recurrence import InvalidSeriesError
from .services import cancel_meeting, generate_meetings, save_attendance_sheet

logger = logging.getLogger(__name__)


# Meeting Series Views
class MeetingSeriesListView(LoginRequiredMixin, UserPassesTestMixin, ListView):
    model = MeetingSeries
    template_name = 'meetings/series_list.html'
    context_object_name = 'series_list'
    paginate_by = 20

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('meetings.view')


class MeetingSeriesDetailView(LoginRequiredMixin, UserPassesTestMixin, DetailView):
    model = MeetingSeries
    template_name = 'meetings/series_detail.html'
    context_object_name = 'series'

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('meetings.view')

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        today = timezone.localdate()
        meetings = self.object.meetings.all()
        context['upcoming_meetings'] = meetings.filter(date__gte=today).order_by('date', 'time')[:20]
        context['past_meetings'] = meetings.filter(date__lt=today).order_by('-date', '-time')[:10]
        context['generate_form'] = GenerateMeetingsForm()
        return context


class MeetingSeriesFormMixin:
    def form_valid(self, form):
        messages.success(self.request, self.success_message % {'name': form.instance.name})
        return super().form_valid(form)

    def form_invalid(self, form):
        logger.info("Form validation failed for meeting series form: %s", form.errors.as_json())
        return super().form_invalid(form)


class MeetingSeriesCreateView(LoginRequiredMixin, UserPassesTestMixin, MeetingSeriesFormMixin, CreateView):
    model = MeetingSeries
    form_class = MeetingSeriesForm
    template_name = 'meetings/series_form.html'
    success_message = "Meeting series '%(name)s' created successfully."

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('meetings.create')


class MeetingSeriesUpdateView(LoginRequiredMixin, UserPassesTestMixin, MeetingSeriesFormMixin, UpdateView):
    model = MeetingSeries
    form_class = MeetingSeriesForm
    template_name = 'meetings/series_form.html'
    success_message = "Meeting series '%(name)s' updated successfully."

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('meetings.edit')


class MeetingSeriesDeleteView(LoginRequiredMixin, UserPassesTestMixin, DeleteView):
    """Deleting a series keeps its meetings; they just lose the link"""
    model = MeetingSeries
    template_name = 'meetings/series_confirm_delete.html'
    context_object_name = 'series'
    success_url = reverse_lazy('meetings:series-list')

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('meetings.delete')

    def form_valid(self, form):
        messages.success(self.request, f"Meeting series '{self.object.name}' deleted successfully.")
        return super().form_valid(form)


class MeetingSeriesGenerateView(LoginRequiredMixin, UserPassesTestMixin, FormView):
    form_class = GenerateMeetingsForm
    template_name = 'meetings/series_generate.html'

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('meetings.create')

    @cached_property
    def series(self):
        return get_object_or_404(MeetingSeries, pk=self.kwargs['pk'])

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['series'] = self.series
        return context

    def form_valid(self, form):
        start = form.cleaned_data['window_start']
        end = form.cleaned_data['window_end']
        try:
            created = generate_meetings(self.series, start, end)
        except InvalidSeriesError as exc:
            logger.warning("Cannot generate meetings for series %s: %s", self.series.pk, exc.messages)
            messages.error(self.request, "The recurrence rule of this series is incomplete: " + " ".join(exc.messages))
            return redirect(self.series.get_absolute_url())
        if created:
            messages.success(self.request, f"{len(created)} meetings generated between {start:%Y-%m-%d} and {end:%Y-%m-%d}.")
        else:
            messages.info(self.request, "No new meetings: every occurrence in that window already exists.")
        return redirect(self.series.get_absolute_url())

    def form_invalid(self, form):
        logger.info("Form validation failed for generate meetings form: %s", form.errors.as_json())
        return super().form_invalid(form)


# Meeting Views
class MeetingListView(LoginRequiredMixin, UserPassesTestMixin, ListView):
    model = Meeting
    template_name = 'meetings/meeting_list.html'
    context_object_name = 'meetings'
    paginate_by = 20

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('meetings.view')

    def get_when(self):
        return 'past' if self.request.GET.get('when') == 'past' else 'upcoming'

    def get_queryset(self):
        queryset = Meeting.objects.select_related('series')
        today = timezone.localdate()
        if self.get_when() == 'past':
            return queryset.filter(date__lt=today).order_by('-date', '-time')
        return queryset.filter(date__gte=today).order_by('date', 'time')

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['when'] = self.get_when()
        return context


class MeetingDetailView(LoginRequiredMixin, UserPassesTestMixin, DetailView):
    model = Meeting
    template_name = 'meetings/meeting_detail.html'
    context_object_name = 'meeting'

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('meetings.view')

    def get_queryset(self):
        return Meeting.objects.select_related('series')

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['attendees'] = self.object.attendees.order_by('first_name', 'last_name')
        context['attendance'] = {
            record.member_id: record for record in self.object.attendance_records.all()
        }
        return context


class MeetingCreateView(LoginRequiredMixin, UserPassesTestMixin, CreateView):
    """Occasional meeting that belongs to no series"""
    model = Meeting
    form_class = MeetingForm
    template_name = 'meetings/meeting_form.html'

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('meetings.create')

    def form_valid(self, form):
        messages.success(self.request, f"Meeting '{form.instance.name}' created successfully.")
        return super().form_valid(form)

    def form_invalid(self, form):
        logger.info("Form validation failed for meeting form: %s", form.errors.as_json())
        return super().form_invalid(form)


class MeetingUpdateView(LoginRequiredMixin, UserPassesTestMixin, UpdateView):
    model = Meeting
    form_class = MeetingForm
    template_name = 'meetings/meeting_form.html'

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('meetings.edit')

    def form_valid(self, form):
        messages.success(self.request, f"Meeting '{form.instance.name}' updated successfully.")
        return super().form_valid(form)

    def form_invalid(self, form):
        logger.info("Form validation failed for meeting form: %s", form.errors.as_json())
        return super().form_invalid(form)


class MeetingCancelView(LoginRequiredMixin, UserPassesTestMixin, View):
    http_method_names = ['post']

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('meetings.edit')

    def post(self, request, pk):
        meeting = get_object_or_404(Meeting, pk=pk)
        if cancel_meeting(meeting):
            messages.success(request, f"Meeting '{meeting}' cancelled.")
        else:
            messages.info(request, f"Meeting '{meeting}' was already cancelled.")
        return redirect(meeting.get_absolute_url())


class MeetingDeleteView(LoginRequiredMixin, UserPassesTestMixin, DeleteView):
    model = Meeting
    template_name = 'meetings/meeting_confirm_delete.html'
    context_object_name = 'meeting'
    success_url = reverse_lazy('meetings:meeting-list')

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('meetings.delete')

    def form_valid(self, form):
        messages.success(self.request, f"Meeting '{self.object}' deleted successfully.")
        return super().form_valid(form)


class MeetingAttendanceView(LoginRequiredMixin, UserPassesTestMixin, FormView):
    form_class = AttendanceSheetForm
    template_name = 'meetings/meeting_attendance.html'

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('attendance.record')

    @cached_property
    def meeting(self):
        return get_object_or_404(Meeting, pk=self.kwargs['pk'])

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        kwargs['meeting'] = self.meeting
        return kwargs

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['meeting'] = self.meeting
        return context

    def form_valid(self, form):
        records = save_attendance_sheet(self.meeting, form.attended_ids(), form.notes_by_member())
        attended = sum(record.attended for record in records)
        messages.success(self.request, f"Attendance saved: {attended} of {len(records)} attended.")
        return redirect(self.meeting.get_absolute_url())


def _ics_response(content, filename):
    response = HttpResponse(content, content_type='text/calendar; charset=utf-8')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


class MeetingExportICSView(LoginRequiredMixin, UserPassesTestMixin, View):
    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('meetings.view')

    def get(self, request, pk):
        meeting = get_object_or_404(Meeting, pk=pk)
        return _ics_response(build_meetings_ics([meeting], request), f"meeting-{meeting.pk}.ics")


class CalendarFeedView(LoginRequiredMixin, UserPassesTestMixin, View):
    """Upcoming meetings plus the last 30 days, so cancellations reach subscribers"""
    PAST_DAYS = 30

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('meetings.view')

    def get(self, request):
        since = timezone.localdate() - datetime.timedelta(days=self.PAST_DAYS)
        meetings = Meeting.objects.filter(date__gte=since).order_by('date', 'time')
        return _ics_response(build_meetings_ics(meetings, request), "meetings.ics")