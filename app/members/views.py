import logging
from urllib.parse import urlencode

from django.conf import settings
from django.contrib import messages
from django.contrib.auth.mixins import LoginRequiredMixin, UserPassesTestMixin
from django.db import transaction
from django.shortcuts import get_object_or_404, redirect
from django.urls import reverse_lazy
from django.views import View
from django.views.generic import CreateView, DetailView, FormView, ListView, TemplateView, UpdateView

from .forms import BulkMemberForm, GDIForm, MemberForm, MemberListQueryForm, MinistryAreaForm
from .models import GDI, Member, MinistryArea
from .query import DEFAULT_SORT_KEY, PAGE_SIZE_OPTIONS, SORT_ASC, SORT_DESC, GuideNameResolver, query_members
from .services import (
    RosterUpdateError, bulk_add_members, deactivate_member, save_member, set_area_roster, set_gdi_roster,
)

logger = logging.getLogger(__name__)


def _default_page_size():
    size = getattr(settings, 'MEMBER_PAGE_SIZE_DEFAULT', PAGE_SIZE_OPTIONS[0])
    return size if size in PAGE_SIZE_OPTIONS else PAGE_SIZE_OPTIONS[0]


# Member Views
class MemberListView(LoginRequiredMixin, UserPassesTestMixin, TemplateView):
    template_name = 'members/member_list.html'
    SORT_COLUMNS = [
        ('full_name', 'Name'),
        ('phone', 'Phone'),
        ('status', 'Status'),
        ('church_join_date', 'Joined'),
    ]

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('members.view')

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        form = MemberListQueryForm(self.request.GET)
        # Fields that failed validation are left out of cleaned_data; the rest still apply
        if not form.is_valid():
            logger.info("Ignoring invalid member list parameters: %s", form.errors.as_json())
        params = form.cleaned_data

        members = list(Member.objects.order_by('pk'))
        member_page = query_members(
            members,
            search=params.get('search'),
            sort_key=params.get('sort') or DEFAULT_SORT_KEY,
            sort_order=params.get('order') or SORT_ASC,
            page=params.get('page') or 1,
            page_size=params.get('page_size') or _default_page_size(),
        )
        resolve_guide = GuideNameResolver(list(GDI.objects.all()), members)

        context['query_form'] = form
        context['member_page'] = member_page
        context['rows'] = [(member, resolve_guide(member)) for member in member_page.items]
        context['page_size_options'] = PAGE_SIZE_OPTIONS
        context['sort_columns'] = self.get_sort_columns(member_page)
        context['page_query'] = urlencode({
            'search': member_page.search,
            'sort': member_page.sort_key,
            'order': member_page.sort_order,
            'page_size': member_page.page_size,
        })
        return context

    def get_sort_columns(self, member_page):
        """Header links: clicking the current column flips the order"""
        columns = []
        for key, label in self.SORT_COLUMNS:
            current = key == member_page.sort_key
            order = SORT_DESC if current and member_page.sort_order == SORT_ASC else SORT_ASC
            query = urlencode({'search': member_page.search, 'sort': key, 'order': order, 'page_size': member_page.page_size})
            columns.append({'key': key, 'label': label, 'query': query, 'current': current, 'order': member_page.sort_order})
        return columns


class MemberDetailView(LoginRequiredMixin, UserPassesTestMixin, DetailView):
    model = Member
    template_name = 'members/member_detail.html'
    context_object_name = 'member'

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('members.view')

    def get_context_data(self, **kwargs):
        from meetings.services import attendance_summary

        context = super().get_context_data(**kwargs)
        member = self.object
        resolve_guide = GuideNameResolver(list(GDI.objects.all()), list(Member.objects.all()))
        context['guide_name'] = resolve_guide(member)
        context['areas'] = member.assigned_areas.all()
        context['attendance_records'] = member.attendance_records.select_related('meeting').order_by('-meeting__date')[:20]
        context['attendance_summary'] = attendance_summary(member)
        return context


class MemberFormMixin:
    """Saves through the roster service so GDI and area rosters follow the member"""

    def form_valid(self, form):
        member = form.save(commit=False)
        try:
            self.object = save_member(
                member,
                gdi=form.cleaned_data.get('assigned_gdi'),
                areas=form.cleaned_data.get('assigned_areas') or [],
            )
        except RosterUpdateError as exc:
            messages.error(self.request, str(exc))
            return self.form_invalid(form)
        messages.success(self.request, self.success_message % {'name': member.full_name})
        return redirect(self.object.get_absolute_url())

    def form_invalid(self, form):
        logger.info("Form validation failed for member form: %s", form.errors.as_json())
        return super().form_invalid(form)


class MemberCreateView(LoginRequiredMixin, UserPassesTestMixin, MemberFormMixin, CreateView):
    model = Member
    form_class = MemberForm
    template_name = 'members/member_form.html'
    success_message = "Member '%(name)s' created successfully."

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('members.create')


class MemberUpdateView(LoginRequiredMixin, UserPassesTestMixin, MemberFormMixin, UpdateView):
    model = Member
    form_class = MemberForm
    template_name = 'members/member_form.html'
    success_message = "Member '%(name)s' updated successfully."

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('members.edit')


class MemberDeactivateView(LoginRequiredMixin, UserPassesTestMixin, View):
    """Members are never deleted; this switches them to Inactive"""
    http_method_names = ['post']

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('members.edit')

    def post(self, request, pk):
        member = get_object_or_404(Member, pk=pk)
        if deactivate_member(member):
            messages.success(request, f"Member '{member.full_name}' is now inactive.")
        else:
            messages.info(request, f"Member '{member.full_name}' is already inactive.")
        return redirect(member.get_absolute_url())


class MemberBulkCreateView(LoginRequiredMixin, UserPassesTestMixin, FormView):
    form_class = BulkMemberForm
    template_name = 'members/member_bulk_form.html'
    success_url = reverse_lazy('members:member-list')

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('members.create')

    def form_valid(self, form):
        try:
            created = bulk_add_members(form.cleaned_data['rows'], status=form.cleaned_data['status'])
        except RosterUpdateError as exc:
            messages.error(self.request, str(exc))
            return self.form_invalid(form)
        messages.success(self.request, f"{len(created)} members added successfully.")
        return super().form_valid(form)

    def form_invalid(self, form):
        logger.info("Form validation failed for bulk member form: %s", form.errors.as_json())
        return super().form_invalid(form)


# GDI Views
class GDIListView(LoginRequiredMixin, UserPassesTestMixin, ListView):
    model = GDI
    template_name = 'members/gdi_list.html'
    context_object_name = 'gdis'
    paginate_by = 20

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('members.view')

    def get_queryset(self):
        return GDI.objects.select_related('guide').prefetch_related('members')


class GDIDetailView(LoginRequiredMixin, UserPassesTestMixin, DetailView):
    model = GDI
    template_name = 'members/gdi_detail.html'
    context_object_name = 'gdi'

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('members.view')

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['members'] = self.object.members.order_by('first_name', 'last_name')
        return context


class RosterFormMixin:
    """Saves the group, then hands its roster to the consistency service"""
    roster_service = None

    def form_valid(self, form):
        try:
            with transaction.atomic():
                self.object = form.save()
                self.roster_service(self.object, form.cleaned_data.get('members') or [])
        except RosterUpdateError as exc:
            messages.error(self.request, str(exc))
            return self.form_invalid(form)
        messages.success(self.request, self.success_message % {'name': self.object.name})
        return redirect(self.object.get_absolute_url())

    def form_invalid(self, form):
        logger.info("Form validation failed for %s form: %s", self.model.__name__, form.errors.as_json())
        return super().form_invalid(form)


class GDICreateView(LoginRequiredMixin, UserPassesTestMixin, RosterFormMixin, CreateView):
    model = GDI
    form_class = GDIForm
    template_name = 'members/gdi_form.html'
    roster_service = staticmethod(set_gdi_roster)
    success_message = "GDI '%(name)s' created successfully."

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('members.create')


class GDIUpdateView(LoginRequiredMixin, UserPassesTestMixin, RosterFormMixin, UpdateView):
    model = GDI
    form_class = GDIForm
    template_name = 'members/gdi_form.html'
    roster_service = staticmethod(set_gdi_roster)
    success_message = "GDI '%(name)s' updated successfully."

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('members.edit')


# Ministry Area Views
class MinistryAreaListView(LoginRequiredMixin, UserPassesTestMixin, ListView):
    model = MinistryArea
    template_name = 'members/area_list.html'
    context_object_name = 'areas'
    paginate_by = 20

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('members.view')

    def get_queryset(self):
        return MinistryArea.objects.select_related('leader').prefetch_related('members')


class MinistryAreaDetailView(LoginRequiredMixin, UserPassesTestMixin, DetailView):
    model = MinistryArea
    template_name = 'members/area_detail.html'
    context_object_name = 'area'

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('members.view')

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['members'] = self.object.members.order_by('first_name', 'last_name')
        return context


class MinistryAreaCreateView(LoginRequiredMixin, UserPassesTestMixin, RosterFormMixin, CreateView):
    model = MinistryArea
    form_class = MinistryAreaForm
    template_name = 'members/area_form.html'
    roster_service = staticmethod(set_area_roster)
    success_message = "Ministry area '%(name)s' created successfully."

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('members.create')


class MinistryAreaUpdateView(LoginRequiredMixin, UserPassesTestMixin, RosterFormMixin, UpdateView):
    model = MinistryArea
    form_class = MinistryAreaForm
    template_name = 'members/area_form.html'
    roster_service = staticmethod(set_area_roster)
    success_message = "Ministry area '%(name)s' updated successfully."

    def test_func(self):
        return self.request.user.is_superuser or self.request.user.has_role_permission('members.edit')
