import csv
import io

from django import forms
from django.core.validators import validate_email
from django.db.models import Q

from .models import Member, GDI, MinistryArea
from .query import PAGE_SIZE_OPTIONS, SORT_KEYS, SORT_ORDERS


def selectable_members(keep_ids=()):
    """Members that can be picked: everyone not inactive, plus those already referenced."""
    return Member.objects.filter(~Q(status=Member.STATUS_INACTIVE) | Q(pk__in=[pk for pk in keep_ids if pk]))


class MemberForm(forms.ModelForm):
    """Form for creating and editing members"""
    roles = forms.MultipleChoiceField(
        choices=Member.ROLE_CHOICES,
        required=False,
        widget=forms.CheckboxSelectMultiple,
    )

    class Meta:
        model = Member
        fields = [
            'first_name', 'last_name', 'email', 'phone',
            'birth_date', 'church_join_date', 'baptism_date',
            'attends_life_school', 'attends_bible_institute', 'from_another_church',
            'status', 'avatar_url', 'roles', 'assigned_gdi', 'assigned_areas',
        ]
        widgets = {
            'first_name': forms.TextInput(attrs={'class': 'form-control'}),
            'last_name': forms.TextInput(attrs={'class': 'form-control'}),
            'email': forms.EmailInput(attrs={'class': 'form-control'}),
            'phone': forms.TextInput(attrs={'class': 'form-control'}),
            'birth_date': forms.DateInput(attrs={'type': 'date', 'class': 'form-control'}, format='%Y-%m-%d'),
            'church_join_date': forms.DateInput(attrs={'type': 'date', 'class': 'form-control'}, format='%Y-%m-%d'),
            'baptism_date': forms.TextInput(attrs={'class': 'form-control', 'placeholder': 'e.g. June 2023'}),
            'status': forms.Select(attrs={'class': 'form-select'}),
            'avatar_url': forms.URLInput(attrs={'class': 'form-control'}),
            'assigned_gdi': forms.Select(attrs={'class': 'form-select'}),
            'assigned_areas': forms.CheckboxSelectMultiple,
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['email'].required = True
        self.fields['phone'].required = True
        self.fields['assigned_gdi'].empty_label = "No GDI"

    def clean_first_name(self):
        first_name = self.cleaned_data['first_name'].strip()
        if len(first_name) < 2:
            raise forms.ValidationError("First name must be at least 2 characters.")
        return first_name

    def clean_last_name(self):
        last_name = self.cleaned_data['last_name'].strip()
        if len(last_name) < 2:
            raise forms.ValidationError("Last name must be at least 2 characters.")
        return last_name

    def clean_phone(self):
        phone = self.cleaned_data['phone'].strip()
        if len(phone) < 7:
            raise forms.ValidationError("Phone number looks too short.")
        return phone


class MemberListQueryForm(forms.Form):
    """Query string of the member list: search, sort and page controls"""
    search = forms.CharField(required=False, widget=forms.TextInput(attrs={
        'class': 'form-control', 'type': 'search', 'placeholder': 'Search members (name, email, role...)'
    }))
    sort = forms.ChoiceField(choices=[(key, key) for key in SORT_KEYS], required=False)
    order = forms.ChoiceField(choices=[(order, order) for order in SORT_ORDERS], required=False)
    page = forms.IntegerField(min_value=1, required=False)
    page_size = forms.TypedChoiceField(
        choices=[(size, str(size)) for size in PAGE_SIZE_OPTIONS],
        coerce=int,
        required=False,
        empty_value=None,
        widget=forms.Select(attrs={'class': 'form-select form-select-sm'}),
    )


class BulkMemberForm(forms.Form):
    """Paste one member per line: first name, last name, email, phone"""
    rows = forms.CharField(
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 10, 'placeholder': 'Ana,Lopez,ana@example.com,5551234567'}),
        help_text="One member per line: first name, last name, email, phone",
    )
    status = forms.ChoiceField(choices=Member.STATUS_CHOICES, initial=Member.STATUS_NEW, widget=forms.Select(attrs={'class': 'form-select'}))

    def clean_rows(self):
        parsed = []
        errors = []
        reader = csv.reader(io.StringIO(self.cleaned_data['rows']))
        for line_number, row in enumerate(reader, start=1):
            cells = [cell.strip() for cell in row]
            if not any(cells):
                continue
            if len(cells) != 4:
                errors.append(f"Line {line_number}: expected 4 values, got {len(cells)}.")
                continue
            first_name, last_name, email, phone = cells
            try:
                validate_email(email)
            except forms.ValidationError:
                errors.append(f"Line {line_number}: invalid email address '{email}'.")
                continue
            if len(first_name) < 2 or len(last_name) < 2:
                errors.append(f"Line {line_number}: names must be at least 2 characters.")
                continue
            parsed.append({'first_name': first_name, 'last_name': last_name, 'email': email, 'phone': phone})
        if errors:
            raise forms.ValidationError(errors)
        if not parsed:
            raise forms.ValidationError("Enter at least one member.")
        return parsed


class GDIForm(forms.ModelForm):
    """Form for creating and editing GDIs and their roster"""
    members = forms.ModelMultipleChoiceField(
        queryset=Member.objects.exclude(status=Member.STATUS_INACTIVE),
        required=False,
        widget=forms.CheckboxSelectMultiple,
    )

    class Meta:
        model = GDI
        fields = ['name', 'guide']
        widgets = {
            'name': forms.TextInput(attrs={'class': 'form-control'}),
            'guide': forms.Select(attrs={'class': 'form-select'}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['guide'].required = True
        self.fields['guide'].queryset = selectable_members([self.instance.guide_id])
        roster_ids = list(self.instance.members.values_list('pk', flat=True)) if self.instance.pk else []
        # Inactive members stay on the roster until someone unticks them
        self.fields['members'].queryset = selectable_members(roster_ids)
        self.fields['members'].initial = roster_ids

    def clean_name(self):
        name = self.cleaned_data['name'].strip()
        if len(name) < 3:
            raise forms.ValidationError("GDI name must be at least 3 characters.")
        return name


class MinistryAreaForm(forms.ModelForm):
    """Form for creating and editing ministry areas and their roster"""
    members = forms.ModelMultipleChoiceField(
        queryset=Member.objects.exclude(status=Member.STATUS_INACTIVE),
        required=False,
        widget=forms.CheckboxSelectMultiple,
    )

    class Meta:
        model = MinistryArea
        fields = ['name', 'description', 'leader', 'image_url']
        widgets = {
            'name': forms.TextInput(attrs={'class': 'form-control'}),
            'description': forms.Textarea(attrs={'class': 'form-control', 'rows': 3}),
            'leader': forms.Select(attrs={'class': 'form-select'}),
            'image_url': forms.URLInput(attrs={'class': 'form-control'}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['leader'].required = True
        self.fields['leader'].queryset = selectable_members([self.instance.leader_id])
        roster_ids = list(self.instance.members.values_list('pk', flat=True)) if self.instance.pk else []
        self.fields['members'].queryset = selectable_members(roster_ids)
        self.fields['members'].initial = roster_ids

    def clean_name(self):
        name = self.cleaned_data['name'].strip()
        if len(name) < 3:
            raise forms.ValidationError("Area name must be at least 3 characters.")
        return name

    def clean_description(self):
        description = self.cleaned_data['description'].strip()
        if len(description) < 10:
            raise forms.ValidationError("Description must be at least 10 characters.")
        return description
