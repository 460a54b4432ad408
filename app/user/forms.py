from django import forms
from django.contrib.auth.forms import UserCreationForm, UserChangeForm
from django.contrib.auth import get_user_model
from .models import PERMISSIONS, Role

CustomUser = get_user_model()


class CustomUserCreationForm(UserCreationForm):
    role = forms.ModelChoiceField(
        queryset=Role.objects.filter(is_active=True),
        required=False,
        empty_label="No role assigned"
    )

    class Meta(UserCreationForm.Meta):
        model = CustomUser
        fields = ('username', 'email', 'first_name', 'last_name', 'role')


class CustomUserEditForm(UserChangeForm):
    role = forms.ModelChoiceField(
        queryset=Role.objects.filter(is_active=True),
        required=False,
        empty_label="No role assigned"
    )

    class Meta:
        model = CustomUser
        fields = ('username', 'email', 'first_name', 'last_name', 'role')


class RoleForm(forms.ModelForm):
    class Meta:
        model = Role
        fields = ['name', 'description', 'permissions', 'is_active']
        widgets = {
            'description': forms.Textarea(attrs={'rows': 3}),
            'permissions': forms.Textarea(attrs={'rows': 5, 'placeholder': '["members.view", "meetings.view"]'}),
        }

    def clean_permissions(self):
        """Accept a bare list or {"permissions": [...]}; store the latter"""
        permissions = self.cleaned_data.get('permissions')
        if isinstance(permissions, dict):
            permissions = permissions.get('permissions', [])
        if permissions in (None, ''):
            permissions = []
        if not isinstance(permissions, list) or not all(isinstance(p, str) for p in permissions):
            raise forms.ValidationError("Permissions must be a list of permission names.")

        known = {name for name, _ in PERMISSIONS}
        unknown = sorted(set(permissions) - known)
        if unknown:
            raise forms.ValidationError(f"Unknown permissions: {', '.join(unknown)}")
        return {'permissions': permissions}
