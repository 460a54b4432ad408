from django.contrib import admin
from .models import Member, GDI, MinistryArea


@admin.register(Member)
class MemberAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'email', 'phone', 'status', 'assigned_gdi', 'get_roles_display', 'created_at']
    list_filter = ['status', 'assigned_gdi', 'attends_life_school', 'attends_bible_institute', 'from_another_church']
    search_fields = ['first_name', 'last_name', 'email', 'phone']
    readonly_fields = ['created_at', 'updated_at']
    ordering = ['first_name', 'last_name']
    fieldsets = (
        ('Personal Information', {'fields': ('first_name', 'last_name', 'email', 'phone', 'avatar_url', 'status')}),
        ('Church Life', {'fields': ('birth_date', 'church_join_date', 'baptism_date', 'attends_life_school', 'attends_bible_institute', 'from_another_church', 'roles')}),
        ('Assignments', {'fields': ('assigned_gdi', 'assigned_areas'), 'description': 'Prefer the member form: it keeps GDI and area rosters in step.'}),
        ('Dates', {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )

    @admin.display(description='Name', ordering='first_name')
    def full_name(self, obj):
        return obj.full_name

    @admin.display(description='Roles')
    def get_roles_display(self, obj):
        return obj.get_roles_display()


@admin.register(GDI)
class GDIAdmin(admin.ModelAdmin):
    list_display = ['name', 'guide', 'member_count', 'created_at']
    search_fields = ['name', 'guide__first_name', 'guide__last_name']
    readonly_fields = ['created_at', 'updated_at']
    filter_horizontal = ['members']

    @admin.display(description='Members')
    def member_count(self, obj):
        return obj.member_count


@admin.register(MinistryArea)
class MinistryAreaAdmin(admin.ModelAdmin):
    list_display = ['name', 'leader', 'member_count', 'created_at']
    search_fields = ['name', 'description', 'leader__first_name', 'leader__last_name']
    readonly_fields = ['created_at', 'updated_at']
    filter_horizontal = ['members']

    @admin.display(description='Members')
    def member_count(self, obj):
        return obj.member_count
