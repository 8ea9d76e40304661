from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from invoicing.models import User, Workspace, WorkspaceMembership


class WorkspaceMembershipInline(admin.TabularInline):
    model = WorkspaceMembership
    extra = 0
    fields = ("user", "role", "is_active")


@admin.register(Workspace)
class WorkspaceAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "slug", "default_currency", "owner", "created_at")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}
    inlines = [WorkspaceMembershipInline]


@admin.register(User)
class WorkspaceUserAdmin(UserAdmin):
    fieldsets = UserAdmin.fieldsets + (("Workspace", {"fields": ("default_workspace",)}),)
    list_display = UserAdmin.list_display + ("default_workspace",)
