from django.contrib import admin

from .models import Status, Task


@admin.register(Status)
class StatusAdmin(admin.ModelAdmin):
    list_display = ['name', 'team', 'created_by', 'created_at']
    search_fields = ['name']


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'is_personal', 'team', 'status', 'assigned_to', 'due_date']
    list_filter = ['is_personal']
    search_fields = ['title']
    readonly_fields = ['version']
