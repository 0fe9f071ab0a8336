# task_manager/tasks/filters.py
import django_filters

from .models import Task


class TaskFilter(django_filters.FilterSet):
    team_id = django_filters.UUIDFilter(field_name='team_id')
    is_personal = django_filters.BooleanFilter(field_name='is_personal')
    status_id = django_filters.UUIDFilter(field_name='status_id')
    assigned_to_id = django_filters.UUIDFilter(field_name='assigned_to_id')

    class Meta:
        model = Task
        fields = ['team_id', 'is_personal', 'status_id', 'assigned_to_id']
