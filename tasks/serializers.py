# task_manager/tasks/serializers.py
from django.utils.timezone import now
from rest_framework import serializers

from .models import Status, Task


class StatusSerializer(serializers.ModelSerializer):
    name = serializers.CharField(min_length=2, max_length=100)
    team_id = serializers.UUIDField(required=False, allow_null=True)
    created_by = serializers.UUIDField(source='created_by_id', read_only=True)
    is_personal = serializers.BooleanField(read_only=True)

    class Meta:
        model = Status
        fields = ['id', 'name', 'team_id', 'is_personal', 'created_by', 'created_at', 'version']
        read_only_fields = ['id', 'created_at', 'version']
        validators = []


class StatusUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=100)
    version = serializers.IntegerField(required=False, min_value=1)


class TaskSerializer(serializers.ModelSerializer):
    """Read shape of a task, plus the fields accepted on create."""
    title = serializers.CharField(min_length=2, max_length=200)
    description = serializers.CharField(max_length=1000, required=False, allow_blank=True)
    team_id = serializers.UUIDField(required=False, allow_null=True)
    status_id = serializers.UUIDField()
    status_name = serializers.CharField(source='status.name', read_only=True, default=None)
    assigned_to_id = serializers.UUIDField(required=False, allow_null=True)
    assigned_to_username = serializers.CharField(source='assigned_to.username', read_only=True, default=None)
    created_by = serializers.UUIDField(source='created_by_id', read_only=True)

    class Meta:
        model = Task
        fields = [
            'id', 'title', 'description', 'due_date', 'is_personal', 'team_id',
            'status_id', 'status_name', 'assigned_to_id', 'assigned_to_username',
            'created_by', 'created_at', 'updated_at', 'version',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at', 'version']

    def validate_due_date(self, value):
        if value is not None and value <= now():
            raise serializers.ValidationError("Due date must be in the future.")
        return value


class TaskUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(min_length=2, max_length=200, required=False)
    description = serializers.CharField(max_length=1000, required=False, allow_blank=True)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    is_personal = serializers.BooleanField(required=False)
    team_id = serializers.UUIDField(required=False, allow_null=True)
    status_id = serializers.UUIDField(required=False, allow_null=True)
    assigned_to_id = serializers.UUIDField(required=False, allow_null=True)
    version = serializers.IntegerField(required=False, min_value=1)
