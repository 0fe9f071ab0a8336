# task_manager/tasks/views.py
import uuid

from django.db.models import Q
from django.shortcuts import get_object_or_404
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import generics, status
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.response import Response

from teams.models import Team
from teams.permissions import has_team_access

from . import services
from .filters import TaskFilter
from .models import Status, Task
from .permissions import can_view_task, has_status_access
from .serializers import StatusSerializer, StatusUpdateSerializer, TaskSerializer, TaskUpdateSerializer

team_id_param = openapi.Parameter(
    'team_id', openapi.IN_QUERY,
    description="List this team's statuses instead of your personal ones",
    type=openapi.TYPE_STRING, format=openapi.FORMAT_UUID,
)


class StatusListCreateView(generics.ListCreateAPIView):
    serializer_class = StatusSerializer

    def get_queryset(self):
        team_id = self.request.query_params.get('team_id')
        if team_id:
            try:
                team_id = uuid.UUID(team_id)
            except ValueError:
                raise ValidationError({'team_id': 'Must be a valid UUID.'})
            team = get_object_or_404(Team, pk=team_id)
            if not has_team_access(team.pk, self.request.user.pk):
                raise PermissionDenied("You do not have access to this team.")
            return Status.objects.filter(team=team).order_by('name')
        return Status.objects.filter(team__isnull=True, created_by=self.request.user).order_by('name')

    @swagger_auto_schema(
        operation_summary="List personal statuses, or a team's statuses with team_id",
        manual_parameters=[team_id_param],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @swagger_auto_schema(
        operation_summary="Create a personal status, or a team status with team_id",
        responses={201: StatusSerializer(), 403: "No access to the team", 409: "Duplicate name"},
    )
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        created = services.create_status(
            request.user, serializer.validated_data['name'], serializer.validated_data.get('team_id')
        )
        return Response(self.get_serializer(created).data, status=status.HTTP_201_CREATED)


class StatusDetailView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = StatusSerializer
    queryset = Status.objects.all()
    http_method_names = ['get', 'put', 'delete', 'head', 'options']

    def get_object(self):
        obj = super().get_object()
        if not has_status_access(obj, self.request.user.pk):
            raise PermissionDenied("You do not have access to this status.")
        return obj

    @swagger_auto_schema(
        operation_summary="Rename a status",
        request_body=StatusUpdateSerializer,
        responses={200: StatusSerializer(), 409: "Duplicate name or concurrent modification"},
    )
    def put(self, request, *args, **kwargs):
        obj = get_object_or_404(Status, pk=kwargs['pk'])
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        updated = services.update_status(
            obj, request.user, serializer.validated_data['name'], serializer.validated_data.get('version')
        )
        return Response(self.get_serializer(updated).data)

    @swagger_auto_schema(
        operation_summary="Delete a status, moving its tasks to a fallback status",
        responses={204: "Deleted", 400: "No fallback status available", 403: "No access"},
    )
    def delete(self, request, *args, **kwargs):
        services.delete_status(kwargs['pk'], request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


def _task_queryset():
    return Task.objects.select_related('status', 'assigned_to', 'team')


class TaskListCreateView(generics.ListCreateAPIView):
    serializer_class = TaskSerializer
    filterset_class = TaskFilter

    def get_queryset(self):
        user = self.request.user
        return (
            _task_queryset()
            .filter(
                Q(is_personal=True, created_by=user)
                | Q(is_personal=False, team__memberships__user=user)
            )
            .distinct()
            .order_by('-created_at')
        )

    @swagger_auto_schema(operation_summary="List your personal tasks and your teams' tasks, newest first")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @swagger_auto_schema(
        operation_summary="Create a task",
        responses={
            201: TaskSerializer(),
            400: "Invalid team or assignment",
            403: "No access to the team",
            404: "Status or team not found",
        },
    )
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        task = services.create_task(request.user, **serializer.validated_data)
        return Response(self.get_serializer(task).data, status=status.HTTP_201_CREATED)


class TaskDetailView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = TaskSerializer

    def get_queryset(self):
        return _task_queryset()

    def get_object(self):
        task = super().get_object()
        if not can_view_task(task, self.request.user.pk):
            raise PermissionDenied("You do not have access to this task.")
        return task

    def _update(self, request, partial):
        task = get_object_or_404(_task_queryset(), pk=self.kwargs['pk'])
        serializer = TaskUpdateSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        changes = dict(serializer.validated_data)

        task = services.update_task(task, request.user, **changes)
        return Response(self.get_serializer(task).data)

    @swagger_auto_schema(
        operation_summary="Update a task",
        request_body=TaskUpdateSerializer,
        responses={200: TaskSerializer(), 400: "Invalid change", 403: "No access", 409: "Modified concurrently"},
    )
    def put(self, request, *args, **kwargs):
        return self._update(request, partial=False)

    @swagger_auto_schema(
        operation_summary="Partially update a task",
        request_body=TaskUpdateSerializer,
        responses={200: TaskSerializer(), 400: "Invalid change", 403: "No access", 409: "Modified concurrently"},
    )
    def patch(self, request, *args, **kwargs):
        return self._update(request, partial=True)

    @swagger_auto_schema(operation_summary="Delete a task", responses={204: "Deleted", 403: "No access"})
    def delete(self, request, *args, **kwargs):
        services.delete_task(kwargs['pk'], request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
