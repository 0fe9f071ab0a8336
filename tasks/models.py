# task_manager/tasks/models.py
import uuid

from django.conf import settings
from django.core.validators import MinLengthValidator
from django.db import models

from teams.models import Team

# tried in this order when a status in use is deleted
FALLBACK_STATUS_NAMES = ('Todo', 'Backlog', 'Open')


class Status(models.Model):
    """A task state. Personal statuses belong to their creator, team statuses to the team."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100, validators=[MinLengthValidator(2)])
    team = models.ForeignKey(Team, on_delete=models.CASCADE, null=True, blank=True, related_name='statuses')
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='statuses')
    created_at = models.DateTimeField(auto_now_add=True)
    version = models.PositiveIntegerField(default=1)

    class Meta:
        verbose_name_plural = 'statuses'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(
                fields=['name', 'team'],
                condition=models.Q(team__isnull=False),
                name='unique_team_status_name',
            ),
            models.UniqueConstraint(
                fields=['name', 'created_by'],
                condition=models.Q(team__isnull=True),
                name='unique_personal_status_name',
            ),
        ]

    def __str__(self):
        return f"{self.name} ({'Personal' if self.is_personal else self.team})"

    @property
    def is_personal(self):
        return self.team_id is None

    def same_scope(self):
        """Statuses sharing this one's uniqueness and fallback scope."""
        if self.is_personal:
            return Status.objects.filter(team__isnull=True, created_by_id=self.created_by_id)
        return Status.objects.filter(team_id=self.team_id)


class Task(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=200, validators=[MinLengthValidator(2)])
    description = models.CharField(max_length=1000, blank=True, default='')
    due_date = models.DateTimeField(null=True, blank=True)
    is_personal = models.BooleanField(default=True)
    team = models.ForeignKey(Team, on_delete=models.CASCADE, null=True, blank=True, related_name='tasks')
    status = models.ForeignKey(Status, on_delete=models.RESTRICT, null=True, blank=True, related_name='tasks')
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_tasks',
    )
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='created_tasks')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    version = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(is_personal=True, team__isnull=True) | models.Q(is_personal=False, team__isnull=False),
                name='task_team_matches_scope',
            ),
        ]

    def __str__(self):
        return self.title
