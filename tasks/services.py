# task_manager/tasks/services.py
import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F, RestrictedError
from django.utils.timezone import now
from rest_framework.exceptions import NotFound, PermissionDenied

from common.exceptions import BadRequest, Conflict
from teams.models import Team
from teams.permissions import has_team_access, is_team_member

from .models import FALLBACK_STATUS_NAMES, Status, Task
from .permissions import can_edit_task, has_status_access, has_task_access

logger = logging.getLogger(__name__)

User = get_user_model()

TASK_CONFLICT_MESSAGE = "Task was modified by another user, refresh and try again."
STATUS_CONFLICT_MESSAGE = "Status was modified by another user, refresh and try again."


def _versioned_update(instance, expected_version, conflict_message, **fields):
    """
    Writes `fields` only if the row still carries the version the caller last
    saw, bumping it in the same statement. Zero rows updated means someone else
    got there first.
    """
    if expected_version is None:
        expected_version = instance.version
    updated = type(instance).objects.filter(pk=instance.pk, version=expected_version).update(
        version=F('version') + 1, **fields
    )
    if not updated:
        raise Conflict(conflict_message)
    instance.refresh_from_db()
    return instance


# Statuses

def _ensure_unique_status_name(name, team_id, user, exclude_id=None):
    if team_id is None:
        clash = Status.objects.filter(team__isnull=True, created_by=user, name=name)
    else:
        clash = Status.objects.filter(team_id=team_id, name=name)
    if exclude_id is not None:
        clash = clash.exclude(pk=exclude_id)
    if clash.exists():
        raise Conflict(f"A status named '{name}' already exists.")


def create_status(user, name, team_id=None):
    if team_id is not None:
        if not Team.objects.filter(pk=team_id).exists():
            raise NotFound("Team not found.")
        if not has_team_access(team_id, user.pk):
            raise PermissionDenied("You do not have access to this team.")

    _ensure_unique_status_name(name, team_id, user)
    try:
        with transaction.atomic():
            return Status.objects.create(name=name, team_id=team_id, created_by=user)
    except IntegrityError:
        raise Conflict(f"A status named '{name}' already exists.")


def update_status(status, user, name, version=None):
    if not has_status_access(status, user.pk):
        raise PermissionDenied("You do not have access to this status.")
    _ensure_unique_status_name(name, status.team_id, status.created_by_id, exclude_id=status.pk)
    try:
        with transaction.atomic():
            return _versioned_update(status, version, STATUS_CONFLICT_MESSAGE, name=name)
    except IntegrityError:
        raise Conflict(f"A status named '{name}' already exists.")


def find_fallback_status(status):
    candidates = status.same_scope().exclude(pk=status.pk)
    for name in FALLBACK_STATUS_NAMES:
        match = candidates.filter(name=name).first()
        if match is not None:
            return match
    return candidates.order_by('created_at').first()


def delete_status(status_id, user):
    """
    Deletes a status, moving any tasks that use it onto the fallback status of
    the same scope. Nothing changes when no fallback exists.
    """
    status = Status.objects.filter(pk=status_id).first()
    if status is None:
        return
    if not has_status_access(status, user.pk):
        raise PermissionDenied("You do not have access to this status.")

    try:
        with transaction.atomic():
            tasks = Task.objects.select_for_update().filter(status=status)
            reassigned = 0
            if tasks.exists():
                fallback = find_fallback_status(status)
                if fallback is None:
                    raise BadRequest(
                        "Cannot delete the only status in use. Create another status first."
                    )
                reassigned = tasks.update(status=fallback, version=F('version') + 1, updated_at=now())
            status.delete()
    except (RestrictedError, IntegrityError):
        # a task picked up this status after the reassignment ran
        raise Conflict(STATUS_CONFLICT_MESSAGE)

    logger.info("Status %s deleted by user %s, %d task(s) reassigned", status_id, user.pk, reassigned)


# Tasks

def get_status_for(status_id, user):
    status = Status.objects.filter(pk=status_id).first()
    if status is None:
        raise NotFound("Status not found.")
    if not has_status_access(status, user.pk):
        raise PermissionDenied("You do not have access to this status.")
    return status


def _check_status_scope(status, team_id):
    if status.team_id != team_id:
        raise BadRequest("Status does not belong to the task's team or personal scope.")


def _validate_assignee(assignee_id, is_personal, team_id, creator_id):
    if assignee_id is None:
        return
    if is_personal:
        valid = assignee_id == creator_id
    else:
        valid = User.objects.filter(pk=assignee_id).exists() and is_team_member(team_id, assignee_id)
    if not valid:
        raise BadRequest("Invalid user assignment.")


def create_task(user, title, status_id, is_personal=True, team_id=None,
                description='', due_date=None, assigned_to_id=None):
    status = get_status_for(status_id, user)

    if is_personal:
        if team_id is not None:
            raise BadRequest("Personal tasks cannot belong to a team.")
    else:
        if team_id is None:
            raise BadRequest("Team tasks require a team_id.")
        if not Team.objects.filter(pk=team_id).exists():
            raise NotFound("Team not found.")
        if not has_team_access(team_id, user.pk):
            raise PermissionDenied("You do not have access to this team.")

    _check_status_scope(status, team_id)
    _validate_assignee(assigned_to_id, is_personal, team_id, user.pk)

    task = Task.objects.create(
        title=title,
        description=description,
        due_date=due_date,
        is_personal=is_personal,
        team_id=team_id,
        status=status,
        assigned_to_id=assigned_to_id,
        created_by=user,
    )
    logger.info("Task %s created by user %s", task.pk, user.pk)
    return task


def update_task(task, user, version=None, **changes):
    if not can_edit_task(task, user.pk):
        raise PermissionDenied("You do not have permission to edit this task.")

    if 'is_personal' in changes and changes.pop('is_personal') != task.is_personal:
        raise BadRequest("is_personal cannot be changed after creation.")
    if 'team_id' in changes and changes.pop('team_id') != task.team_id:
        raise BadRequest("A task cannot be moved to another team.")

    if 'status_id' in changes:
        if changes['status_id'] is None:
            raise BadRequest("status_id cannot be null.")
        if changes['status_id'] != task.status_id:
            _check_status_scope(get_status_for(changes['status_id'], user), task.team_id)
        else:
            changes.pop('status_id')

    if 'assigned_to_id' in changes:
        if changes['assigned_to_id'] != task.assigned_to_id:
            _validate_assignee(changes['assigned_to_id'], task.is_personal, task.team_id, task.created_by_id)
        else:
            changes.pop('assigned_to_id')

    return _versioned_update(task, version, TASK_CONFLICT_MESSAGE, updated_at=now(), **changes)


def delete_task(task_id, user):
    task = Task.objects.filter(pk=task_id).first()
    if task is None:
        return
    if not has_task_access(task, user.pk):
        raise PermissionDenied("You do not have permission to delete this task.")
    task.delete()
    logger.info("Task %s deleted by user %s", task_id, user.pk)
