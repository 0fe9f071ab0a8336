# task_manager/tasks/permissions.py
from teams.permissions import has_team_access, is_team_admin, is_team_member


def has_status_access(status, user_id):
    if status.team_id is None:
        return status.created_by_id == user_id
    return has_team_access(status.team_id, user_id)


def has_task_access(task, user_id):
    """
    Personal tasks are reachable by their creator only. Team tasks by any
    team admin, or by a member who created the task.
    """
    if task.is_personal:
        return task.created_by_id == user_id
    if is_team_admin(task.team_id, user_id):
        return True
    return task.created_by_id == user_id and is_team_member(task.team_id, user_id)


def can_view_task(task, user_id):
    return has_task_access(task, user_id) or task.assigned_to_id == user_id


def can_edit_task(task, user_id):
    if has_task_access(task, user_id):
        return True
    return (
        not task.is_personal
        and task.assigned_to_id == user_id
        and is_team_member(task.team_id, user_id)
    )
