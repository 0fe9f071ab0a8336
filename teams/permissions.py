# task_manager/teams/permissions.py
from .models import Role, Team, TeamMembership


def has_team_access(team_id, user_id):
    """Any member of the team, whatever the role, or the user who created it."""
    if TeamMembership.objects.filter(team_id=team_id, user_id=user_id).exists():
        return True
    return Team.objects.filter(pk=team_id, created_by_id=user_id).exists()


def is_team_member(team_id, user_id):
    return TeamMembership.objects.filter(team_id=team_id, user_id=user_id).exists()


def is_team_admin(team_id, user_id):
    return TeamMembership.objects.filter(team_id=team_id, user_id=user_id, role=Role.ADMIN).exists()


def can_manage_team(team, user_id):
    return team.created_by_id == user_id or is_team_admin(team.pk, user_id)
