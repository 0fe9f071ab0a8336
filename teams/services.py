# task_manager/teams/services.py
import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404
from django.utils.timezone import now
from rest_framework.exceptions import NotFound, PermissionDenied

from common.exceptions import BadRequest, Conflict

from .models import InvitationStatus, Role, Team, TeamInvitation, TeamMembership
from .permissions import can_manage_team, is_team_admin

logger = logging.getLogger(__name__)

User = get_user_model()


def get_team(team_id):
    return get_object_or_404(Team, pk=team_id)


def create_team(user, name, description=''):
    with transaction.atomic():
        team = Team.objects.create(name=name, description=description, created_by=user)
        TeamMembership.objects.create(team=team, user=user, role=Role.ADMIN)
    logger.info("Team %s created by user %s", team.pk, user.pk)
    return team


def update_team(team, user, **changes):
    if not can_manage_team(team, user.pk):
        raise PermissionDenied("Only team admins can update team details.")
    for attr, value in changes.items():
        setattr(team, attr, value)
    team.save()
    return team


def delete_team(team_id, user):
    """Removes the team along with its memberships, invitations, statuses and tasks."""
    team = Team.objects.filter(pk=team_id).first()
    if team is None:
        return
    if not can_manage_team(team, user.pk):
        raise PermissionDenied("Only team admins can delete teams.")
    with transaction.atomic():
        team.delete()
    logger.info("Team %s deleted by user %s", team_id, user.pk)


def invite_member(team, inviter, identifier):
    if not is_team_admin(team.pk, inviter.pk):
        raise PermissionDenied("Only team admins can send invitations.")

    invitee = User.objects.get_by_identifier(identifier.strip())
    if invitee is None:
        raise NotFound("No user matches that email or username.")

    if TeamMembership.objects.filter(team=team, user=invitee).exists():
        raise Conflict("User is already a team member.")
    if TeamInvitation.objects.filter(team=team, invitee=invitee, status=InvitationStatus.PENDING).exists():
        raise Conflict("A pending invitation already exists for this user.")

    try:
        with transaction.atomic():
            invitation = TeamInvitation.objects.create(
                team=team, invited_by=inviter, invitee=invitee
            )
    except IntegrityError:
        raise Conflict("A pending invitation already exists for this user.")

    logger.info("User %s invited %s to team %s", inviter.pk, invitee.pk, team.pk)
    return invitation


def _require_admin_acting_on_other(team, actor, user_id):
    if not is_team_admin(team.pk, actor.pk):
        raise PermissionDenied("Only team admins can manage members.")
    if actor.pk == user_id:
        raise BadRequest("You cannot change your own membership.")


def _admin_count(team):
    admins = TeamMembership.objects.select_for_update().filter(team=team, role=Role.ADMIN)
    return len(admins.values_list('pk', flat=True))


def remove_member(team, actor, user_id):
    _require_admin_acting_on_other(team, actor, user_id)
    with transaction.atomic():
        membership = TeamMembership.objects.filter(team=team, user_id=user_id).first()
        if membership is None:
            raise NotFound("User is not a member of this team.")
        if membership.role == Role.ADMIN and _admin_count(team) <= 1:
            raise BadRequest("Cannot remove the last admin of a team.")
        membership.delete()
    logger.info("User %s removed %s from team %s", actor.pk, user_id, team.pk)


def update_member_role(team, actor, user_id, role):
    _require_admin_acting_on_other(team, actor, user_id)
    with transaction.atomic():
        membership = TeamMembership.objects.filter(team=team, user_id=user_id).select_related('user').first()
        if membership is None:
            raise NotFound("User is not a member of this team.")
        if membership.role == Role.ADMIN and role != Role.ADMIN and _admin_count(team) <= 1:
            raise BadRequest("Cannot demote the last admin of a team.")
        membership.role = role
        membership.save(update_fields=['role'])
    return membership


def get_invitation_for(invitation_id, user):
    # invitations addressed to someone else are reported as missing
    invitation = TeamInvitation.objects.select_related('team', 'invited_by').filter(
        pk=invitation_id, invitee=user
    ).first()
    if invitation is None:
        raise NotFound("Invitation not found.")
    return invitation


def _close_invitation(invitation, new_status):
    closed = TeamInvitation.objects.filter(
        pk=invitation.pk, status=InvitationStatus.PENDING
    ).update(status=new_status, responded_at=now())
    if not closed:
        raise BadRequest("Invitation is no longer pending.")
    invitation.refresh_from_db()


def accept_invitation(invitation_id, user):
    invitation = get_invitation_for(invitation_id, user)
    if not invitation.is_pending:
        raise BadRequest("Invitation is no longer pending.")
    if TeamMembership.objects.filter(team_id=invitation.team_id, user=user).exists():
        raise Conflict("You are already a member of this team.")

    try:
        with transaction.atomic():
            _close_invitation(invitation, InvitationStatus.ACCEPTED)
            TeamMembership.objects.create(team_id=invitation.team_id, user=user, role=Role.MEMBER)
    except IntegrityError:
        raise Conflict("You are already a member of this team.")

    logger.info("User %s accepted invitation %s to team %s", user.pk, invitation.pk, invitation.team_id)
    return invitation


def decline_invitation(invitation_id, user):
    invitation = get_invitation_for(invitation_id, user)
    if not invitation.is_pending:
        raise BadRequest("Invitation is no longer pending.")
    _close_invitation(invitation, InvitationStatus.DECLINED)
    logger.info("User %s declined invitation %s", user.pk, invitation.pk)
    return invitation
