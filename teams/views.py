# task_manager/teams/views.py
from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import generics, status
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .models import Team, TeamInvitation, InvitationStatus
from .permissions import has_team_access, is_team_admin, is_team_member
from .serializers import (
    InviteMemberSerializer,
    MemberRoleSerializer,
    TeamDetailSerializer,
    TeamInvitationSerializer,
    TeamMembershipSerializer,
    TeamSerializer,
)


membership_flag_response = openapi.Response(
    description="Membership flag",
    schema=openapi.Schema(type=openapi.TYPE_BOOLEAN),
)


def _annotated_teams():
    return (
        Team.objects.annotate(member_count=Count('memberships', distinct=True))
        .prefetch_related('memberships__user')
    )


class TeamListCreateView(generics.ListCreateAPIView):
    serializer_class = TeamSerializer
    page_size = 10

    def get_queryset(self):
        user = self.request.user
        return (
            _annotated_teams()
            .filter(Q(memberships__user=user) | Q(created_by=user))
            .distinct()
            .order_by('name')
        )

    @swagger_auto_schema(operation_summary="List the teams you belong to")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @swagger_auto_schema(operation_summary="Create a team; you become its admin")
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        team = services.create_team(request.user, **serializer.validated_data)
        team = _annotated_teams().get(pk=team.pk)
        return Response(self.get_serializer(team).data, status=status.HTTP_201_CREATED)


class TeamDetailView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = TeamDetailSerializer
    http_method_names = ['get', 'put', 'delete', 'head', 'options']

    def get_queryset(self):
        return _annotated_teams()

    def get_object(self):
        team = super().get_object()
        if not has_team_access(team.pk, self.request.user.pk):
            raise PermissionDenied("You are not a member of this team.")
        return team

    @swagger_auto_schema(operation_summary="Update a team (admins and the creator)")
    def put(self, request, *args, **kwargs):
        team = get_object_or_404(Team, pk=kwargs['pk'])
        serializer = TeamSerializer(team, data=request.data)
        serializer.is_valid(raise_exception=True)

        services.update_team(team, request.user, **serializer.validated_data)
        team = _annotated_teams().get(pk=team.pk)
        return Response(self.get_serializer(team).data)

    @swagger_auto_schema(operation_summary="Delete a team with all of its tasks, statuses and invitations")
    def delete(self, request, *args, **kwargs):
        services.delete_team(kwargs['pk'], request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class TeamInviteView(APIView):
    @swagger_auto_schema(
        operation_summary="Invite a user to a team by email or username",
        request_body=InviteMemberSerializer,
        responses={
            201: TeamInvitationSerializer(),
            403: "Only team admins can invite",
            404: "Team or user not found",
            409: "Already a member or already invited",
        },
    )
    def post(self, request):
        serializer = InviteMemberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        team = services.get_team(data['team_id'])
        invitation = services.invite_member(team, request.user, data['identifier'])
        return Response(TeamInvitationSerializer(invitation).data, status=status.HTTP_201_CREATED)


class TeamMemberListView(generics.ListAPIView):
    serializer_class = TeamMembershipSerializer

    def get_queryset(self):
        team = services.get_team(self.kwargs['team_id'])
        if not has_team_access(team.pk, self.request.user.pk):
            raise PermissionDenied("You are not a member of this team.")
        return team.memberships.select_related('user').order_by('user__username')

    @swagger_auto_schema(operation_summary="List team members ordered by username")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class TeamMemberDetailView(APIView):
    @swagger_auto_schema(
        operation_summary="Change a member's role",
        request_body=MemberRoleSerializer,
        responses={200: TeamMembershipSerializer(), 400: "Own membership or last admin", 403: "Not an admin"},
    )
    def put(self, request, team_id, user_id):
        team = services.get_team(team_id)
        serializer = MemberRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        membership = services.update_member_role(team, request.user, user_id, serializer.validated_data['role'])
        return Response(TeamMembershipSerializer(membership).data)

    @swagger_auto_schema(
        operation_summary="Remove a member from a team",
        responses={204: "Removed", 400: "Own membership or last admin", 403: "Not an admin"},
    )
    def delete(self, request, team_id, user_id):
        team = services.get_team(team_id)
        services.remove_member(team, request.user, user_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class TeamMemberIsAdminView(APIView):
    @swagger_auto_schema(operation_summary="Is the user an admin of the team?", responses={200: membership_flag_response})
    def get(self, request, team_id, user_id):
        team = services.get_team(team_id)
        return Response(is_team_admin(team.pk, user_id))


class TeamMemberIsMemberView(APIView):
    @swagger_auto_schema(operation_summary="Is the user a member of the team?", responses={200: membership_flag_response})
    def get(self, request, team_id, user_id):
        team = services.get_team(team_id)
        return Response(is_team_member(team.pk, user_id))


class MyInvitationListView(generics.ListAPIView):
    serializer_class = TeamInvitationSerializer
    page_size = 10

    def get_queryset(self):
        return (
            TeamInvitation.objects.filter(invitee=self.request.user, status=InvitationStatus.PENDING)
            .select_related('team', 'invited_by', 'invitee')
            .order_by('-created_at')
        )

    @swagger_auto_schema(operation_summary="List your pending invitations, newest first")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class AcceptInvitationView(APIView):
    @swagger_auto_schema(
        operation_summary="Accept an invitation",
        responses={200: TeamInvitationSerializer(), 400: "Not pending", 404: "Not found", 409: "Already a member"},
    )
    def post(self, request, pk):
        invitation = services.accept_invitation(pk, request.user)
        return Response(TeamInvitationSerializer(invitation).data)


class DeclineInvitationView(APIView):
    @swagger_auto_schema(
        operation_summary="Decline an invitation",
        responses={200: TeamInvitationSerializer(), 400: "Not pending", 404: "Not found"},
    )
    def post(self, request, pk):
        invitation = services.decline_invitation(pk, request.user)
        return Response(TeamInvitationSerializer(invitation).data)
