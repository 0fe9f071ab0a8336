# task_manager/teams/serializers.py
from rest_framework import serializers

from .models import Role, Team, TeamInvitation, TeamMembership


class TeamMembershipSerializer(serializers.ModelSerializer):
    user_id = serializers.UUIDField(source='user.id', read_only=True)
    username = serializers.CharField(source='user.username', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = TeamMembership
        fields = ['user_id', 'username', 'email', 'role', 'joined_at']
        read_only_fields = fields


class MemberRoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=Role.choices)


class TeamSerializer(serializers.ModelSerializer):
    name = serializers.CharField(min_length=2, max_length=100)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)
    created_by = serializers.UUIDField(source='created_by_id', read_only=True)
    member_count = serializers.IntegerField(read_only=True)
    is_admin = serializers.SerializerMethodField()

    class Meta:
        model = Team
        fields = ['id', 'name', 'description', 'created_by', 'created_at', 'member_count', 'is_admin']
        read_only_fields = ['id', 'created_at']

    def get_is_admin(self, obj):
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            return any(
                m.user_id == request.user.pk and m.role == Role.ADMIN
                for m in obj.memberships.all()
            )
        return False


class TeamDetailSerializer(TeamSerializer):
    members = TeamMembershipSerializer(source='memberships', many=True, read_only=True)

    class Meta(TeamSerializer.Meta):
        fields = TeamSerializer.Meta.fields + ['members']


class InviteMemberSerializer(serializers.Serializer):
    team_id = serializers.UUIDField()
    identifier = serializers.CharField(max_length=254, help_text="Email or username of the person to invite")


class TeamInvitationSerializer(serializers.ModelSerializer):
    team_id = serializers.UUIDField(source='team.id', read_only=True)
    team_name = serializers.CharField(source='team.name', read_only=True)
    invited_by = serializers.CharField(source='invited_by.username', read_only=True)
    invitee = serializers.CharField(source='invitee.username', read_only=True)

    class Meta:
        model = TeamInvitation
        fields = [
            'id', 'team_id', 'team_name', 'invited_by', 'invitee',
            'status', 'created_at', 'responded_at',
        ]
        read_only_fields = fields
