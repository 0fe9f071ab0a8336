# task_manager/teams/urls.py
from django.urls import path

from .views import (
    AcceptInvitationView,
    DeclineInvitationView,
    MyInvitationListView,
    TeamDetailView,
    TeamInviteView,
    TeamListCreateView,
    TeamMemberDetailView,
    TeamMemberIsAdminView,
    TeamMemberIsMemberView,
    TeamMemberListView,
)

urlpatterns = [
    # Teams
    path('', TeamListCreateView.as_view(), name='team-list-create'),
    path('invite/', TeamInviteView.as_view(), name='team-invite'),
    path('<uuid:pk>/', TeamDetailView.as_view(), name='team-detail'),

    # Memberships
    path('<uuid:team_id>/members/', TeamMemberListView.as_view(), name='team-member-list'),
    path('<uuid:team_id>/members/<uuid:user_id>/', TeamMemberDetailView.as_view(), name='team-member-detail'),
    path('<uuid:team_id>/members/<uuid:user_id>/is-admin/', TeamMemberIsAdminView.as_view(), name='team-member-is-admin'),
    path('<uuid:team_id>/members/<uuid:user_id>/is-member/', TeamMemberIsMemberView.as_view(), name='team-member-is-member'),
]

invitation_urlpatterns = [
    path('mine/', MyInvitationListView.as_view(), name='invitation-mine'),
    path('<uuid:pk>/accept/', AcceptInvitationView.as_view(), name='invitation-accept'),
    path('<uuid:pk>/decline/', DeclineInvitationView.as_view(), name='invitation-decline'),
]
