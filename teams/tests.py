from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from tasks.models import Status, Task
from teams import services
from teams.models import InvitationStatus, Role, Team, TeamInvitation, TeamMembership
from teams.permissions import has_team_access, is_team_admin

User = get_user_model()


def make_user(name):
    return User.objects.create_user(email=f'{name}@example.com', username=name, password='testpass123')


class TeamModelTest(TestCase):
    def setUp(self):
        self.alice = make_user('alice')
        self.bob = make_user('bob')

    def test_create_team_makes_creator_admin(self):
        team = services.create_team(self.alice, 'Eng', 'Engineering')
        membership = TeamMembership.objects.get(team=team, user=self.alice)
        self.assertEqual(membership.role, Role.ADMIN)
        self.assertEqual(team.created_by, self.alice)

    def test_membership_unique_per_team(self):
        team = services.create_team(self.alice, 'Eng')
        with self.assertRaises(IntegrityError), transaction.atomic():
            TeamMembership.objects.create(team=team, user=self.alice)

    def test_only_one_pending_invitation(self):
        team = services.create_team(self.alice, 'Eng')
        TeamInvitation.objects.create(team=team, invited_by=self.alice, invitee=self.bob)
        with self.assertRaises(IntegrityError), transaction.atomic():
            TeamInvitation.objects.create(team=team, invited_by=self.alice, invitee=self.bob)

    def test_declined_invitation_does_not_block_new_one(self):
        team = services.create_team(self.alice, 'Eng')
        TeamInvitation.objects.create(
            team=team, invited_by=self.alice, invitee=self.bob, status=InvitationStatus.DECLINED
        )
        invitation = services.invite_member(team, self.alice, 'bob')
        self.assertTrue(invitation.is_pending)


class TeamPermissionTest(TestCase):
    def setUp(self):
        self.alice = make_user('alice')
        self.bob = make_user('bob')
        self.carol = make_user('carol')
        self.team = services.create_team(self.alice, 'Eng')
        TeamMembership.objects.create(team=self.team, user=self.bob, role=Role.MEMBER)

    def test_has_team_access(self):
        self.assertTrue(has_team_access(self.team.pk, self.alice.pk))
        self.assertTrue(has_team_access(self.team.pk, self.bob.pk))
        self.assertFalse(has_team_access(self.team.pk, self.carol.pk))

    def test_creator_keeps_access_without_membership(self):
        TeamMembership.objects.filter(team=self.team, user=self.alice).delete()
        self.assertTrue(has_team_access(self.team.pk, self.alice.pk))

    def test_is_team_admin(self):
        self.assertTrue(is_team_admin(self.team.pk, self.alice.pk))
        self.assertFalse(is_team_admin(self.team.pk, self.bob.pk))
        self.assertFalse(is_team_admin(self.team.pk, self.carol.pk))


class TeamViewTest(APITestCase):
    def setUp(self):
        self.alice = make_user('alice')
        self.bob = make_user('bob')
        self.client.force_authenticate(user=self.alice)

    def test_create_and_list_teams(self):
        response = self.client.post(reverse('team-list-create'), {'name': 'Eng', 'description': 'Engineering'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['is_admin'])
        self.assertEqual(response.data['member_count'], 1)

        self.client.post(reverse('team-list-create'), {'name': 'Art'}, format='json')
        response = self.client.get(reverse('team-list-create'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([t['name'] for t in response.data], ['Art', 'Eng'])
        self.assertEqual(response['X-Total-Count'], '2')

    def test_team_name_too_short(self):
        response = self.client.post(reverse('team-list-create'), {'name': 'E'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_team_detail_requires_access(self):
        team = services.create_team(self.alice, 'Eng')
        self.client.force_authenticate(user=self.bob)
        response = self.client.get(reverse('team-detail', args=[team.pk]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error_code'], 'FORBIDDEN')

    def test_team_detail_lists_members(self):
        team = services.create_team(self.alice, 'Eng')
        response = self.client.get(reverse('team-detail', args=[team.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['members'][0]['username'], 'alice')

    def test_missing_team_is_404(self):
        response = self.client.get(reverse('team-detail', args=['00000000-0000-0000-0000-000000000000']))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_update_team_requires_admin(self):
        team = services.create_team(self.alice, 'Eng')
        TeamMembership.objects.create(team=team, user=self.bob)
        self.client.force_authenticate(user=self.bob)
        response = self.client.put(reverse('team-detail', args=[team.pk]), {'name': 'Hacked'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.alice)
        response = self.client.put(reverse('team-detail', args=[team.pk]), {'name': 'Platform'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Platform')

    def test_delete_team_cascades(self):
        team = services.create_team(self.alice, 'Eng')
        TeamInvitation.objects.create(team=team, invited_by=self.alice, invitee=self.bob)
        team_status = Status.objects.create(name='Todo', team=team, created_by=self.alice)
        Task.objects.create(title='Ship it', is_personal=False, team=team, status=team_status, created_by=self.alice)

        response = self.client.delete(reverse('team-detail', args=[team.pk]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Team.objects.filter(pk=team.pk).exists())
        self.assertFalse(TeamMembership.objects.filter(team_id=team.pk).exists())
        self.assertFalse(TeamInvitation.objects.filter(team_id=team.pk).exists())
        self.assertFalse(Status.objects.filter(team_id=team.pk).exists())
        self.assertFalse(Task.objects.filter(team_id=team.pk).exists())

    def test_delete_missing_team_is_noop(self):
        response = self.client.delete(reverse('team-detail', args=['00000000-0000-0000-0000-000000000000']))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_delete_team_requires_admin(self):
        team = services.create_team(self.alice, 'Eng')
        TeamMembership.objects.create(team=team, user=self.bob)
        self.client.force_authenticate(user=self.bob)
        response = self.client.delete(reverse('team-detail', args=[team.pk]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Team.objects.filter(pk=team.pk).exists())


class MembershipViewTest(APITestCase):
    def setUp(self):
        self.alice = make_user('alice')
        self.carol = make_user('carol')
        self.bob = make_user('bob')
        self.team = services.create_team(self.alice, 'Eng')
        TeamMembership.objects.create(team=self.team, user=self.carol, role=Role.ADMIN)
        TeamMembership.objects.create(team=self.team, user=self.bob, role=Role.MEMBER)
        self.client.force_authenticate(user=self.alice)

    def member_url(self, user):
        return reverse('team-member-detail', args=[self.team.pk, user.pk])

    def test_members_ordered_by_username(self):
        response = self.client.get(reverse('team-member-list', args=[self.team.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([m['username'] for m in response.data], ['alice', 'bob', 'carol'])

    def test_admin_removes_other_admin_but_not_self(self):
        response = self.client.delete(self.member_url(self.carol))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(TeamMembership.objects.filter(team=self.team, user=self.carol).exists())

        response = self.client.delete(self.member_url(self.alice))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.put(self.member_url(self.alice), {'role': 'member'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(TeamMembership.objects.get(team=self.team, user=self.alice).role, Role.ADMIN)

    def test_sole_admin_cannot_demote_self(self):
        TeamMembership.objects.filter(team=self.team, user=self.carol).delete()
        response = self.client.put(self.member_url(self.alice), {'role': 'member'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(TeamMembership.objects.filter(team=self.team, role=Role.ADMIN).count(), 1)

    def test_promoted_admin_takes_over(self):
        TeamMembership.objects.filter(team=self.team, user=self.carol).update(role=Role.MEMBER)
        services.update_member_role(self.team, self.alice, self.bob.pk, Role.ADMIN)
        self.client.force_authenticate(user=self.bob)
        response = self.client.delete(self.member_url(self.alice))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

        response = self.client.put(self.member_url(self.carol), {'role': 'admin'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(TeamMembership.objects.filter(team=self.team, role=Role.ADMIN).count(), 2)

    def test_member_cannot_manage(self):
        self.client.force_authenticate(user=self.bob)
        response = self.client.delete(self.member_url(self.carol))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_is_admin_and_is_member(self):
        url = reverse('team-member-is-admin', args=[self.team.pk, self.bob.pk])
        self.assertIs(self.client.get(url).data, False)
        url = reverse('team-member-is-member', args=[self.team.pk, self.bob.pk])
        self.assertIs(self.client.get(url).data, True)

        missing = '00000000-0000-0000-0000-000000000000'
        response = self.client.get(reverse('team-member-is-admin', args=[missing, self.bob.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class InvitationViewTest(APITestCase):
    def setUp(self):
        self.alice = make_user('alice')
        self.bob = make_user('bob')
        self.dave = make_user('dave')
        self.team = services.create_team(self.alice, 'Eng')
        self.client.force_authenticate(user=self.alice)

    def invite(self, identifier, **extra):
        return self.client.post(
            reverse('team-invite'), {'team_id': str(self.team.pk), 'identifier': identifier, **extra}, format='json'
        )

    def test_invite_by_email_or_username(self):
        response = self.invite('bob@example.com')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['invitee'], 'bob')

        response = self.invite('dave')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_invite_unknown_user(self):
        response = self.invite('nobody')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_duplicate_pending_invitation(self):
        self.invite('bob')
        response = self.invite('bob')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(TeamInvitation.objects.filter(team=self.team, invitee=self.bob).count(), 1)

    def test_invite_existing_member(self):
        response = self.invite('alice')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_non_admin_cannot_invite(self):
        TeamMembership.objects.create(team=self.team, user=self.bob)
        self.client.force_authenticate(user=self.bob)
        response = self.invite('dave')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_accept_creates_single_membership(self):
        invitation = services.invite_member(self.team, self.alice, 'bob')
        self.client.force_authenticate(user=self.bob)

        response = self.client.post(reverse('invitation-accept', args=[invitation.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'accepted')
        self.assertIsNotNone(response.data['responded_at'])

        response = self.client.post(reverse('invitation-accept', args=[invitation.pk]))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(TeamMembership.objects.filter(team=self.team, user=self.bob).count(), 1)

    def test_accept_always_grants_member_role(self):
        response = self.invite('bob', role='admin')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('role', response.data)

        services.accept_invitation(response.data['id'], self.bob)
        membership = TeamMembership.objects.get(team=self.team, user=self.bob)
        self.assertEqual(membership.role, Role.MEMBER)
        self.assertFalse(is_team_admin(self.team.pk, self.bob.pk))

    def test_accept_when_already_member(self):
        invitation = services.invite_member(self.team, self.alice, 'bob')
        TeamMembership.objects.create(team=self.team, user=self.bob)
        self.client.force_authenticate(user=self.bob)
        response = self.client.post(reverse('invitation-accept', args=[invitation.pk]))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        invitation.refresh_from_db()
        self.assertEqual(invitation.status, InvitationStatus.PENDING)

    def test_decline_is_terminal(self):
        invitation = services.invite_member(self.team, self.alice, 'bob')
        self.client.force_authenticate(user=self.bob)
        response = self.client.post(reverse('invitation-decline', args=[invitation.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'declined')

        response = self.client.post(reverse('invitation-accept', args=[invitation.pk]))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(TeamMembership.objects.filter(team=self.team, user=self.bob).exists())

    def test_only_invitee_can_respond(self):
        invitation = services.invite_member(self.team, self.alice, 'bob')
        self.client.force_authenticate(user=self.dave)
        response = self.client.post(reverse('invitation-accept', args=[invitation.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_my_invitations_lists_pending_only(self):
        first = services.invite_member(self.team, self.alice, 'bob')
        other_team = services.create_team(self.alice, 'Ops')
        services.invite_member(other_team, self.alice, 'bob')
        services.decline_invitation(first.pk, self.bob)

        self.client.force_authenticate(user=self.bob)
        response = self.client.get(reverse('invitation-mine'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['team_name'], 'Ops')
        self.assertEqual(response['X-Page-Size'], '10')


class TeamWorkflowTest(APITestCase):
    def test_invite_accept_and_assign(self):
        self.client.post(reverse('user-register'), {
            'email': 'a@example.com', 'username': 'user_a', 'password': 'testpass123', 'confirm_password': 'testpass123',
        }, format='json')
        user_b = make_user('user_b')
        user_a = User.objects.get(username='user_a')

        self.client.force_authenticate(user=user_a)
        team_id = self.client.post(reverse('team-list-create'), {'name': 'Eng'}, format='json').data['id']
        invitation_id = self.client.post(
            reverse('team-invite'), {'team_id': team_id, 'identifier': 'user_b@example.com'}, format='json'
        ).data['id']

        self.client.force_authenticate(user=user_b)
        response = self.client.post(reverse('invitation-accept', args=[invitation_id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        members = self.client.get(reverse('team-member-list', args=[team_id])).data
        self.assertIn(('user_b', 'member'), [(m['username'], m['role']) for m in members])

        self.client.force_authenticate(user=user_a)
        status_id = self.client.post(reverse('status-list-create'), {'name': 'Todo', 'team_id': team_id}, format='json').data['id']
        response = self.client.post(reverse('task-list-create'), {
            'title': 'Fix bug', 'is_personal': False, 'team_id': team_id,
            'status_id': status_id, 'assigned_to_id': str(user_b.pk),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        self.client.force_authenticate(user=user_b)
        response = self.client.get(reverse('task-list-create'), {'team_id': team_id})
        self.assertEqual([t['title'] for t in response.data], ['Fix bug'])
        self.assertEqual(response.data[0]['assigned_to_username'], 'user_b')

    def test_admins_manage_each_other(self):
        user_a = make_user('user_a')
        user_c = make_user('user_c')
        team = services.create_team(user_a, 'Eng')
        TeamMembership.objects.create(team=team, user=user_c, role=Role.ADMIN)

        self.client.force_authenticate(user=user_a)
        response = self.client.delete(reverse('team-member-detail', args=[team.pk, user_c.pk]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

        response = self.client.delete(reverse('team-member-detail', args=[team.pk, user_a.pk]))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.put(reverse('team-member-detail', args=[team.pk, user_a.pk]), {'role': 'member'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(is_team_admin(team.pk, user_a.pk))
