from datetime import timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import RestrictedError
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from common.exceptions import BadRequest, Conflict
from tasks import services
from tasks.models import Status, Task
from tasks.permissions import can_edit_task, can_view_task, has_status_access, has_task_access
from teams.models import Role, TeamMembership
from teams.services import create_team

User = get_user_model()


def make_user(name):
    return User.objects.create_user(email=f'{name}@example.com', username=name, password='testpass123')


class StatusModelTest(TestCase):
    def setUp(self):
        self.alice = make_user('alice')
        self.bob = make_user('bob')
        self.team = create_team(self.alice, 'Eng')

    def test_personal_names_are_scoped_to_creator(self):
        Status.objects.create(name='Todo', created_by=self.alice)
        other = Status.objects.create(name='Todo', created_by=self.bob)
        self.assertTrue(other.is_personal)

    def test_team_and_personal_names_do_not_clash(self):
        Status.objects.create(name='Todo', created_by=self.alice)
        team_status = Status.objects.create(name='Todo', team=self.team, created_by=self.alice)
        self.assertFalse(team_status.is_personal)

    def test_duplicate_personal_name_rejected(self):
        services.create_status(self.alice, 'Todo')
        with self.assertRaises(Conflict):
            services.create_status(self.alice, 'Todo')

    def test_duplicate_team_name_rejected(self):
        services.create_status(self.alice, 'Todo', self.team.pk)
        TeamMembership.objects.create(team=self.team, user=self.bob)
        with self.assertRaises(Conflict):
            services.create_status(self.bob, 'Todo', self.team.pk)

    def test_new_rows_start_at_version_one(self):
        personal = Status.objects.create(name='Todo', created_by=self.alice)
        task = Task.objects.create(title='Write docs', status=personal, created_by=self.alice)
        self.assertEqual(personal.version, 1)
        self.assertEqual(task.version, 1)


class AccessPredicateTest(TestCase):
    def setUp(self):
        self.admin = make_user('admin')
        self.member = make_user('member')
        self.outsider = make_user('outsider')
        self.team = create_team(self.admin, 'Eng')
        TeamMembership.objects.create(team=self.team, user=self.member, role=Role.MEMBER)
        self.team_status = Status.objects.create(name='Todo', team=self.team, created_by=self.admin)
        self.personal_status = Status.objects.create(name='Todo', created_by=self.member)

    def test_status_access(self):
        self.assertTrue(has_status_access(self.team_status, self.member.pk))
        self.assertFalse(has_status_access(self.team_status, self.outsider.pk))
        self.assertTrue(has_status_access(self.personal_status, self.member.pk))
        self.assertFalse(has_status_access(self.personal_status, self.admin.pk))

    def test_team_task_access(self):
        by_member = Task.objects.create(
            title='Member task', is_personal=False, team=self.team, status=self.team_status, created_by=self.member
        )
        by_admin = Task.objects.create(
            title='Admin task', is_personal=False, team=self.team, status=self.team_status,
            created_by=self.admin, assigned_to=self.member,
        )
        self.assertTrue(has_task_access(by_member, self.member.pk))
        self.assertTrue(has_task_access(by_member, self.admin.pk))
        self.assertFalse(has_task_access(by_admin, self.member.pk))
        self.assertFalse(has_task_access(by_member, self.outsider.pk))

        # the assignee can read and edit but not delete
        self.assertTrue(can_view_task(by_admin, self.member.pk))
        self.assertTrue(can_edit_task(by_admin, self.member.pk))

    def test_member_losing_membership_loses_access(self):
        task = Task.objects.create(
            title='Member task', is_personal=False, team=self.team, status=self.team_status, created_by=self.member
        )
        TeamMembership.objects.filter(team=self.team, user=self.member).delete()
        self.assertFalse(has_task_access(task, self.member.pk))

    def test_personal_task_access(self):
        task = Task.objects.create(title='Mine', status=self.personal_status, created_by=self.member)
        self.assertTrue(has_task_access(task, self.member.pk))
        self.assertFalse(has_task_access(task, self.admin.pk))


class StatusDeletionTest(TestCase):
    def setUp(self):
        self.alice = make_user('alice')
        self.team = create_team(self.alice, 'Eng')

    def make_tasks(self, status_obj, count):
        return [
            Task.objects.create(
                title=f'Task {i}', is_personal=status_obj.is_personal, team=status_obj.team,
                status=status_obj, created_by=self.alice,
            )
            for i in range(count)
        ]

    def test_delete_unused_status(self):
        doomed = Status.objects.create(name='Doing', created_by=self.alice)
        services.delete_status(doomed.pk, self.alice)
        self.assertFalse(Status.objects.filter(pk=doomed.pk).exists())

    def test_reassigns_to_named_fallback(self):
        Status.objects.create(name='Archive', team=self.team, created_by=self.alice)
        backlog = Status.objects.create(name='Backlog', team=self.team, created_by=self.alice)
        doing = Status.objects.create(name='Doing', team=self.team, created_by=self.alice)
        tasks = self.make_tasks(doing, 3)

        services.delete_status(doing.pk, self.alice)

        self.assertFalse(Status.objects.filter(pk=doing.pk).exists())
        for task in tasks:
            task.refresh_from_db()
            self.assertEqual(task.status, backlog)
            self.assertEqual(task.version, 2)

    def test_named_fallbacks_in_priority_order(self):
        Status.objects.create(name='Open', team=self.team, created_by=self.alice)
        todo = Status.objects.create(name='Todo', team=self.team, created_by=self.alice)
        Status.objects.create(name='Backlog', team=self.team, created_by=self.alice)
        doing = Status.objects.create(name='Doing', team=self.team, created_by=self.alice)
        self.assertEqual(services.find_fallback_status(doing), todo)

    def test_falls_back_to_oldest(self):
        older = Status.objects.create(name='Alpha', created_by=self.alice)
        newer = Status.objects.create(name='Beta', created_by=self.alice)
        Status.objects.filter(pk=older.pk).update(created_at=timezone.now() - timedelta(days=1))
        doing = Status.objects.create(name='Doing', created_by=self.alice)
        self.make_tasks(doing, 2)

        services.delete_status(doing.pk, self.alice)
        self.assertEqual(Task.objects.filter(status=older).count(), 2)
        self.assertEqual(Task.objects.filter(status=newer).count(), 0)

    def test_fallback_stays_in_scope(self):
        # a team "Todo" is not a fallback for a personal status
        Status.objects.create(name='Todo', team=self.team, created_by=self.alice)
        personal = Status.objects.create(name='Doing', created_by=self.alice)
        self.make_tasks(personal, 1)

        with self.assertRaises(BadRequest):
            services.delete_status(personal.pk, self.alice)

    def test_no_fallback_changes_nothing(self):
        only = Status.objects.create(name='Todo', created_by=self.alice)
        tasks = self.make_tasks(only, 2)

        with self.assertRaises(BadRequest):
            services.delete_status(only.pk, self.alice)

        self.assertTrue(Status.objects.filter(pk=only.pk).exists())
        for task in tasks:
            task.refresh_from_db()
            self.assertEqual(task.status, only)
            self.assertEqual(task.version, 1)

    def test_status_in_use_cannot_be_deleted_directly(self):
        doing = Status.objects.create(name='Doing', created_by=self.alice)
        self.make_tasks(doing, 1)
        with self.assertRaises(RestrictedError), transaction.atomic():
            doing.delete()

    def test_task_added_during_delete_is_a_conflict(self):
        Status.objects.create(name='Todo', created_by=self.alice)
        doing = Status.objects.create(name='Doing', created_by=self.alice)
        late = self.make_tasks(doing, 1)[0]

        # the task shows up after the in-use check has already run
        with mock.patch.object(Task.objects, 'select_for_update', return_value=Task.objects.none()):
            with self.assertRaises(Conflict):
                services.delete_status(doing.pk, self.alice)

        self.assertTrue(Status.objects.filter(pk=doing.pk).exists())
        late.refresh_from_db()
        self.assertEqual(late.status, doing)


class StatusViewTest(APITestCase):
    def setUp(self):
        self.alice = make_user('alice')
        self.bob = make_user('bob')
        self.team = create_team(self.alice, 'Eng')
        self.client.force_authenticate(user=self.alice)

    def test_create_and_list_personal(self):
        for name in ('Todo', 'Done', 'Doing'):
            response = self.client.post(reverse('status-list-create'), {'name': name}, format='json')
            self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.get(reverse('status-list-create'))
        self.assertEqual([s['name'] for s in response.data], ['Doing', 'Done', 'Todo'])
        self.assertTrue(all(s['is_personal'] for s in response.data))

    def test_list_team_statuses(self):
        self.client.post(reverse('status-list-create'), {'name': 'Todo', 'team_id': str(self.team.pk)}, format='json')
        self.client.post(reverse('status-list-create'), {'name': 'Mine'}, format='json')
        response = self.client.get(reverse('status-list-create'), {'team_id': str(self.team.pk)})
        self.assertEqual([s['name'] for s in response.data], ['Todo'])

        self.client.force_authenticate(user=self.bob)
        response = self.client.get(reverse('status-list-create'), {'team_id': str(self.team.pk)})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_invalid_team_id(self):
        response = self.client.get(reverse('status-list-create'), {'team_id': 'not-a-uuid'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_outsider_cannot_create_team_status(self):
        self.client.force_authenticate(user=self.bob)
        response = self.client.post(reverse('status-list-create'), {'name': 'Todo', 'team_id': str(self.team.pk)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_duplicate_on_create_and_update(self):
        self.client.post(reverse('status-list-create'), {'name': 'Todo'}, format='json')
        response = self.client.post(reverse('status-list-create'), {'name': 'Todo'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        doing = self.client.post(reverse('status-list-create'), {'name': 'Doing'}, format='json').data
        response = self.client.put(reverse('status-detail', args=[doing['id']]), {'name': 'Todo'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_rename_bumps_version(self):
        doing = self.client.post(reverse('status-list-create'), {'name': 'Doing'}, format='json').data
        response = self.client.put(reverse('status-detail', args=[doing['id']]), {'name': 'In progress', 'version': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['version'], 2)

        response = self.client.put(reverse('status-detail', args=[doing['id']]), {'name': 'Stale', 'version': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_rename_to_same_name(self):
        doing = self.client.post(reverse('status-list-create'), {'name': 'Doing'}, format='json').data
        response = self.client.put(reverse('status-detail', args=[doing['id']]), {'name': 'Doing'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_other_users_personal_status_is_forbidden(self):
        mine = Status.objects.create(name='Todo', created_by=self.alice)
        self.client.force_authenticate(user=self.bob)
        self.assertEqual(self.client.get(reverse('status-detail', args=[mine.pk])).status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client.delete(reverse('status-detail', args=[mine.pk])).status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_missing_status_is_noop(self):
        response = self.client.delete(reverse('status-detail', args=['00000000-0000-0000-0000-000000000000']))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_delete_only_personal_status_in_use(self):
        todo = self.client.post(reverse('status-list-create'), {'name': 'Todo'}, format='json').data
        task = self.client.post(reverse('task-list-create'), {'title': 'Buy milk', 'status_id': todo['id']}, format='json').data

        response = self.client.delete(reverse('status-detail', args=[todo['id']]))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'BAD_REQUEST')

        response = self.client.get(reverse('task-detail', args=[task['id']]))
        self.assertEqual(response.data['status_id'], todo['id'])


class TaskViewTest(APITestCase):
    def setUp(self):
        self.alice = make_user('alice')
        self.bob = make_user('bob')
        self.outsider = make_user('outsider')
        self.team = create_team(self.alice, 'Eng')
        TeamMembership.objects.create(team=self.team, user=self.bob, role=Role.MEMBER)
        self.personal_status = Status.objects.create(name='Todo', created_by=self.alice)
        self.team_status = Status.objects.create(name='Todo', team=self.team, created_by=self.alice)
        self.client.force_authenticate(user=self.alice)

    def create_task(self, **data):
        return self.client.post(reverse('task-list-create'), data, format='json')

    def team_task(self, **extra):
        data = {
            'title': 'Team task', 'is_personal': False, 'team_id': str(self.team.pk),
            'status_id': str(self.team_status.pk),
        }
        data.update(extra)
        return self.create_task(**data)

    def test_create_personal_task(self):
        due = (timezone.now() + timedelta(days=3)).isoformat()
        response = self.create_task(title='Buy milk', status_id=str(self.personal_status.pk), due_date=due)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['is_personal'])
        self.assertEqual(response.data['status_name'], 'Todo')
        self.assertEqual(response.data['version'], 1)

    def test_due_date_in_past_rejected(self):
        due = (timezone.now() - timedelta(days=1)).isoformat()
        response = self.create_task(title='Too late', status_id=str(self.personal_status.pk), due_date=due)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('due_date', response.data['errors'])

    def test_missing_status(self):
        response = self.create_task(title='Orphan', status_id='00000000-0000-0000-0000-000000000000')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_personal_task_with_team_rejected(self):
        response = self.create_task(title='Mixed', status_id=str(self.personal_status.pk), team_id=str(self.team.pk))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_team_task_needs_team(self):
        response = self.create_task(title='No team', is_personal=False, status_id=str(self.team_status.pk))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_team_task_needs_access(self):
        self.client.force_authenticate(user=self.outsider)
        Status.objects.create(name='Todo', created_by=self.outsider)
        response = self.team_task(status_id=str(Status.objects.get(created_by=self.outsider).pk))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_personal_assignment_must_be_creator(self):
        response = self.create_task(
            title='Delegate', status_id=str(self.personal_status.pk), assigned_to_id=str(self.bob.pk)
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Invalid user assignment.')

        response = self.create_task(
            title='Self', status_id=str(self.personal_status.pk), assigned_to_id=str(self.alice.pk)
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_team_assignment_must_be_member(self):
        response = self.team_task(assigned_to_id=str(self.outsider.pk))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Task.objects.count(), 0)

        response = self.team_task(assigned_to_id=str(self.bob.pk))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_status_must_match_task_scope(self):
        response = self.team_task(status_id=str(self.personal_status.pk))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.create_task(title='Personal', status_id=str(self.team_status.pk))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Task.objects.count(), 0)

    def test_update_rejects_status_from_other_scope(self):
        task = self.team_task().data
        response = self.client.patch(
            reverse('task-detail', args=[task['id']]),
            {'status_id': str(self.personal_status.pk)},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Task.objects.get(pk=task['id']).status, self.team_status)

    def test_list_filters(self):
        self.create_task(title='Personal', status_id=str(self.personal_status.pk))
        self.team_task(title='Team')

        response = self.client.get(reverse('task-list-create'))
        self.assertEqual(response['X-Total-Count'], '2')

        response = self.client.get(reverse('task-list-create'), {'is_personal': 'true'})
        self.assertEqual([t['title'] for t in response.data], ['Personal'])

        response = self.client.get(reverse('task-list-create'), {'team_id': str(self.team.pk)})
        self.assertEqual([t['title'] for t in response.data], ['Team'])

        self.client.force_authenticate(user=self.bob)
        response = self.client.get(reverse('task-list-create'))
        self.assertEqual([t['title'] for t in response.data], ['Team'])

    def test_list_newest_first_and_paginated(self):
        for i in range(3):
            self.create_task(title=f'Task {i}', status_id=str(self.personal_status.pk))
        response = self.client.get(reverse('task-list-create'), {'page': 1, 'pageSize': 2})
        self.assertEqual([t['title'] for t in response.data], ['Task 2', 'Task 1'])
        self.assertEqual(response['X-Total-Count'], '3')
        self.assertEqual(response['X-Page-Size'], '2')

        response = self.client.get(reverse('task-list-create'), {'page': 5, 'pageSize': 2})
        self.assertEqual(response.data, [])

    def test_update_with_version(self):
        task = self.create_task(title='Draft', status_id=str(self.personal_status.pk)).data
        url = reverse('task-detail', args=[task['id']])

        response = self.client.patch(url, {'title': 'Final', 'version': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['title'], 'Final')
        self.assertEqual(response.data['version'], 2)

        response = self.client.patch(url, {'title': 'Stale', 'version': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['message'], services.TASK_CONFLICT_MESSAGE)
        self.assertEqual(Task.objects.get(pk=task['id']).title, 'Final')

    def test_scope_is_immutable(self):
        task = self.create_task(title='Draft', status_id=str(self.personal_status.pk)).data
        url = reverse('task-detail', args=[task['id']])
        response = self.client.patch(url, {'is_personal': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.patch(url, {'team_id': str(self.team.pk)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_revalidates_changed_assignee(self):
        task = self.team_task(assigned_to_id=str(self.bob.pk)).data
        url = reverse('task-detail', args=[task['id']])

        response = self.client.patch(url, {'assigned_to_id': str(self.outsider.pk)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.patch(url, {'assigned_to_id': None}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['assigned_to_id'])

    def test_update_to_missing_status(self):
        task = self.create_task(title='Draft', status_id=str(self.personal_status.pk)).data
        response = self.client.patch(
            reverse('task-detail', args=[task['id']]),
            {'status_id': '00000000-0000-0000-0000-000000000000'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_assignee_can_view_and_edit(self):
        task = self.team_task(assigned_to_id=str(self.bob.pk)).data
        url = reverse('task-detail', args=[task['id']])

        self.client.force_authenticate(user=self.bob)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_200_OK)
        response = self.client.patch(url, {'description': 'On it'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_403_FORBIDDEN)

    def test_outsider_cannot_read(self):
        task = self.team_task().data
        self.client.force_authenticate(user=self.outsider)
        response = self.client.get(reverse('task-detail', args=[task['id']]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete(self):
        task = self.create_task(title='Temp', status_id=str(self.personal_status.pk)).data
        url = reverse('task-detail', args=[task['id']])
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Task.objects.filter(pk=task['id']).exists())
        # already gone
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_204_NO_CONTENT)


class TaskConcurrencyTest(TestCase):
    def setUp(self):
        self.alice = make_user('alice')
        todo = Status.objects.create(name='Todo', created_by=self.alice)
        self.task = Task.objects.create(title='Shared', status=todo, created_by=self.alice)

    def test_lost_update_is_rejected(self):
        first = Task.objects.get(pk=self.task.pk)
        second = Task.objects.get(pk=self.task.pk)

        services.update_task(first, self.alice, title='First writer')
        with self.assertRaises(Conflict):
            services.update_task(second, self.alice, title='Second writer')

        self.task.refresh_from_db()
        self.assertEqual(self.task.title, 'First writer')
        self.assertEqual(self.task.version, 2)
