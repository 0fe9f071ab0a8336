from datetime import timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils.timezone import now
from rest_framework import status
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import AccessToken

from accounts.models import hash_reset_token

User = get_user_model()


class CustomUserModelTest(TestCase):
    def test_create_user_hashes_password(self):
        user = User.objects.create_user(email='test@example.com', username='tester', password='testpass123')
        self.assertEqual(user.email, 'test@example.com')
        self.assertNotEqual(user.password, 'testpass123')
        self.assertTrue(user.check_password('testpass123'))
        self.assertIsNone(user.reset_password_token)

    def test_email_uniqueness(self):
        User.objects.create_user(email='test@example.com', username='one', password='testpass123')
        with self.assertRaises(Exception):
            User.objects.create_user(email='test@example.com', username='two', password='testpass123')

    def test_get_by_identifier_matches_email_or_username(self):
        user = User.objects.create_user(email='alice@example.com', username='alice', password='testpass123')
        self.assertEqual(User.objects.get_by_identifier('alice'), user)
        self.assertEqual(User.objects.get_by_identifier('ALICE@example.com'), user)
        self.assertIsNone(User.objects.get_by_identifier('bob'))

    def test_reset_token_is_stored_hashed(self):
        user = User.objects.create_user(email='a@example.com', username='a-user', password='testpass123')
        user.set_reset_token('raw-token', now() + timedelta(hours=1))
        self.assertEqual(user.reset_password_token, hash_reset_token('raw-token'))
        self.assertFalse(user.reset_token_expired())

        user.clear_reset_token()
        self.assertTrue(user.reset_token_expired())


class UserRegistrationViewTest(APITestCase):
    def setUp(self):
        self.url = reverse('user-register')
        self.payload = {
            'email': 'new@example.com',
            'username': 'new_user',
            'password': 'strongpass1',
            'confirm_password': 'strongpass1',
        }

    def test_registration_success(self):
        response = self.client.post(self.url, self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['username'], 'new_user')
        self.assertNotIn('password', response.data)
        self.assertTrue(User.objects.get(email='new@example.com').check_password('strongpass1'))

    def test_password_mismatch(self):
        self.payload['confirm_password'] = 'different1'
        response = self.client.post(self.url, self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'VALIDATION_ERROR')
        self.assertIn('confirm_password', response.data['errors'])

    def test_invalid_username(self):
        self.payload['username'] = 'bad name!'
        response = self.client.post(self.url, self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_duplicate_email_conflict(self):
        User.objects.create_user(email='new@example.com', username='someone', password='testpass123')
        response = self.client.post(self.url, self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error_code'], 'CONFLICT')

    def test_duplicate_username_conflict(self):
        User.objects.create_user(email='other@example.com', username='new_user', password='testpass123')
        response = self.client.post(self.url, self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)


class UserLoginViewTest(APITestCase):
    def setUp(self):
        self.url = reverse('user-login')
        self.user = User.objects.create_user(email='login@example.com', username='login_user', password='testpass123')

    def test_login_with_email(self):
        response = self.client.post(self.url, {'identifier': 'login@example.com', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['id'], str(self.user.id))

        token = AccessToken(response.data['access_token'])
        self.assertEqual(token['user_id'], str(self.user.id))
        self.assertEqual(token['username'], 'login_user')

    def test_login_with_username(self):
        response = self.client.post(self.url, {'identifier': 'login_user', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access_token', response.data)

    def test_wrong_password(self):
        response = self.client.post(self.url, {'identifier': 'login_user', 'password': 'wrongpass1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error_code'], 'UNAUTHORIZED')

    def test_unknown_identifier(self):
        response = self.client.post(self.url, {'identifier': 'nobody', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_ignores_stale_authorization_header(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer stale.token.value')
        response = self.client.post(self.url, {'identifier': 'login_user', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access_token', response.data)

        response = self.client.post(self.url, {'identifier': 'login_user', 'password': 'wrongpass1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_token_authenticates_requests(self):
        response = self.client.post(self.url, {'identifier': 'login_user', 'password': 'testpass123'}, format='json')
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access_token']}")
        me = self.client.get(reverse('user-me'))
        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data['email'], 'login@example.com')


@override_settings(FRONTEND_BASE_URL='http://frontend.test', EMAIL_BACKEND='django.core.mail.backends.locmem.EmailBackend')
class PasswordResetTest(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(email='reset@example.com', username='reset_user', password='oldpass123')

    def _request_token(self):
        response = self.client.post(reverse('forgot-password'), {'email': 'reset@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)
        body = mail.outbox[0].body
        self.assertIn('http://frontend.test/reset-password?token=', body)
        return body.split('token=')[1].split()[0]

    def test_unknown_email_still_ok(self):
        response = self.client.post(reverse('forgot-password'), {'email': 'ghost@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 0)

    def test_reset_flow(self):
        token = self._request_token()
        self.user.refresh_from_db()
        self.assertEqual(self.user.reset_password_token, hash_reset_token(token))

        response = self.client.post(
            reverse('reset-password'),
            {'token': token, 'new_password': 'newpass123', 'confirm_password': 'newpass123'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('newpass123'))
        self.assertIsNone(self.user.reset_password_token)
        self.assertIsNone(self.user.reset_password_expires)

    def test_token_is_single_use(self):
        token = self._request_token()
        payload = {'token': token, 'new_password': 'newpass123', 'confirm_password': 'newpass123'}
        self.client.post(reverse('reset-password'), payload, format='json')
        response = self.client.post(reverse('reset-password'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'INVALID_RESET_TOKEN')

    def test_expired_token(self):
        token = self._request_token()
        User.objects.filter(pk=self.user.pk).update(reset_password_expires=now() - timedelta(minutes=1))
        response = self.client.post(
            reverse('reset-password'),
            {'token': token, 'new_password': 'newpass123', 'confirm_password': 'newpass123'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'INVALID_RESET_TOKEN')
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('oldpass123'))

    def test_mismatched_confirmation(self):
        token = self._request_token()
        response = self.client.post(
            reverse('reset-password'),
            {'token': token, 'new_password': 'newpass123', 'confirm_password': 'newpass124'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'VALIDATION_ERROR')

    def test_failed_send_keeps_token(self):
        with mock.patch('accounts.services.send_mail', side_effect=OSError('smtp down')):
            response = self.client.post(reverse('forgot-password'), {'email': 'reset@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertIsNotNone(self.user.reset_password_token)


class ChangePasswordTest(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(email='change@example.com', username='changer', password='OldPass1!')
        self.client.force_authenticate(user=self.user)
        self.url = reverse('change-password')

    def test_change_password(self):
        response = self.client.post(
            self.url,
            {'current_password': 'OldPass1!', 'new_password': 'NewPass2@', 'confirm_password': 'NewPass2@'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('NewPass2@'))

    def test_wrong_current_password(self):
        response = self.client.post(
            self.url,
            {'current_password': 'WrongPass1!', 'new_password': 'NewPass2@', 'confirm_password': 'NewPass2@'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_weak_new_password(self):
        response = self.client.post(
            self.url,
            {'current_password': 'OldPass1!', 'new_password': 'alllowercase', 'confirm_password': 'alllowercase'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('new_password', response.data['errors'])

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.post(self.url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class ProfileViewTest(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(email='me@example.com', username='me_user', password='testpass123')
        self.other = User.objects.create_user(email='other@example.com', username='other_user', password='testpass123')
        self.client.force_authenticate(user=self.user)

    def test_update_profile(self):
        response = self.client.put(reverse('user-me'), {'username': 'renamed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'renamed')

    def test_update_profile_conflict(self):
        response = self.client.put(reverse('user-me'), {'email': 'other@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_public_profile(self):
        response = self.client.get(reverse('user-detail', args=[self.other.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'other_user')

    def test_public_profile_not_found(self):
        response = self.client.get(reverse('user-detail', args=['00000000-0000-0000-0000-000000000000']))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error_code'], 'NOT_FOUND')
