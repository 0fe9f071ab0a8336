from django.db import DatabaseError
from django.http import Http404
from django.test import SimpleTestCase
from django.urls import reverse
from rest_framework import exceptions
from rest_framework.request import Request
from rest_framework.test import APIRequestFactory, APITestCase

from common.exceptions import BadRequest, Conflict, InvalidResetToken, api_exception_handler
from common.pagination import HeaderPageNumberPagination


class ExceptionHandlerTest(SimpleTestCase):
    def handle(self, exc):
        return api_exception_handler(exc, {'view': None})

    def test_validation_error_keeps_field_errors(self):
        response = self.handle(exceptions.ValidationError({'name': ['This field is required.']}))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error_code'], 'VALIDATION_ERROR')
        self.assertEqual(response.data['message'], 'Validation failed')
        self.assertIn('name', response.data['errors'])

    def test_business_errors(self):
        cases = [
            (BadRequest("Nope."), 400, 'BAD_REQUEST'),
            (InvalidResetToken(), 400, 'INVALID_RESET_TOKEN'),
            (exceptions.NotAuthenticated(), 401, 'UNAUTHORIZED'),
            (exceptions.PermissionDenied(), 403, 'FORBIDDEN'),
            (Http404(), 404, 'NOT_FOUND'),
            (Conflict("Taken."), 409, 'CONFLICT'),
        ]
        for exc, status_code, error_code in cases:
            with self.subTest(exc=exc):
                response = self.handle(exc)
                self.assertEqual(response.status_code, status_code)
                self.assertEqual(response.data['status_code'], status_code)
                self.assertEqual(response.data['error_code'], error_code)
                self.assertIsNone(response.data['errors'])

    def test_message_is_carried(self):
        response = self.handle(Conflict("Username already taken."))
        self.assertEqual(response.data['message'], 'Username already taken.')

    def test_unexpected_errors_are_generic(self):
        with self.assertLogs('common.exceptions', level='ERROR'):
            response = self.handle(DatabaseError('disk full'))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data['error_code'], 'DATABASE_ERROR')
        self.assertNotIn('disk full', response.data['message'])

        with self.assertLogs('common.exceptions', level='ERROR'):
            response = self.handle(RuntimeError('boom'))
        self.assertEqual(response.data['error_code'], 'INTERNAL_ERROR')


class AuthEnvelopeTest(APITestCase):
    def test_missing_token(self):
        response = self.client.get(reverse('task-list-create'))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['error_code'], 'UNAUTHORIZED')

    def test_bad_token(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer not-a-jwt')
        response = self.client.get(reverse('task-list-create'))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['error_code'], 'UNAUTHORIZED')
        self.assertIsInstance(response.data['message'], str)


class PaginationTest(SimpleTestCase):
    factory = APIRequestFactory()

    def paginate(self, items, query='', view=None):
        paginator = HeaderPageNumberPagination()
        request = Request(self.factory.get('/items/' + query))
        page = paginator.paginate_queryset(items, request, view)
        return paginator, page

    def test_defaults(self):
        paginator, page = self.paginate(list(range(45)))
        self.assertEqual(page, list(range(20)))
        response = paginator.get_paginated_response(page)
        self.assertEqual(response['X-Total-Count'], '45')
        self.assertEqual(response['X-Page'], '1')
        self.assertEqual(response['X-Page-Size'], '20')

    def test_explicit_page(self):
        _, page = self.paginate(list(range(45)), '?page=3&pageSize=20')
        self.assertEqual(page, list(range(40, 45)))

    def test_past_the_end_is_empty(self):
        _, page = self.paginate(list(range(5)), '?page=4&pageSize=2')
        self.assertEqual(page, [])

    def test_invalid_values_fall_back(self):
        paginator, page = self.paginate(list(range(5)), '?page=-1&pageSize=abc')
        self.assertEqual(paginator.page, 1)
        self.assertEqual(paginator.page_size_value, 20)

    def test_page_size_is_capped(self):
        paginator, _ = self.paginate(list(range(5)), '?pageSize=1000')
        self.assertEqual(paginator.page_size_value, 100)

    def test_view_default_page_size(self):
        class View:
            page_size = 10

        paginator, page = self.paginate(list(range(15)), view=View())
        self.assertEqual(len(page), 10)
        self.assertEqual(paginator.page_size_value, 10)
