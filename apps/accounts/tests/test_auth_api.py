"""
Tests for the authentication endpoints.
"""
import pytest
from datetime import datetime, timedelta, timezone as dt_timezone
from unittest.mock import patch
import jwt
from django.conf import settings

from apps.accounts.models import User
from apps.accounts.roles import RoleResolver
from apps.accounts.services import AuthService
from apps.core.exceptions import TransientStoreError
from apps.projects.models import Team


PASSWORD = 'Str0ng-Passw0rd!'


@pytest.mark.django_db
class TestRegistration:
    """POST /v1/auth/register"""

    def test_register_creates_user_class_account(self, api_client):
        response = api_client.post('/v1/auth/register', {
            'firstName': 'Amina',
            'lastName': 'Otieno',
            'email': 'Amina@Example.com',
            'password': PASSWORD,
            'contact': '+254700111222',
        }, format='json')

        assert response.status_code == 201
        assert response.data['user']['id'] == 'User-00001'
        assert response.data['user']['accountClass'] == 'User'
        assert response.data['user']['email'] == 'amina@example.com'
        assert 'password' not in response.data['user']

        user = User.objects.get(id='User-00001')
        assert user.check_password(PASSWORD)
        assert user.contact == '+254700111222'

    def test_duplicate_email_conflicts(self, api_client, make_user):
        make_user(email='amina@example.com')

        response = api_client.post('/v1/auth/register', {
            'firstName': 'Amina',
            'lastName': 'Otieno',
            'email': 'AMINA@example.com',
            'password': PASSWORD,
        }, format='json')

        assert response.status_code == 409
        assert response.data['code'] == 'CONFLICT'

    def test_missing_fields_are_rejected(self, api_client):
        response = api_client.post('/v1/auth/register', {'email': 'x@example.com'}, format='json')

        assert response.status_code == 400
        assert response.data['code'] == 'VALIDATION_ERROR'
        assert 'firstName' in response.data['details']

    def test_weak_password_is_rejected(self, api_client):
        response = api_client.post('/v1/auth/register', {
            'firstName': 'Amina',
            'lastName': 'Otieno',
            'email': 'amina@example.com',
            'password': '123',
        }, format='json')

        assert response.status_code == 400
        assert 'password' in response.data['details']

    def test_rate_limited_registration(self):
        """A request already flagged by django-ratelimit gets 429."""
        from apps.accounts.views_auth import RegistrationView
        from rest_framework.test import APIRequestFactory

        request = APIRequestFactory().post('/v1/auth/register', {}, format='json')
        request.limited = True

        response = RegistrationView.as_view()(request)

        assert response.status_code == 429
        assert response['Retry-After'] == '60'


@pytest.mark.django_db
class TestLogin:
    """POST /v1/auth/login"""

    def test_login_returns_token_role_and_cookie(self, api_client, make_user):
        user = make_user(email='amina@example.com')

        response = api_client.post('/v1/auth/login', {
            'email': 'amina@example.com',
            'password': PASSWORD,
        }, format='json')

        assert response.status_code == 200
        assert response.data['success'] is True
        assert response.data['role'] == 'User'
        assert response.data['user']['id'] == user.id
        assert settings.AUTH_COOKIE_NAME in response.cookies
        assert response.cookies[settings.AUTH_COOKIE_NAME].value == response.data['token']

        payload = AuthService.validate_jwt(response.data['token'])
        assert payload['user_id'] == user.id

        user.refresh_from_db()
        assert user.last_login_at is not None

    def test_login_reports_derived_role(self, api_client, make_user):
        user = make_user(email='lead@example.com')
        Team.objects.create(id='Team-00003', name='Core', team_leader=[user.id], created_by='User-00099')

        response = api_client.post('/v1/auth/login', {
            'email': 'lead@example.com',
            'password': PASSWORD,
        }, format='json')

        assert response.data['role'] == 'TeamLeader'

    def test_wrong_password_is_unauthenticated(self, api_client, make_user):
        make_user(email='amina@example.com')

        with patch('apps.accounts.views_auth.SecurityLogger.log_failed_login') as log_failed:
            response = api_client.post('/v1/auth/login', {
                'email': 'amina@example.com',
                'password': 'wrong-password',
            }, format='json')

        assert response.status_code == 401
        assert response.data['message'] == 'Invalid email or password'
        log_failed.assert_called_once()

    def test_unknown_email_gives_same_answer(self, api_client):
        response = api_client.post('/v1/auth/login', {
            'email': 'nobody@example.com',
            'password': PASSWORD,
        }, format='json')

        assert response.status_code == 401
        assert response.data['message'] == 'Invalid email or password'

    def test_inactive_account_cannot_login(self, api_client, make_user):
        make_user(email='gone@example.com', is_active=False)

        response = api_client.post('/v1/auth/login', {
            'email': 'gone@example.com',
            'password': PASSWORD,
        }, format='json')

        assert response.status_code == 401


@pytest.mark.django_db
class TestSession:
    """Token handling, status, profile and logout."""

    def test_status_without_token_is_unauthenticated(self, api_client):
        response = api_client.post('/v1/auth/status', {}, format='json')

        assert response.status_code == 401
        assert response.data['code'] == 'UNAUTHENTICATED'

    def test_status_with_garbage_token(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer not.a.token')

        response = api_client.post('/v1/auth/status', {}, format='json')

        assert response.status_code == 401

    def test_expired_token_is_rejected(self, api_client, make_user):
        user = make_user()
        past = datetime.now(dt_timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {'user_id': user.id, 'email': user.email, 'exp': past, 'iat': past - timedelta(hours=1)},
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM
        )
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = api_client.post('/v1/auth/status', {}, format='json')

        assert response.status_code == 401

    def test_status_reports_participation(self, api_client, make_user, authenticate):
        user = make_user()
        Team.objects.create(id='Team-00003', name='Core', team_leader=[user.id], created_by='User-00099')
        Team.objects.create(id='Team-00004', name='Ops', team_leader=['User-00098'], members=[user.id],
                            created_by='User-00099')
        authenticate(api_client, user)

        response = api_client.post('/v1/auth/status', {}, format='json')

        assert response.status_code == 200
        assert response.data['role'] == 'TeamLeaderAndMember'
        assert response.data['teams'] == {'leading': ['Team-00003'], 'memberOf': ['Team-00004']}

    def test_status_fails_closed_when_teams_cannot_be_read(self, api_client, make_user, authenticate):
        user = make_user()
        authenticate(api_client, user)

        with patch.object(RoleResolver, 'participation',
                          side_effect=TransientStoreError('The data store is temporarily unavailable.')), \
                patch('apps.core.logging.SecurityLogger.log_role_resolution_failed') as log_failure:
            response = api_client.post('/v1/auth/status', {}, format='json')

        assert response.status_code == 401
        assert response.data['code'] == 'UNAUTHENTICATED'
        log_failure.assert_called_once()
        assert log_failure.call_args.kwargs['account_id'] == user.id

    def test_cookie_authenticates(self, api_client, make_user):
        user = make_user()
        api_client.cookies[settings.AUTH_COOKIE_NAME] = AuthService.generate_jwt(user)

        response = api_client.get('/v1/auth/me')

        assert response.status_code == 200
        assert response.data['user']['id'] == user.id

    def test_role_change_applies_to_next_request(self, api_client, make_user, authenticate):
        """Roles are not embedded in the token."""
        user = make_user()
        authenticate(api_client, user)
        assert api_client.post('/v1/auth/status', {}, format='json').data['role'] == 'User'

        Team.objects.create(id='Team-00001', name='New', members=[user.id], team_leader=['User-00098'],
                            created_by='User-00099')

        assert api_client.post('/v1/auth/status', {}, format='json').data['role'] == 'TeamMember'

    def test_deleted_account_token_is_rejected(self, api_client, make_user, authenticate):
        user = make_user()
        authenticate(api_client, user)
        User.objects.filter(id=user.id).delete()

        response = api_client.get('/v1/auth/me')

        assert response.status_code == 401

    def test_logout_clears_cookie(self, api_client):
        response = api_client.post('/v1/auth/logout', {}, format='json')

        assert response.status_code == 200
        assert response.cookies[settings.AUTH_COOKIE_NAME].value == ''


@pytest.mark.django_db
class TestChangePassword:
    """POST /v1/auth/change-password"""

    def test_change_password(self, api_client, make_user, authenticate):
        user = make_user()
        authenticate(api_client, user)

        response = api_client.post('/v1/auth/change-password', {
            'currentPassword': PASSWORD,
            'newPassword': 'An0ther-Str0ng-One',
        }, format='json')

        assert response.status_code == 200
        user.refresh_from_db()
        assert user.check_password('An0ther-Str0ng-One')

    def test_wrong_current_password(self, api_client, make_user, authenticate):
        user = make_user()
        authenticate(api_client, user)

        response = api_client.post('/v1/auth/change-password', {
            'currentPassword': 'not-it',
            'newPassword': 'An0ther-Str0ng-One',
        }, format='json')

        assert response.status_code == 400
        assert response.data['message'] == 'Current password is incorrect'
