"""
Pytest configuration and fixtures.
"""
import pytest
from django.conf import settings
import django
from django.core.management import call_command


def pytest_configure(config):
    """Configure Django settings for tests."""
    settings.DATABASES['default'] = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
    settings.RATELIMIT_ENABLE = False
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
    django.setup()


@pytest.fixture(scope='session')
def django_db_setup(django_db_setup, django_db_blocker):
    """Set up test database with migrations."""
    with django_db_blocker.unblock():
        call_command('migrate', '--run-syncdb', verbosity=0)


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def make_user(db):
    """Factory creating User-class accounts with unique emails."""
    from apps.accounts.models import User

    counter = {'n': 0}

    def _make(first_name='Test', last_name='User', password='Str0ng-Passw0rd!', **extra):
        counter['n'] += 1
        email = extra.pop('email', f"user{counter['n']}@example.com")
        return User.objects.create_user(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            **extra
        )

    return _make


@pytest.fixture
def admin_user(db):
    """Create an Admin account."""
    from apps.accounts.models import User
    return User.objects.create_superuser(
        email='admin@example.com',
        password='Str0ng-Passw0rd!',
        first_name='Ada',
        last_name='Admin'
    )


@pytest.fixture
def project_manager(db):
    """Create a Project Manager account."""
    from apps.accounts.models import User
    return User.objects.create_project_manager(
        email='pm@example.com',
        password='Str0ng-Passw0rd!',
        first_name='Pat',
        last_name='Manager'
    )


@pytest.fixture
def other_manager(db):
    """Create a second Project Manager for ownership tests."""
    from apps.accounts.models import User
    return User.objects.create_project_manager(
        email='pm2@example.com',
        password='Str0ng-Passw0rd!',
        first_name='Quinn',
        last_name='Manager'
    )


@pytest.fixture
def authenticate():
    """Return a function that authenticates an APIClient as the given account."""
    from apps.accounts.services import AuthService

    def _authenticate(client, user):
        token = AuthService.generate_jwt(user)
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        return client

    return _authenticate
