"""
Tests for the account model and its manager.
"""
import pytest

from apps.accounts.models import User


@pytest.mark.django_db
class TestUserManager:

    def test_active_excludes_deactivated_accounts(self, make_user):
        kept = make_user()
        make_user(is_active=False)

        assert list(User.objects.active()) == [kept]

    def test_of_class(self, admin_user, project_manager, make_user):
        make_user()

        assert list(User.objects.of_class(User.PROJECT_MANAGER)) == [project_manager]

    def test_email_is_normalized(self, make_user):
        user = make_user(email='  Mixed.Case@Example.COM ')

        assert user.email == 'mixed.case@example.com'
        assert User.objects.by_email('MIXED.case@example.com') == user


@pytest.mark.django_db
class TestAccountClassFlags:

    def test_flags(self, admin_user, project_manager, make_user):
        user = make_user()

        assert admin_user.is_admin and not admin_user.is_project_manager
        assert project_manager.is_project_manager and not project_manager.is_admin
        assert not user.is_admin and not user.is_project_manager
