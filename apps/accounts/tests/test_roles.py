"""
Tests for effective role resolution.
"""
import pytest
from unittest.mock import patch
from django.db import OperationalError

from apps.accounts.roles import RoleResolver
from apps.core.exceptions import TransientStoreError
from apps.core.permissions import Role
from apps.projects.models import Team


class TestRoleFromFlags:

    @pytest.mark.parametrize('is_leader,is_member,expected', [
        (False, False, Role.USER),
        (True, False, Role.TEAM_LEADER),
        (False, True, Role.TEAM_MEMBER),
        (True, True, Role.TEAM_LEADER_AND_MEMBER),
    ])
    def test_truth_table(self, is_leader, is_member, expected):
        assert RoleResolver.role_from_flags(is_leader, is_member) == expected


@pytest.mark.django_db
class TestResolveRole:

    def test_stored_classes_are_returned_without_lookup(self):
        with patch('apps.projects.models.Team.objects') as teams:
            assert RoleResolver.resolve_role('User-00001', 'Admin') == Role.ADMIN
            assert RoleResolver.resolve_role('User-00002', 'ProjectManager') == Role.PROJECT_MANAGER

        teams.filter.assert_not_called()

    def test_user_without_teams(self):
        assert RoleResolver.resolve_role('User-00010', 'User') == Role.USER

    def test_leader_of_one_member_of_another(self):
        Team.objects.create(id='Team-00001', name='A', team_leader=['User-00010'], created_by='User-00002')
        Team.objects.create(id='Team-00002', name='B', team_leader=['User-00011'], members=['User-00010'],
                            created_by='User-00002')

        assert RoleResolver.resolve_role('User-00010', 'User') == Role.TEAM_LEADER_AND_MEMBER
        assert RoleResolver.resolve_role('User-00011', 'User') == Role.TEAM_LEADER

    def test_similar_ids_do_not_leak_roles(self):
        Team.objects.create(id='Team-00001', name='A', team_leader=['User-00100'], created_by='User-00002')

        assert RoleResolver.resolve_role('User-0010', 'User') == Role.USER

    def test_store_failure_raises_transient_error(self):
        with patch('apps.projects.models.Team.objects.filter', side_effect=OperationalError('timeout')):
            with pytest.raises(TransientStoreError):
                RoleResolver.resolve_role('User-00010', 'User')

    def test_participation(self):
        Team.objects.create(id='Team-00001', name='A', team_leader=['User-00010'], created_by='User-00002')
        Team.objects.create(id='Team-00002', name='B', team_leader=['User-00011'], members=['User-00010'],
                            created_by='User-00002')
        Team.objects.create(id='Team-00003', name='C', team_leader=['User-00011'], created_by='User-00002')

        participation = RoleResolver.participation('User-00010')

        assert participation.leading == ['Team-00001']
        assert participation.member_of == ['Team-00002']
        assert participation.to_dict() == {'leading': ['Team-00001'], 'memberOf': ['Team-00002']}
