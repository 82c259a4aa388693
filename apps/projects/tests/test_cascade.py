"""
Tests for the cascade engine: assignment, unassignment and deletions.
"""
import pytest
from datetime import timedelta
from unittest.mock import patch
from django.db import OperationalError
from django.utils import timezone

from apps.accounts.models import User
from apps.core.exceptions import (
    ConflictError, NotFoundError, PermissionDeniedError, ValidationError,
)
from apps.core.identifiers import IdentifierAllocator
from apps.projects.models import AssignmentLog, Project, Task, Team
from apps.projects.services import CascadeService


def _future(days=7):
    return timezone.now() + timedelta(days=days)


def _team(team_id, owner, leaders=(), members=()):
    return Team.objects.create(
        id=team_id, name=team_id, team_leader=list(leaders), members=list(members), created_by=owner
    )


def _project(project_id, owner, status=Project.UNASSIGNED):
    return Project.objects.create(id=project_id, title=project_id, description='', status=status, created_by=owner)


def _log(log_id, project_id, team_id, owner, task_ids=()):
    return AssignmentLog.objects.create(
        id=log_id, project_id=project_id, team_id=team_id, assigned_by=owner,
        deadline=_future(), task_ids=list(task_ids)
    )


def _task(task_id, project_id, team_id, assigned_to=()):
    return Task.objects.create(
        id=task_id, title=task_id, assigned_to=list(assigned_to), project_id=project_id,
        team_id=team_id, created_by='User-00010'
    )


@pytest.fixture
def scenario(db, project_manager):
    """
    Team-00003 (leader User-00010, member User-00011) holds AP-00007 for
    Project-00005 with tasks Task-00020 and Task-00021.
    """
    pm = project_manager.id
    _team('Team-00003', pm, leaders=['User-00010'], members=['User-00011'])
    _project('Project-00005', pm, status=Project.ASSIGNED)
    _log('AP-00007', 'Project-00005', 'Team-00003', pm, task_ids=['Task-00020', 'Task-00021'])
    _task('Task-00020', 'Project-00005', 'Team-00003', ['User-00011'])
    _task('Task-00021', 'Project-00005', 'Team-00003', ['User-00011'])
    return pm


@pytest.mark.django_db
class TestUnassignProjects:

    def test_unassign_scenario(self, scenario):
        counts = CascadeService.unassign_projects('Team-00003', ['Project-00005'], scenario)

        assert not AssignmentLog.objects.filter(id='AP-00007').exists()
        assert not Task.objects.filter(id__in=['Task-00020', 'Task-00021']).exists()
        assert Project.objects.get(id='Project-00005').status == Project.UNASSIGNED
        assert Team.objects.filter(id='Team-00003').exists()
        assert counts == {'tasks': 2, 'logs': 1, 'projects_reset': 1}

    def test_unassign_is_idempotent(self, scenario):
        CascadeService.unassign_projects('Team-00003', ['Project-00005'], scenario)
        counts = CascadeService.unassign_projects('Team-00003', ['Project-00005'], scenario)

        assert counts == {'tasks': 0, 'logs': 0, 'projects_reset': 0}

    def test_projects_of_other_teams_are_ignored(self, scenario):
        _team('Team-00004', scenario, leaders=['User-00012'])
        _project('Project-00006', scenario, status=Project.ASSIGNED)
        _log('AP-00008', 'Project-00006', 'Team-00004', scenario)

        CascadeService.unassign_projects('Team-00003', ['Project-00006'], scenario)

        assert AssignmentLog.objects.filter(id='AP-00008').exists()
        assert Project.objects.get(id='Project-00006').status == Project.ASSIGNED

    def test_missing_team(self, scenario):
        with pytest.raises(NotFoundError):
            CascadeService.unassign_projects('Team-00099', ['Project-00005'], scenario)

    def test_foreign_team_is_forbidden(self, scenario, other_manager):
        with pytest.raises(PermissionDeniedError):
            CascadeService.unassign_projects('Team-00003', ['Project-00005'], other_manager.id)

        assert AssignmentLog.objects.filter(id='AP-00007').exists()

    def test_stray_task_of_the_project_is_removed(self, scenario):
        """Tasks are matched by project too, not only by the ids on the log."""
        _task('Task-00022', 'Project-00005', 'Team-00003')

        CascadeService.unassign_projects('Team-00003', ['Project-00005'], scenario)

        assert not Task.objects.filter(project_id='Project-00005').exists()


@pytest.mark.django_db
class TestAssignProject:

    def test_assign_creates_log_and_marks_assigned(self, project_manager):
        pm = project_manager.id
        _team('Team-00001', pm, leaders=['User-00010'])
        _project('Project-00001', pm)

        log = CascadeService.assign_project('Project-00001', 'Team-00001', _future(), pm)

        assert log.id == 'AP-00001'
        assert log.task_ids == []
        assert Project.objects.get(id='Project-00001').status == Project.ASSIGNED

    def test_checks_run_in_order(self, project_manager, other_manager):
        pm = project_manager.id
        _team('Team-00001', pm)
        _project('Project-00001', pm)
        _project('Project-00002', other_manager.id)

        with pytest.raises(NotFoundError):
            CascadeService.assign_project('Project-00099', 'Team-00001', _future(), pm)
        with pytest.raises(NotFoundError):
            CascadeService.assign_project('Project-00001', 'Team-00099', _future(), pm)
        with pytest.raises(PermissionDeniedError):
            CascadeService.assign_project('Project-00002', 'Team-00001', _future(), pm)
        with pytest.raises(ValidationError):
            CascadeService.assign_project('Project-00001', 'Team-00001', timezone.now() - timedelta(days=1), pm)

        assert not AssignmentLog.objects.exists()

    def test_second_assignment_conflicts(self, project_manager):
        pm = project_manager.id
        _team('Team-00001', pm)
        _team('Team-00002', pm)
        _project('Project-00001', pm)
        CascadeService.assign_project('Project-00001', 'Team-00001', _future(), pm)

        with pytest.raises(ConflictError):
            CascadeService.assign_project('Project-00001', 'Team-00002', _future(), pm)

        assert AssignmentLog.objects.filter(project_id='Project-00001').count() == 1

    def test_concurrent_duplicate_is_rejected_by_constraint(self, project_manager):
        """A racing request that passed the existence check still gets 409."""
        pm = project_manager.id
        _team('Team-00001', pm)
        _team('Team-00002', pm)
        _project('Project-00001', pm)
        CascadeService.assign_project('Project-00001', 'Team-00001', _future(), pm)

        real_filter = AssignmentLog.objects.filter

        def hide_existing_log(*args, **kwargs):
            if set(kwargs) == {'project_id'}:
                return AssignmentLog.objects.none()
            return real_filter(*args, **kwargs)

        with patch.object(AssignmentLog.objects, 'filter', side_effect=hide_existing_log):
            with pytest.raises(ConflictError):
                CascadeService.assign_project('Project-00001', 'Team-00002', _future(), pm)

        log = AssignmentLog.objects.get(project_id='Project-00001')
        assert log.team_id == 'Team-00001'

    def test_assign_unassign_reassign(self, project_manager):
        pm = project_manager.id
        _team('Team-00001', pm)
        _team('Team-00002', pm)
        _project('Project-00001', pm)

        CascadeService.assign_project('Project-00001', 'Team-00001', _future(), pm)
        CascadeService.unassign_projects('Team-00001', ['Project-00001'], pm)
        CascadeService.assign_project('Project-00001', 'Team-00002', _future(), pm)

        logs = list(AssignmentLog.objects.filter(project_id='Project-00001'))
        assert len(logs) == 1
        assert logs[0].team_id == 'Team-00002'


@pytest.mark.django_db
class TestDeleteTeams:

    def test_no_task_or_log_of_deleted_team_survives(self, scenario):
        counts = CascadeService.delete_teams(['Team-00003'], scenario)

        assert not Team.objects.filter(id='Team-00003').exists()
        assert not AssignmentLog.objects.filter(team_id='Team-00003').exists()
        assert not Task.objects.filter(team_id='Team-00003').exists()
        assert Project.objects.get(id='Project-00005').status == Project.UNASSIGNED
        assert counts['teams'] == 1

    def test_missing_id_deletes_nothing(self, scenario):
        with pytest.raises(NotFoundError) as exc_info:
            CascadeService.delete_teams(['Team-00003', 'Team-00099'], scenario)

        assert exc_info.value.details == {'ids': ['Team-00099']}
        assert Team.objects.filter(id='Team-00003').exists()
        assert Task.objects.count() == 2

    def test_foreign_team_deletes_nothing(self, scenario, other_manager):
        _team('Team-00004', other_manager.id)

        with pytest.raises(PermissionDeniedError):
            CascadeService.delete_teams(['Team-00003', 'Team-00004'], scenario)

        assert Team.objects.count() == 2
        assert AssignmentLog.objects.filter(id='AP-00007').exists()


@pytest.mark.django_db
class TestDeleteProjects:

    def test_delete_assigned_project(self, scenario):
        counts = CascadeService.delete_projects(['Project-00005'], scenario)

        assert not Project.objects.exists()
        assert not AssignmentLog.objects.exists()
        assert not Task.objects.exists()
        assert Team.objects.filter(id='Team-00003').exists()
        assert counts['projects'] == 1

    def test_foreign_project_deletes_nothing(self, scenario, other_manager):
        _project('Project-00009', other_manager.id)

        with pytest.raises(PermissionDeniedError):
            CascadeService.delete_projects(['Project-00005', 'Project-00009'], scenario)

        assert Project.objects.count() == 2


@pytest.mark.django_db
class TestDeleteAccounts:

    def test_project_manager_takes_everything_with_it(self, project_manager, make_user):
        pm = project_manager.id
        leader = make_user()
        _team('Team-00001', pm, leaders=[leader.id])
        _team('Team-00002', pm, leaders=[leader.id])
        _project('Project-00001', pm, status=Project.ASSIGNED)
        _project('Project-00002', pm)
        _project('Project-00003', pm)
        _log('AP-00001', 'Project-00001', 'Team-00001', pm, task_ids=['Task-00001', 'Task-00002'])
        _task('Task-00001', 'Project-00001', 'Team-00001')
        _task('Task-00002', 'Project-00001', 'Team-00001')

        result = CascadeService.delete_accounts([pm], 'User-00001')

        assert result.successful_count == 1
        assert not Team.objects.exists()
        assert not Project.objects.exists()
        assert not AssignmentLog.objects.exists()
        assert not Task.objects.exists()
        assert not User.objects.filter(id=pm).exists()
        assert User.objects.filter(id=leader.id).exists()

    def test_other_managers_records_survive(self, project_manager, other_manager):
        _team('Team-00001', project_manager.id)
        _team('Team-00002', other_manager.id)

        CascadeService.delete_accounts([project_manager.id], 'User-00001')

        assert list(Team.objects.values_list('id', flat=True)) == ['Team-00002']

    def test_participant_is_stripped_from_arrays(self, scenario):
        User.objects.create(id='User-00011', email='m@example.com', first_name='M', last_name='M')

        result = CascadeService.delete_accounts(['User-00011'], 'User-00001')

        assert result.successful_count == 1
        assert Team.objects.get(id='Team-00003').members == []
        assert all(task.assigned_to == [] for task in Task.objects.all())

    def test_one_valid_one_missing(self, make_user):
        user = make_user()

        result = CascadeService.delete_accounts([user.id, 'User-09999'], 'User-00001')

        assert (result.successful_count, result.failed_count) == (1, 1)
        assert not User.objects.filter(id=user.id).exists()

    def test_admin_cannot_be_deleted(self, admin_user):
        result = CascadeService.delete_accounts([admin_user.id], admin_user.id)

        assert result.failed_count == 1
        assert result.results[0].message == 'Admin accounts cannot be deleted'
        assert User.objects.filter(id=admin_user.id).exists()

    def test_store_failure_on_one_id_does_not_stop_others(self, make_user):
        first, second = make_user(), make_user()
        real_delete_account = CascadeService._delete_account.__func__

        def flaky(cls, account_id, deleted_by):
            if account_id == first.id:
                from apps.core.store import store_errors
                with store_errors('delete_account'):
                    raise OperationalError('connection reset')
            return real_delete_account(cls, account_id, deleted_by)

        with patch.object(CascadeService, '_delete_account', classmethod(flaky)):
            result = CascadeService.delete_accounts([first.id, second.id], 'User-00001')

        assert result.failed_count == 1
        assert result.successful_count == 1
        assert User.objects.filter(id=first.id).exists()
        assert not User.objects.filter(id=second.id).exists()

    def test_duplicate_ids_are_processed_once(self, make_user):
        user = make_user()

        result = CascadeService.delete_accounts([user.id, user.id], 'User-00001')

        assert len(result.results) == 1


@pytest.mark.django_db
class TestIdentifierUniqueness:

    def test_stale_reads_never_duplicate_identifiers(self):
        """Every writer first reads a stale maximum, as concurrent writers would."""
        real_read_max = IdentifierAllocator._read_max
        created = []

        for _ in range(10):
            calls = {'n': 0}

            def read_max(model):
                calls['n'] += 1
                return None if calls['n'] == 1 else real_read_max(model)

            with patch.object(IdentifierAllocator, '_read_max', side_effect=read_max), \
                    patch.object(IdentifierAllocator, '_high_water', return_value=0):
                created.append(
                    IdentifierAllocator.create(Task, title='t', project_id='Project-00001',
                                               team_id='Team-00001', created_by='User-00010').id
                )

        assert len(set(created)) == 10
        assert created[-1] == 'Task-00010'
