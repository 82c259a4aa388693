"""
Tests for the account administration endpoints.
"""
import pytest

from apps.accounts.models import User
from apps.projects.models import AssignmentLog, Project, Task, Team


@pytest.fixture
def admin_client(api_client, admin_user, authenticate):
    return authenticate(api_client, admin_user)


@pytest.mark.django_db
class TestAdminAccess:
    """Only Admin may call the administration endpoints."""

    @pytest.mark.parametrize('method,path', [
        ('get', '/v1/admin/accounts'),
        ('put', '/v1/admin/update-accounts'),
        ('delete', '/v1/admin/delete-accounts'),
        ('post', '/v1/admin/accounts/User-00001/promote'),
    ])
    def test_project_manager_is_forbidden(self, api_client, project_manager, authenticate, method, path):
        authenticate(api_client, project_manager)

        response = getattr(api_client, method)(path, {}, format='json')

        assert response.status_code == 403
        assert response.data['code'] == 'FORBIDDEN'

    def test_anonymous_is_unauthenticated(self, api_client):
        response = api_client.get('/v1/admin/accounts')
        assert response.status_code == 401


@pytest.mark.django_db
class TestListAccounts:

    def test_list_all(self, admin_client, admin_user, project_manager, make_user):
        make_user()

        response = admin_client.get('/v1/admin/accounts')

        assert response.status_code == 200
        assert response.data['count'] == 3

    def test_filter_by_class(self, admin_client, project_manager, make_user):
        make_user()

        response = admin_client.get('/v1/admin/accounts', {'accountClass': 'ProjectManager'})

        assert [u['id'] for u in response.data['users']] == [project_manager.id]

    def test_invalid_class_filter(self, admin_client):
        response = admin_client.get('/v1/admin/accounts', {'accountClass': 'Wizard'})
        assert response.status_code == 400


@pytest.mark.django_db
class TestUpdateAccounts:

    def test_all_succeed(self, admin_client, make_user):
        first, second = make_user(), make_user()

        response = admin_client.put('/v1/admin/update-accounts', {
            'users': [
                {'id': first.id, 'firstName': 'Renamed'},
                {'id': second.id, 'contact': '+254700999888'},
            ]
        }, format='json')

        assert response.status_code == 200
        assert response.data['details']['successfulCount'] == 2
        first.refresh_from_db()
        second.refresh_from_db()
        assert first.first_name == 'Renamed'
        assert second.contact == '+254700999888'

    def test_partial_failure_is_multi_status(self, admin_client, make_user):
        user = make_user()

        response = admin_client.put('/v1/admin/update-accounts', {
            'users': [
                {'id': user.id, 'lastName': 'Updated'},
                {'id': 'User-09999', 'lastName': 'Ghost'},
            ]
        }, format='json')

        assert response.status_code == 207
        assert response.data['success'] is False
        results = {r['id']: r for r in response.data['details']['results']}
        assert results[user.id]['success'] is True
        assert results['User-09999'] == {
            'id': 'User-09999', 'success': False, 'message': 'Account User-09999 not found',
        }
        user.refresh_from_db()
        assert user.last_name == 'Updated'

    def test_password_reset(self, admin_client, make_user):
        user = make_user()

        response = admin_client.put('/v1/admin/update-accounts', {
            'users': [{'id': user.id, 'password': 'Brand-New-Pass9'}]
        }, format='json')

        assert response.status_code == 200
        user.refresh_from_db()
        assert user.check_password('Brand-New-Pass9')

    def test_item_without_changes_fails(self, admin_client, make_user):
        user = make_user()

        response = admin_client.put('/v1/admin/update-accounts', {'users': [{'id': user.id}]}, format='json')

        assert response.status_code == 207
        assert response.data['details']['results'][0]['message'] == 'No fields to update'

    def test_empty_batch_is_rejected(self, admin_client):
        response = admin_client.put('/v1/admin/update-accounts', {'users': []}, format='json')
        assert response.status_code == 400


@pytest.mark.django_db
class TestDeleteAccounts:

    def test_delete_member_detaches_everywhere(self, admin_client, project_manager, make_user):
        leader, member = make_user(), make_user()
        Team.objects.create(id='Team-00001', name='A', team_leader=[leader.id], members=[member.id],
                            created_by=project_manager.id)
        Task.objects.create(id='Task-00001', title='T', assigned_to=[member.id], project_id='Project-00001',
                            team_id='Team-00001', created_by=leader.id)

        response = admin_client.delete('/v1/admin/delete-accounts', {'ids': [member.id]}, format='json')

        assert response.status_code == 200
        assert response.data['details']['results'] == [
            {'id': member.id, 'success': True, 'message': 'Account deleted'},
        ]
        assert not User.objects.filter(id=member.id).exists()
        assert Team.objects.get(id='Team-00001').members == []
        assert Task.objects.get(id='Task-00001').assigned_to == []

    def test_delete_project_manager_cascades(self, admin_client, project_manager, make_user):
        leader = make_user()
        Team.objects.create(id='Team-00001', name='A', team_leader=[leader.id], created_by=project_manager.id)
        Project.objects.create(id='Project-00001', title='P', description='', status=Project.ASSIGNED,
                               created_by=project_manager.id)
        AssignmentLog.objects.create(id='AP-00001', project_id='Project-00001', team_id='Team-00001',
                                     assigned_by=project_manager.id, deadline='2030-01-01T00:00:00Z',
                                     task_ids=['Task-00001'])
        Task.objects.create(id='Task-00001', title='T', assigned_to=[], project_id='Project-00001',
                            team_id='Team-00001', created_by=leader.id)

        response = admin_client.delete('/v1/admin/delete-accounts', {'ids': [project_manager.id]}, format='json')

        assert response.status_code == 200
        assert not Team.objects.exists()
        assert not Project.objects.exists()
        assert not AssignmentLog.objects.exists()
        assert not Task.objects.exists()
        assert User.objects.filter(id=leader.id).exists()

    def test_admin_and_missing_ids_fail_individually(self, admin_client, admin_user, make_user):
        user = make_user()

        response = admin_client.delete(
            '/v1/admin/delete-accounts',
            {'ids': [admin_user.id, 'User-09999', user.id]},
            format='json'
        )

        assert response.status_code == 207
        details = response.data['details']
        assert details['successfulCount'] == 1
        assert details['failedCount'] == 2
        messages = {r['id']: r['message'] for r in details['results']}
        assert messages[admin_user.id] == 'Admin accounts cannot be deleted'
        assert messages['User-09999'] == 'Account User-09999 not found'
        assert User.objects.filter(id=admin_user.id).exists()
        assert not User.objects.filter(id=user.id).exists()


@pytest.mark.django_db
class TestPromoteAccount:

    def test_promotion_strips_team_participation(self, admin_client, project_manager, make_user):
        user, other = make_user(), make_user()
        Team.objects.create(id='Team-00001', name='A', team_leader=[user.id, other.id], created_by=project_manager.id)
        Team.objects.create(id='Team-00002', name='B', team_leader=[other.id], members=[user.id],
                            created_by=project_manager.id)
        Task.objects.create(id='Task-00001', title='T', assigned_to=[user.id], project_id='Project-00001',
                            team_id='Team-00002', created_by=other.id)

        response = admin_client.post(f'/v1/admin/accounts/{user.id}/promote', {}, format='json')

        assert response.status_code == 200
        assert response.data['user']['accountClass'] == 'ProjectManager'
        assert Team.objects.get(id='Team-00001').team_leader == [other.id]
        assert Team.objects.get(id='Team-00002').members == []
        assert Task.objects.get(id='Task-00001').assigned_to == []

    def test_promoting_project_manager_conflicts(self, admin_client, project_manager):
        response = admin_client.post(f'/v1/admin/accounts/{project_manager.id}/promote', {}, format='json')
        assert response.status_code == 409

    def test_promoting_missing_account(self, admin_client):
        response = admin_client.post('/v1/admin/accounts/User-09999/promote', {}, format='json')
        assert response.status_code == 404
