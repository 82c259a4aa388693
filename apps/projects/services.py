"""
Project coordination services.

Implements:
- CascadeService: assignment, unassignment and every deletion that has to
  clean up dependent records
- TeamService, ProjectService: Project Manager CRUD with ownership checks
- TaskService: task creation, submission and review inside assigned teams

Deletion always walks the same order:

    Tasks -> AssignmentLogs -> project status reset -> Teams/Projects -> Accounts

Each step deletes or updates by filter, so re-running an interrupted
cascade finishes the job without touching anything twice.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from apps.accounts.models import User
from apps.core.batch import BatchResult
from apps.core.exceptions import (
    ConflictError, NotFoundError, PermissionDeniedError, TeamflowException, ValidationError,
)
from apps.core.identifiers import IdentifierAllocator
from apps.core.logging import SecurityLogger
from apps.core.permissions import AccessGate
from apps.core.store import array_contains, remove_from_array, store_errors
from apps.projects.models import AssignmentLog, Project, Task, Team

logger = logging.getLogger(__name__)


def _unique(ids: Iterable[str]) -> List[str]:
    seen = []
    for value in ids:
        if value not in seen:
            seen.append(value)
    return seen


def _fetch_all(model, ids: List[str], label: str):
    """
    Load every record in ``ids`` or raise NotFoundError naming the missing ones.
    """
    records = list(model.objects.filter(id__in=ids))
    missing = sorted(set(ids) - {record.id for record in records})
    if missing:
        raise NotFoundError(f"{label} not found: {', '.join(missing)}", details={'ids': missing})
    return records


class CascadeService:
    """
    Keeps cross-collection references consistent on assignment and deletion.
    """

    @classmethod
    def _cascade_logs(cls, logs: List[AssignmentLog]) -> Dict[str, int]:
        """
        Remove the tasks and logs of ``logs`` and reset their projects.

        Tasks are matched by the ids recorded on the log and by project, which
        also catches a task created just before its id was recorded.
        """
        if not logs:
            return {'tasks': 0, 'logs': 0, 'projects_reset': 0}

        task_ids = _unique(task_id for log in logs for task_id in (log.task_ids or []))
        project_ids = _unique(log.project_id for log in logs)
        log_ids = [log.id for log in logs]

        tasks_deleted, _ = Task.objects.filter(Q(id__in=task_ids) | Q(project_id__in=project_ids)).delete()
        logs_deleted, _ = AssignmentLog.objects.filter(id__in=log_ids).delete()
        projects_reset = Project.objects.filter(id__in=project_ids).update(
            status=Project.UNASSIGNED, updated_at=timezone.now()
        )

        return {'tasks': tasks_deleted, 'logs': logs_deleted, 'projects_reset': projects_reset}

    @classmethod
    def assign_project(cls, project_id: str, team_id: str, deadline, assigned_by: str) -> AssignmentLog:
        """
        Assign a project to a team.

        Raises:
            NotFoundError: If the project or team does not exist
            PermissionDeniedError: If either is owned by another manager
            ValidationError: If the deadline is not in the future
            ConflictError: If the project already has an assignment
        """
        with store_errors('assign_project'):
            project = Project.objects.filter(id=project_id).first()
            if project is None:
                raise NotFoundError(f"Project {project_id} not found", details={'id': project_id})

            team = Team.objects.filter(id=team_id).first()
            if team is None:
                raise NotFoundError(f"Team {team_id} not found", details={'id': team_id})

            AccessGate.enforce_ownership([project, team], assigned_by, 'projects:assign')

            if deadline is None or deadline <= timezone.now():
                raise ValidationError('Deadline must be in the future', details={'deadline': str(deadline)})

            if AssignmentLog.objects.filter(project_id=project_id).exists():
                raise ConflictError(
                    f"Project {project_id} is already assigned",
                    details={'projectId': project_id}
                )

            try:
                with transaction.atomic():
                    log = IdentifierAllocator.create(
                        AssignmentLog,
                        project_id=project_id,
                        team_id=team_id,
                        assigned_by=assigned_by,
                        deadline=deadline,
                        task_ids=[],
                    )
                    Project.objects.filter(id=project_id).update(
                        status=Project.ASSIGNED, updated_at=timezone.now()
                    )
            except IntegrityError:
                # The unique project_id constraint rejected a concurrent assignment
                raise ConflictError(
                    f"Project {project_id} is already assigned",
                    details={'projectId': project_id}
                )

        logger.info(
            f"Assigned {project_id} to {team_id} as {log.id}",
            extra={'project_id': project_id, 'team_id': team_id, 'log_id': log.id, 'assigned_by': assigned_by}
        )
        return log

    @classmethod
    def unassign_projects(cls, team_id: str, project_ids: List[str], requester_id: str) -> Dict[str, int]:
        """
        Withdraw projects from a team, deleting their tasks and logs.

        Projects not assigned to the team are ignored; an empty match is a
        successful no-op.
        """
        with store_errors('unassign_projects'):
            team = Team.objects.filter(id=team_id).first()
            if team is None:
                raise NotFoundError(f"Team {team_id} not found", details={'id': team_id})

            AccessGate.enforce_ownership([team], requester_id, 'projects:unassign')

            with transaction.atomic():
                logs = list(AssignmentLog.objects.filter(team_id=team_id, project_id__in=_unique(project_ids)))
                counts = cls._cascade_logs(logs)

        logger.info(
            f"Unassigned {counts['logs']} project(s) from {team_id}",
            extra={'team_id': team_id, 'requested': project_ids, **counts}
        )
        return counts

    @classmethod
    def delete_teams(cls, team_ids: List[str], requester_id: str) -> Dict[str, int]:
        """
        Delete teams with their assignments and tasks.

        All-or-nothing: any missing or foreign team aborts before deleting.
        """
        team_ids = _unique(team_ids)

        with store_errors('delete_teams'):
            teams = _fetch_all(Team, team_ids, 'Teams')
            AccessGate.enforce_ownership(teams, requester_id, 'teams:delete')

            with transaction.atomic():
                counts = cls._cascade_logs(list(AssignmentLog.objects.filter(team_id__in=team_ids)))
                counts['teams'], _ = Team.objects.filter(id__in=team_ids).delete()

        logger.info(
            f"Deleted {counts['teams']} team(s)",
            extra={'team_ids': team_ids, 'requester_id': requester_id, **counts}
        )
        return counts

    @classmethod
    def delete_projects(cls, project_ids: List[str], requester_id: str) -> Dict[str, int]:
        """
        Delete projects with their assignments and tasks.

        All-or-nothing: any missing or foreign project aborts before deleting.
        """
        project_ids = _unique(project_ids)

        with store_errors('delete_projects'):
            projects = _fetch_all(Project, project_ids, 'Projects')
            AccessGate.enforce_ownership(projects, requester_id, 'projects:delete')

            with transaction.atomic():
                counts = cls._cascade_logs(list(AssignmentLog.objects.filter(project_id__in=project_ids)))
                counts['projects'], _ = Project.objects.filter(id__in=project_ids).delete()

        logger.info(
            f"Deleted {counts['projects']} project(s)",
            extra={'project_ids': project_ids, 'requester_id': requester_id, **counts}
        )
        return counts

    @classmethod
    def delete_accounts(cls, account_ids: List[str], deleted_by: str) -> BatchResult:
        """
        Delete accounts one by one, cleaning up what each one owns or joins.

        - Admin accounts are never deleted.
        - A Project Manager takes its teams and projects with it, along with
          every assignment and task under them.
        - Any other account is removed from team leader lists, member lists
          and task assignments before it is deleted.

        One id failing, including on a store error, never stops the others.
        """
        result = BatchResult()

        for account_id in _unique(account_ids):
            try:
                message = cls._delete_account(account_id, deleted_by)
            except TeamflowException as e:
                logger.warning(
                    f"Account deletion failed for {account_id}: {e.message}",
                    extra={'account_id': account_id, 'deleted_by': deleted_by}
                )
                result.failed(account_id, e.message)
                continue
            result.succeeded(account_id, message)

        return result

    @classmethod
    def _delete_account(cls, account_id: str, deleted_by: str) -> str:
        with store_errors('delete_account'):
            user = User.objects.filter(id=account_id).first()
            if user is None:
                raise NotFoundError(f"Account {account_id} not found")

            if user.is_admin:
                raise PermissionDeniedError('Admin accounts cannot be deleted')

            with transaction.atomic():
                if user.is_project_manager:
                    counts = cls._delete_owned_records(account_id)
                else:
                    counts = cls._detach_participant(account_id)
                User.objects.filter(id=account_id).delete()

        logger.info(
            f"Deleted account {account_id}",
            extra={'account_id': account_id, 'account_class': user.account_class, **counts}
        )
        SecurityLogger.log_account_deleted(
            account_id=account_id,
            account_class=user.account_class,
            deleted_by=deleted_by,
        )
        return 'Account deleted'

    @classmethod
    def _delete_owned_records(cls, manager_id: str) -> Dict[str, int]:
        team_ids = list(Team.objects.filter(created_by=manager_id).values_list('id', flat=True))
        project_ids = list(Project.objects.filter(created_by=manager_id).values_list('id', flat=True))

        logs = list(AssignmentLog.objects.filter(Q(team_id__in=team_ids) | Q(project_id__in=project_ids)))
        counts = cls._cascade_logs(logs)
        counts['teams'], _ = Team.objects.filter(id__in=team_ids).delete()
        counts['projects'], _ = Project.objects.filter(id__in=project_ids).delete()
        return counts

    @classmethod
    def _detach_participant(cls, account_id: str) -> Dict[str, int]:
        return {
            'teams_left_as_leader': remove_from_array(Team.objects.all(), 'team_leader', account_id),
            'teams_left_as_member': remove_from_array(Team.objects.all(), 'members', account_id),
            'tasks_unassigned': remove_from_array(Task.objects.all(), 'assigned_to', account_id),
        }


class TeamService:
    """
    Team CRUD for Project Managers.
    """

    @classmethod
    def list_teams(cls, manager_id: str) -> List[Team]:
        with store_errors('list_teams'):
            return list(Team.objects.filter(created_by=manager_id))

    @classmethod
    def _validate_roster(cls, team_leader: List[str], members: List[str]):
        """
        Leaders and members must be existing User-class accounts, and nobody
        may be both leader and member of the same team.
        """
        if not team_leader:
            raise ValidationError('A team needs at least one team leader', details={'teamLeader': 'required'})

        overlap = sorted(set(team_leader) & set(members))
        if overlap:
            raise ValidationError(
                'An account cannot be both leader and member of the same team',
                details={'ids': overlap}
            )

        wanted = set(team_leader) | set(members)
        found = set(
            User.objects.active().filter(id__in=wanted, account_class=User.USER)
            .values_list('id', flat=True)
        )
        unknown = sorted(wanted - found)
        if unknown:
            raise ValidationError(
                'Team leaders and members must be active User accounts',
                details={'ids': unknown}
            )

    @classmethod
    def create_team(cls, name: str, team_leader: List[str], members: List[str], created_by: str) -> Team:
        team_leader, members = _unique(team_leader), _unique(members or [])

        with store_errors('create_team'):
            cls._validate_roster(team_leader, members)
            team = IdentifierAllocator.create(
                Team,
                name=name,
                team_leader=team_leader,
                members=members,
                created_by=created_by,
            )

        logger.info(f"Created team {team.id}", extra={'team_id': team.id, 'created_by': created_by})
        return team

    @classmethod
    def update_team(cls, team_id: str, changes: Dict[str, Any], requester_id: str) -> Team:
        """
        Rename a team or replace its rosters.

        Tasks only go to members, so anyone who is no longer a member after
        the update is taken off this team's task assignments.
        """
        with store_errors('update_team'):
            team = Team.objects.filter(id=team_id).first()
            if team is None:
                raise NotFoundError(f"Team {team_id} not found", details={'id': team_id})

            AccessGate.enforce_ownership([team], requester_id, 'teams:update')

            previous = set(team.team_leader or []) | set(team.members or [])

            if 'name' in changes:
                team.name = changes['name']
            if 'team_leader' in changes:
                team.team_leader = _unique(changes['team_leader'])
            if 'members' in changes:
                team.members = _unique(changes['members'])

            cls._validate_roster(team.team_leader, team.members)

            dropped = sorted(previous - set(team.members))
            with transaction.atomic():
                team.save()
                tasks_unassigned = sum(
                    remove_from_array(Task.objects.filter(team_id=team.id), 'assigned_to', account_id)
                    for account_id in dropped
                )

        logger.info(
            f"Updated team {team.id}",
            extra={'team_id': team.id, 'fields': sorted(changes), 'tasks_unassigned': tasks_unassigned}
        )
        return team


class ProjectService:
    """
    Project CRUD for Project Managers.
    """

    @classmethod
    def list_projects(cls, manager_id: str, status: Optional[str] = None) -> List[Project]:
        with store_errors('list_projects'):
            queryset = Project.objects.filter(created_by=manager_id)
            if status:
                queryset = queryset.filter(status=status)
            return list(queryset)

    @classmethod
    def assignments_for(cls, project_ids: List[str]) -> Dict[str, AssignmentLog]:
        with store_errors('list_assignments'):
            return {log.project_id: log for log in AssignmentLog.objects.filter(project_id__in=project_ids)}

    @classmethod
    def create_project(cls, title: str, description: str, created_by: str) -> Project:
        with store_errors('create_project'):
            project = IdentifierAllocator.create(
                Project,
                title=title,
                description=description,
                status=Project.UNASSIGNED,
                created_by=created_by,
            )

        logger.info(f"Created project {project.id}", extra={'project_id': project.id, 'created_by': created_by})
        return project

    @classmethod
    def update_project(cls, project_id: str, changes: Dict[str, Any], requester_id: str) -> Project:
        with store_errors('update_project'):
            project = Project.objects.filter(id=project_id).first()
            if project is None:
                raise NotFoundError(f"Project {project_id} not found", details={'id': project_id})

            AccessGate.enforce_ownership([project], requester_id, 'projects:update')

            for field_name in ('title', 'description'):
                if field_name in changes:
                    setattr(project, field_name, changes[field_name])
            project.save()

        logger.info(f"Updated project {project.id}", extra={'project_id': project.id, 'fields': sorted(changes)})
        return project


class TaskService:
    """
    Work inside an assigned project.

    A team leader splits the project into tasks for the team's members,
    members submit their work and the leader approves or sends it back.
    The project is Completed once every task under its assignment is.
    """

    @classmethod
    def list_tasks(cls, account_id: str) -> List[Task]:
        """Tasks assigned to the account plus every task of the teams it leads."""
        with store_errors('list_tasks'):
            led_team_ids = list(
                Team.objects.filter(array_contains('team_leader', account_id)).values_list('id', flat=True)
            )
            return list(
                Task.objects.filter(array_contains('assigned_to', account_id) | Q(team_id__in=led_team_ids))
            )

    @classmethod
    def _get_task(cls, task_id: str) -> Task:
        task = Task.objects.filter(id=task_id).first()
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", details={'id': task_id})
        return task

    @classmethod
    def _require_leader(cls, team_id: str, account_id: str, operation: str) -> Team:
        team = Team.objects.filter(id=team_id).first()
        if team is None:
            raise NotFoundError(f"Team {team_id} not found", details={'id': team_id})
        if account_id not in (team.team_leader or []):
            raise PermissionDeniedError(
                f"Only a leader of {team_id} can do this",
                details={'operation': operation, 'teamId': team_id}
            )
        return team

    @classmethod
    def create_task(cls, project_id: str, title: str, description: str, assigned_to: List[str],
                    created_by: str, deadline=None) -> Task:
        """
        Create a task under a project's current assignment.

        Raises:
            NotFoundError: If the project is not assigned to any team
            PermissionDeniedError: If the caller does not lead the assigned team
            ValidationError: If an assignee is not a member of that team
        """
        assigned_to = _unique(assigned_to or [])

        with store_errors('create_task'):
            log = AssignmentLog.objects.filter(project_id=project_id).first()
            if log is None:
                raise NotFoundError(
                    f"Project {project_id} is not assigned to a team",
                    details={'projectId': project_id}
                )

            team = cls._require_leader(log.team_id, created_by, 'tasks:create')

            if not assigned_to:
                raise ValidationError('A task must be assigned to at least one member')

            outsiders = sorted(set(assigned_to) - set(team.members or []))
            if outsiders:
                raise ValidationError(
                    f"Assignees must be members of {team.id}",
                    details={'ids': outsiders}
                )

            if deadline is not None and deadline <= timezone.now():
                raise ValidationError('Deadline must be in the future')

            with transaction.atomic():
                task = IdentifierAllocator.create(
                    Task,
                    title=title,
                    description=description or '',
                    assigned_to=assigned_to,
                    project_id=project_id,
                    team_id=team.id,
                    status=Task.PENDING,
                    deadline=deadline,
                    created_by=created_by,
                )
                log = AssignmentLog.objects.select_for_update().get(id=log.id)
                log.task_ids = (log.task_ids or []) + [task.id]
                log.save(update_fields=['task_ids', 'updated_at'])
                Project.objects.filter(id=project_id, status=Project.COMPLETED).update(
                    status=Project.ASSIGNED, updated_at=timezone.now()
                )

        logger.info(
            f"Created task {task.id} under {log.id}",
            extra={'task_id': task.id, 'log_id': log.id, 'created_by': created_by}
        )
        return task

    @classmethod
    def submit_task(cls, task_id: str, account_id: str, note: str = '') -> Task:
        with store_errors('submit_task'):
            task = cls._get_task(task_id)

            team = Team.objects.filter(id=task.team_id).first()
            is_member = team is not None and account_id in (team.members or [])
            if not is_member or account_id not in (task.assigned_to or []):
                raise PermissionDeniedError(
                    'Only an assignee who is a member of the team can submit this task',
                    details={'operation': 'tasks:submit', 'taskId': task_id}
                )
            if task.status == Task.COMPLETED:
                raise ConflictError(f"Task {task_id} is already completed", details={'status': task.status})

            task.status = Task.SUBMITTED
            task.submission_note = note or ''
            task.submitted_at = timezone.now()
            task.save(update_fields=['status', 'submission_note', 'submitted_at', 'updated_at'])

        logger.info(f"Task {task_id} submitted", extra={'task_id': task_id, 'account_id': account_id})
        return task

    @classmethod
    def review_task(cls, task_id: str, account_id: str, approved: bool) -> Task:
        """
        Approve (Completed) or return (Pending) a submitted task.

        Approving the last open task of an assignment completes the project.
        """
        with store_errors('review_task'):
            task = cls._get_task(task_id)
            cls._require_leader(task.team_id, account_id, 'tasks:review')

            if task.status != Task.SUBMITTED:
                raise ConflictError(
                    f"Task {task_id} has not been submitted",
                    details={'status': task.status}
                )

            with transaction.atomic():
                task.status = Task.COMPLETED if approved else Task.PENDING
                task.save(update_fields=['status', 'updated_at'])

                project_completed = approved and not Task.objects.filter(
                    project_id=task.project_id
                ).exclude(status=Task.COMPLETED).exists()

                if project_completed:
                    Project.objects.filter(id=task.project_id).update(
                        status=Project.COMPLETED, updated_at=timezone.now()
                    )

        logger.info(
            f"Task {task_id} reviewed",
            extra={
                'task_id': task_id,
                'approved': approved,
                'project_completed': project_completed,
            }
        )
        return task
