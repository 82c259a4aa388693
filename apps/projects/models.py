"""
Project coordination models.

Implements:
- Team: a leader list and a member list of account ids, owned by a Project Manager
- Project: a unit of work, owned by a Project Manager
- AssignmentLog: the single active assignment of a project to a team
- Task: a piece of an assigned project given to team members

Records point at each other through identifier strings only. Nothing here
is a ForeignKey, so removing a record never removes its dependents; the
cascade engine in ``apps.projects.services`` does that explicitly.
"""
from django.db import models

from apps.core.models import BaseModel


class Team(BaseModel):
    ID_PREFIX = 'Team'

    name = models.CharField(max_length=200)
    team_leader = models.JSONField(
        default=list,
        help_text="Account ids leading this team"
    )
    members = models.JSONField(
        default=list,
        help_text="Account ids belonging to this team"
    )
    created_by = models.CharField(
        max_length=32,
        db_index=True,
        help_text="Id of the Project Manager that created the team"
    )

    class Meta:
        db_table = 'teams'
        ordering = ['id']


class Project(BaseModel):
    ID_PREFIX = 'Project'

    UNASSIGNED = 'Unassigned'
    ASSIGNED = 'Assigned'
    COMPLETED = 'Completed'

    STATUS_CHOICES = [
        (UNASSIGNED, 'Unassigned'),
        (ASSIGNED, 'Assigned'),
        (COMPLETED, 'Completed'),
    ]

    title = models.CharField(max_length=200)
    description = models.TextField()
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=UNASSIGNED,
        db_index=True
    )
    created_by = models.CharField(
        max_length=32,
        db_index=True,
        help_text="Id of the Project Manager that created the project"
    )

    class Meta:
        db_table = 'projects'
        ordering = ['id']


class AssignmentLog(BaseModel):
    """
    The assignment of one project to one team.

    ``project_id`` is unique: a project has at most one live assignment,
    and a second concurrent insert fails at the database.
    """
    ID_PREFIX = 'AP'

    project_id = models.CharField(
        max_length=32,
        unique=True,
        help_text="Id of the assigned project"
    )
    team_id = models.CharField(
        max_length=32,
        db_index=True,
        help_text="Id of the team doing the project"
    )
    assigned_by = models.CharField(max_length=32)
    deadline = models.DateTimeField()
    task_ids = models.JSONField(
        default=list,
        help_text="Ids of tasks created under this assignment"
    )

    class Meta:
        db_table = 'assignment_logs'
        ordering = ['id']


class Task(BaseModel):
    ID_PREFIX = 'Task'

    PENDING = 'Pending'
    SUBMITTED = 'Submitted'
    COMPLETED = 'Completed'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (SUBMITTED, 'Submitted'),
        (COMPLETED, 'Completed'),
    ]

    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default='')
    assigned_to = models.JSONField(
        default=list,
        help_text="Account ids the task is assigned to"
    )
    project_id = models.CharField(max_length=32, db_index=True)
    team_id = models.CharField(max_length=32, db_index=True)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=PENDING,
        db_index=True
    )
    submission_note = models.TextField(blank=True, default='')
    submitted_at = models.DateTimeField(null=True, blank=True)
    deadline = models.DateTimeField(null=True, blank=True)
    created_by = models.CharField(max_length=32)

    class Meta:
        db_table = 'tasks'
        ordering = ['id']
