"""
Project Manager and team work API views.
"""
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema, OpenApiExample, OpenApiParameter
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.permissions import requires_operation
from apps.projects.serializers import (
    AssignmentSerializer, AssignProjectSerializer,
    ProjectCreateSerializer, ProjectDeleteSerializer, ProjectListQuerySerializer,
    ProjectSerializer, ProjectUpdateSerializer,
    TaskCreateSerializer, TaskReviewSerializer, TaskSerializer, TaskSubmitSerializer,
    TeamCreateSerializer, TeamDeleteSerializer, TeamSerializer, TeamUpdateSerializer,
    UnassignProjectSerializer,
)
from apps.projects.services import CascadeService, ProjectService, TaskService, TeamService


def _camel_counts(counts):
    mapping = {'projects_reset': 'projectsReset'}
    return {mapping.get(key, key): value for key, value in counts.items()}


class TeamListCreateView(APIView):
    """
    List the caller's teams or create a new one.

    GET  /v1/pm/teams
    POST /v1/pm/teams
    """

    @extend_schema(
        tags=['Teams'],
        summary='List teams',
        description='Teams created by the calling Project Manager.',
        responses={200: TeamSerializer(many=True)},
    )
    @requires_operation('teams:view')
    def get(self, request):
        teams = TeamService.list_teams(request.user.id)
        return Response(
            {
                'success': True,
                'count': len(teams),
                'teams': TeamSerializer(teams, many=True).data,
            },
            status=status.HTTP_200_OK
        )

    @extend_schema(
        tags=['Teams'],
        summary='Create team',
        description='''
Create a team. Leaders and members must be active User-class accounts and
nobody may appear in both lists.
        ''',
        request=TeamCreateSerializer,
        responses={201: TeamSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Create team',
                value={'name': 'Platform', 'teamLeader': ['User-00010'], 'members': ['User-00011']},
                request_only=True
            ),
        ]
    )
    @requires_operation('teams:create')
    def post(self, request):
        serializer = TeamCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        team = TeamService.create_team(
            name=data['name'],
            team_leader=data['team_leader'],
            members=data.get('members', []),
            created_by=request.user.id,
        )

        return Response(
            {
                'success': True,
                'message': 'Team created',
                'team': TeamSerializer(team).data,
            },
            status=status.HTTP_201_CREATED
        )


@extend_schema(
    tags=['Teams'],
    summary='Update team',
    request=TeamUpdateSerializer,
    responses={200: TeamSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
)
@requires_operation('teams:update')
class TeamDetailView(APIView):
    """
    PUT /v1/pm/teams/{id}
    """

    def put(self, request, team_id):
        serializer = TeamUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        team = TeamService.update_team(team_id, dict(serializer.validated_data), request.user.id)

        return Response(
            {
                'success': True,
                'message': 'Team updated',
                'team': TeamSerializer(team).data,
            },
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Teams'],
    summary='Delete teams',
    description='''
Delete teams along with their assignments and the tasks under them.
Projects assigned to a deleted team go back to Unassigned.

All-or-nothing: if any id is missing (404) or owned by another manager
(403), nothing is deleted.
    ''',
    request=TeamDeleteSerializer,
    responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
)
@requires_operation('teams:delete')
class TeamDeleteView(APIView):
    """
    POST /v1/delete-teams
    """

    def post(self, request):
        serializer = TeamDeleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        counts = CascadeService.delete_teams(serializer.validated_data['team_ids'], request.user.id)

        return Response(
            {
                'success': True,
                'message': 'Teams deleted',
                'deleted': _camel_counts(counts),
            },
            status=status.HTTP_200_OK
        )


class ProjectListCreateView(APIView):
    """
    GET  /v1/pm/projects
    POST /v1/pm/projects
    """

    @extend_schema(
        tags=['Projects'],
        summary='List projects',
        parameters=[
            OpenApiParameter(
                name='status',
                type=str,
                enum=['Unassigned', 'Assigned', 'Completed'],
                required=False,
            ),
        ],
        responses={200: ProjectSerializer(many=True)},
    )
    @requires_operation('projects:view')
    def get(self, request):
        query = ProjectListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        projects = ProjectService.list_projects(request.user.id, query.validated_data.get('status'))
        assignments = ProjectService.assignments_for([project.id for project in projects])

        return Response(
            {
                'success': True,
                'count': len(projects),
                'projects': ProjectSerializer(
                    projects, many=True, context={'assignments': assignments}
                ).data,
            },
            status=status.HTTP_200_OK
        )

    @extend_schema(
        tags=['Projects'],
        summary='Create project',
        request=ProjectCreateSerializer,
        responses={201: ProjectSerializer, 400: OpenApiTypes.OBJECT},
    )
    @requires_operation('projects:create')
    def post(self, request):
        serializer = ProjectCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        project = ProjectService.create_project(
            title=serializer.validated_data['title'],
            description=serializer.validated_data.get('description', ''),
            created_by=request.user.id,
        )

        return Response(
            {
                'success': True,
                'message': 'Project created',
                'project': ProjectSerializer(project).data,
            },
            status=status.HTTP_201_CREATED
        )


@extend_schema(
    tags=['Projects'],
    summary='Update project',
    request=ProjectUpdateSerializer,
    responses={200: ProjectSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
)
@requires_operation('projects:update')
class ProjectDetailView(APIView):
    """
    PUT /v1/pm/projects/{id}
    """

    def put(self, request, project_id):
        serializer = ProjectUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        project = ProjectService.update_project(project_id, dict(serializer.validated_data), request.user.id)
        assignments = ProjectService.assignments_for([project.id])

        return Response(
            {
                'success': True,
                'message': 'Project updated',
                'project': ProjectSerializer(project, context={'assignments': assignments}).data,
            },
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Projects'],
    summary='Delete projects',
    description='''
Delete projects along with their assignments and tasks.

All-or-nothing: if any id is missing (404) or owned by another manager
(403), nothing is deleted.
    ''',
    request=ProjectDeleteSerializer,
    responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
)
@requires_operation('projects:delete')
class ProjectDeleteView(APIView):
    """
    POST /v1/delete-projects
    """

    def post(self, request):
        serializer = ProjectDeleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        counts = CascadeService.delete_projects(serializer.validated_data['project_ids'], request.user.id)

        return Response(
            {
                'success': True,
                'message': 'Projects deleted',
                'deleted': _camel_counts(counts),
            },
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Projects'],
    summary='Assign project to team',
    description='''
Create the assignment log for a project and mark it Assigned.

A project has at most one assignment; assigning it again returns 409.
    ''',
    request=AssignProjectSerializer,
    responses={
        201: AssignmentSerializer,
        400: OpenApiTypes.OBJECT,
        403: OpenApiTypes.OBJECT,
        404: OpenApiTypes.OBJECT,
        409: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Assign',
            value={'projectId': 'Project-00005', 'teamId': 'Team-00003', 'deadline': '2027-01-31T17:00:00Z'},
            request_only=True
        ),
    ]
)
@requires_operation('projects:assign')
class AssignProjectView(APIView):
    """
    POST /v1/assign-project
    """

    def post(self, request):
        serializer = AssignProjectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        log = CascadeService.assign_project(
            project_id=data['project_id'],
            team_id=data['team_id'],
            deadline=data['deadline'],
            assigned_by=request.user.id,
        )

        return Response(
            {
                'success': True,
                'message': 'Project assigned',
                'assignment': AssignmentSerializer(log).data,
            },
            status=status.HTTP_201_CREATED
        )


@extend_schema(
    tags=['Projects'],
    summary='Unassign projects from team',
    description='''
Remove the assignments of the given projects from a team, deleting their
tasks and setting the projects back to Unassigned. Projects not assigned
to the team are ignored.
    ''',
    request=UnassignProjectSerializer,
    responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
)
@requires_operation('projects:unassign')
class UnassignProjectView(APIView):
    """
    POST /v1/unassign-project
    """

    def post(self, request):
        serializer = UnassignProjectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        counts = CascadeService.unassign_projects(
            serializer.validated_data['team_id'],
            serializer.validated_data['project_ids'],
            request.user.id,
        )

        return Response(
            {
                'success': True,
                'message': 'Projects unassigned',
                'deleted': _camel_counts(counts),
            },
            status=status.HTTP_200_OK
        )


class TaskListCreateView(APIView):
    """
    GET  /v1/tasks
    POST /v1/tasks
    """

    @extend_schema(
        tags=['Tasks'],
        summary='List tasks',
        description='Tasks assigned to the caller plus every task of the teams the caller leads.',
        responses={200: TaskSerializer(many=True)},
    )
    @requires_operation('tasks:view')
    def get(self, request):
        tasks = TaskService.list_tasks(request.user.id)
        return Response(
            {
                'success': True,
                'count': len(tasks),
                'tasks': TaskSerializer(tasks, many=True).data,
            },
            status=status.HTTP_200_OK
        )

    @extend_schema(
        tags=['Tasks'],
        summary='Create task',
        description='Team leaders split an assigned project into tasks for their members.',
        request=TaskCreateSerializer,
        responses={201: TaskSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
    @requires_operation('tasks:create')
    def post(self, request):
        serializer = TaskCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        task = TaskService.create_task(
            project_id=data['project_id'],
            title=data['title'],
            description=data.get('description', ''),
            assigned_to=data['assigned_to'],
            created_by=request.user.id,
            deadline=data.get('deadline'),
        )

        return Response(
            {
                'success': True,
                'message': 'Task created',
                'task': TaskSerializer(task).data,
            },
            status=status.HTTP_201_CREATED
        )


@extend_schema(
    tags=['Tasks'],
    summary='Submit task',
    request=TaskSubmitSerializer,
    responses={200: TaskSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
)
@requires_operation('tasks:submit')
class TaskSubmitView(APIView):
    """
    POST /v1/tasks/{id}/submit
    """

    def post(self, request, task_id):
        serializer = TaskSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        task = TaskService.submit_task(task_id, request.user.id, serializer.validated_data.get('note', ''))

        return Response(
            {
                'success': True,
                'message': 'Task submitted',
                'task': TaskSerializer(task).data,
            },
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Tasks'],
    summary='Review task',
    description='''
Approve a submitted task (Completed) or send it back (Pending). When every
task of the assignment is Completed, the project becomes Completed.
    ''',
    request=TaskReviewSerializer,
    responses={200: TaskSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
)
@requires_operation('tasks:review')
class TaskReviewView(APIView):
    """
    POST /v1/tasks/{id}/review
    """

    def post(self, request, task_id):
        serializer = TaskReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        task = TaskService.review_task(task_id, request.user.id, serializer.validated_data['approved'])

        return Response(
            {
                'success': True,
                'message': 'Task approved' if task.status == task.COMPLETED else 'Task returned',
                'task': TaskSerializer(task).data,
            },
            status=status.HTTP_200_OK
        )
