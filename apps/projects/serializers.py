"""
Serializers for teams, projects, assignments and tasks.
"""
from rest_framework import serializers

from apps.projects.models import AssignmentLog, Project, Task, Team


def _id_list(**kwargs):
    return serializers.ListField(child=serializers.CharField(max_length=32), **kwargs)


class TeamSerializer(serializers.ModelSerializer):
    teamLeader = serializers.ListField(source='team_leader', child=serializers.CharField(), read_only=True)
    createdBy = serializers.CharField(source='created_by', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Team
        fields = ['id', 'name', 'teamLeader', 'members', 'createdBy', 'createdAt', 'updatedAt']
        read_only_fields = fields


class TeamCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    teamLeader = _id_list(source='team_leader', allow_empty=False)
    members = _id_list(required=False, default=list)

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Team name cannot be empty.")
        return value.strip()


class TeamUpdateSerializer(TeamCreateSerializer):
    """All fields optional; only the ones sent are changed."""

    name = serializers.CharField(max_length=200, required=False)
    teamLeader = _id_list(source='team_leader', required=False, allow_empty=False)
    members = _id_list(required=False)


class TeamDeleteSerializer(serializers.Serializer):
    teamIds = _id_list(source='team_ids', allow_empty=False)


class AssignmentSerializer(serializers.ModelSerializer):
    projectId = serializers.CharField(source='project_id', read_only=True)
    teamId = serializers.CharField(source='team_id', read_only=True)
    assignedBy = serializers.CharField(source='assigned_by', read_only=True)
    taskIds = serializers.ListField(source='task_ids', child=serializers.CharField(), read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = AssignmentLog
        fields = ['id', 'projectId', 'teamId', 'assignedBy', 'deadline', 'taskIds', 'createdAt']
        read_only_fields = fields


class ProjectSerializer(serializers.ModelSerializer):
    """
    Project with its current assignment, if any.

    Pass ``context={'assignments': {project_id: AssignmentLog}}`` to include
    assignments without a query per project.
    """

    createdBy = serializers.CharField(source='created_by', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)
    assignment = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = ['id', 'title', 'description', 'status', 'createdBy', 'createdAt', 'updatedAt', 'assignment']
        read_only_fields = fields

    def get_assignment(self, obj):
        log = self.context.get('assignments', {}).get(obj.id)
        if log is None:
            return None
        return AssignmentSerializer(log).data


class ProjectCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(allow_blank=True, required=False, default='')

    def validate_title(self, value):
        if not value.strip():
            raise serializers.ValidationError("Project title cannot be empty.")
        return value.strip()


class ProjectUpdateSerializer(ProjectCreateSerializer):
    title = serializers.CharField(max_length=200, required=False)
    description = serializers.CharField(allow_blank=True, required=False)


class ProjectListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=[choice for choice, _ in Project.STATUS_CHOICES],
        required=False
    )


class ProjectDeleteSerializer(serializers.Serializer):
    projectIds = _id_list(source='project_ids', allow_empty=False)


class AssignProjectSerializer(serializers.Serializer):
    projectId = serializers.CharField(source='project_id', max_length=32)
    teamId = serializers.CharField(source='team_id', max_length=32)
    deadline = serializers.DateTimeField()


class UnassignProjectSerializer(serializers.Serializer):
    teamId = serializers.CharField(source='team_id', max_length=32)
    projectIds = _id_list(source='project_ids', allow_empty=False)


class TaskSerializer(serializers.ModelSerializer):
    assignedTo = serializers.ListField(source='assigned_to', child=serializers.CharField(), read_only=True)
    projectId = serializers.CharField(source='project_id', read_only=True)
    teamId = serializers.CharField(source='team_id', read_only=True)
    submissionNote = serializers.CharField(source='submission_note', read_only=True)
    submittedAt = serializers.DateTimeField(source='submitted_at', read_only=True)
    createdBy = serializers.CharField(source='created_by', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Task
        fields = [
            'id', 'title', 'description', 'assignedTo', 'projectId', 'teamId', 'status',
            'submissionNote', 'submittedAt', 'deadline', 'createdBy', 'createdAt',
        ]
        read_only_fields = fields


class TaskCreateSerializer(serializers.Serializer):
    projectId = serializers.CharField(source='project_id', max_length=32)
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(allow_blank=True, required=False, default='')
    assignedTo = _id_list(source='assigned_to', allow_empty=False)
    deadline = serializers.DateTimeField(required=False, allow_null=True, default=None)


class TaskSubmitSerializer(serializers.Serializer):
    note = serializers.CharField(allow_blank=True, required=False, default='')


class TaskReviewSerializer(serializers.Serializer):
    approved = serializers.BooleanField()
