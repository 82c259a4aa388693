"""
Project coordination URLs.
"""
from django.urls import path
from apps.projects import views

urlpatterns = [
    # Teams
    path('pm/teams', views.TeamListCreateView.as_view(), name='pm-teams'),
    path('pm/teams/<str:team_id>', views.TeamDetailView.as_view(), name='pm-team-detail'),
    path('delete-teams', views.TeamDeleteView.as_view(), name='delete-teams'),

    # Projects
    path('pm/projects', views.ProjectListCreateView.as_view(), name='pm-projects'),
    path('pm/projects/<str:project_id>', views.ProjectDetailView.as_view(), name='pm-project-detail'),
    path('delete-projects', views.ProjectDeleteView.as_view(), name='delete-projects'),
    path('assign-project', views.AssignProjectView.as_view(), name='assign-project'),
    path('unassign-project', views.UnassignProjectView.as_view(), name='unassign-project'),

    # Tasks
    path('tasks', views.TaskListCreateView.as_view(), name='tasks'),
    path('tasks/<str:task_id>/submit', views.TaskSubmitView.as_view(), name='task-submit'),
    path('tasks/<str:task_id>/review', views.TaskReviewView.as_view(), name='task-review'),
]
