"""
URL configuration for Teamflow.
"""
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # API v1
    path('v1/', include('apps.core.urls')),

    # Authentication endpoints
    path('v1/auth/', include('apps.accounts.urls_auth')),  # Register, login, logout, status, me, change-password

    # Administration endpoints
    path('v1/', include('apps.accounts.urls')),  # Account listing, batch update/delete, promotion

    # Project management and team work
    path('v1/', include('apps.projects.urls')),  # Teams, projects, assignment, tasks
]
