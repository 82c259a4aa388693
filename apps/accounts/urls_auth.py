"""
Authentication URLs.
"""
from django.urls import path
from apps.accounts import views_auth

urlpatterns = [
    path('register', views_auth.RegistrationView.as_view(), name='auth-register'),
    path('login', views_auth.LoginView.as_view(), name='auth-login'),
    path('logout', views_auth.LogoutView.as_view(), name='auth-logout'),
    path('status', views_auth.StatusView.as_view(), name='auth-status'),
    path('me', views_auth.ProfileView.as_view(), name='auth-me'),
    path('change-password', views_auth.ChangePasswordView.as_view(), name='auth-change-password'),
]
