"""
Account administration URLs.
"""
from django.urls import path
from apps.accounts import views

urlpatterns = [
    path('admin/accounts', views.AccountListView.as_view(), name='admin-accounts'),
    path('admin/update-accounts', views.AccountBatchUpdateView.as_view(), name='admin-update-accounts'),
    path('admin/delete-accounts', views.AccountDeleteView.as_view(), name='admin-delete-accounts'),
    path('admin/accounts/<str:account_id>/promote', views.AccountPromoteView.as_view(), name='admin-promote-account'),
]
