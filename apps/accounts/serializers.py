"""
Serializers for authentication and account administration.

Request and response bodies use camelCase keys; ``source`` maps them onto
model field names.
"""
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from apps.accounts.models import User


class RegistrationSerializer(serializers.Serializer):
    """Serializer for account registration."""

    firstName = serializers.CharField(source='first_name', required=True, max_length=100)
    lastName = serializers.CharField(source='last_name', required=True, max_length=100)
    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )
    contact = serializers.CharField(required=False, allow_blank=True, max_length=20)
    avatar = serializers.CharField(required=False, allow_blank=True, max_length=500)

    def validate_email(self, value):
        return value.strip().lower()

    def validate_password(self, value):
        validate_password(value)
        return value

    def validate_firstName(self, value):
        if not value.strip():
            raise serializers.ValidationError("First name cannot be empty.")
        return value.strip()

    def validate_lastName(self, value):
        if not value.strip():
            raise serializers.ValidationError("Last name cannot be empty.")
        return value.strip()


class LoginSerializer(serializers.Serializer):
    """Serializer for login."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )


class ChangePasswordSerializer(serializers.Serializer):
    currentPassword = serializers.CharField(source='current_password', required=True, write_only=True)
    newPassword = serializers.CharField(source='new_password', required=True, write_only=True)


class AccountSerializer(serializers.ModelSerializer):
    """Account as returned to its owner and to administrators."""

    firstName = serializers.CharField(source='first_name', read_only=True)
    lastName = serializers.CharField(source='last_name', read_only=True)
    accountClass = serializers.CharField(source='account_class', read_only=True)
    isActive = serializers.BooleanField(source='is_active', read_only=True)
    lastLoginAt = serializers.DateTimeField(source='last_login_at', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'firstName', 'lastName', 'email', 'contact', 'avatar',
            'accountClass', 'isActive', 'lastLoginAt', 'createdAt',
        ]
        read_only_fields = fields


class AccountUpdateItemSerializer(serializers.Serializer):
    """One entry of a batch account update."""

    id = serializers.CharField(required=True)
    firstName = serializers.CharField(source='first_name', required=False, max_length=100)
    lastName = serializers.CharField(source='last_name', required=False, max_length=100)
    contact = serializers.CharField(required=False, allow_blank=True, max_length=20)
    avatar = serializers.CharField(required=False, allow_blank=True, max_length=500)
    password = serializers.CharField(required=False, write_only=True)


class AccountBatchUpdateSerializer(serializers.Serializer):
    users = AccountUpdateItemSerializer(many=True, allow_empty=False)


class AccountDeleteSerializer(serializers.Serializer):
    ids = serializers.ListField(
        child=serializers.CharField(),
        allow_empty=False
    )


class AccountListQuerySerializer(serializers.Serializer):
    accountClass = serializers.ChoiceField(
        source='account_class',
        choices=[choice for choice, _ in User.ACCOUNT_CLASS_CHOICES],
        required=False
    )
