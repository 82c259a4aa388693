"""
Account and authentication services.

Implements:
- AuthService: JWT session tokens, login, registration, password change
- AccountService: administrative listing, batch updates, promotion, deletion
"""
import logging
from typing import Optional, Dict, Any, List
from datetime import datetime, timedelta, timezone as dt_timezone
from django.conf import settings
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction, IntegrityError
import jwt

from apps.accounts.models import User
from apps.accounts.roles import RoleResolver
from apps.core.batch import BatchResult
from apps.core.encryption import mask_contact
from apps.core.exceptions import (
    ConflictError, NotFoundError, TeamflowException, ValidationError,
)
from apps.core.logging import SecurityLogger
from apps.core.store import remove_from_array, store_errors, transient_store

logger = logging.getLogger(__name__)


class AuthService:
    """
    Service for authentication operations: JWT, login, registration, passwords.
    """

    @classmethod
    def generate_jwt(cls, user: User) -> str:
        """
        Generate a session token for an account.

        The token carries the account id only. Roles are resolved per request
        and never embedded, so promotions and team changes apply immediately.
        """
        now = datetime.now(dt_timezone.utc)
        payload = {
            'user_id': user.id,
            'email': user.email,
            'exp': now + timedelta(hours=getattr(settings, 'JWT_EXPIRATION_HOURS', 24)),
            'iat': now,
        }

        return jwt.encode(
            payload,
            settings.JWT_SECRET_KEY,
            algorithm=getattr(settings, 'JWT_ALGORITHM', 'HS256')
        )

    @classmethod
    def validate_jwt(cls, token: str) -> Optional[Dict[str, Any]]:
        """Return the decoded payload, or None if the token is invalid or expired."""
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[getattr(settings, 'JWT_ALGORITHM', 'HS256')]
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def get_user_from_jwt(cls, token: str) -> Optional[User]:
        """Return the active account named by the token, or None."""
        payload = cls.validate_jwt(token)
        if not payload:
            return None

        user_id = payload.get('user_id')
        if not user_id:
            return None

        with store_errors('authenticate'):
            return User.objects.active().filter(id=user_id).first()

    @classmethod
    def login(cls, email: str, password: str) -> Optional[Dict[str, Any]]:
        """
        Check credentials and open a session.

        Returns:
            Dict with user, token and role, or None for bad credentials
        """
        with store_errors('login'):
            user = User.objects.by_email(email)

            if user is None or not user.is_active or not user.check_password(password):
                return None

            user.update_last_login()
            role = RoleResolver.resolve_role(user.id, user.account_class)

        logger.info(
            f"Login succeeded for {user.id}",
            extra={'account_id': user.id, 'role': role}
        )

        return {
            'user': user,
            'token': cls.generate_jwt(user),
            'role': role,
        }

    @classmethod
    def register_user(cls, email: str, password: str, first_name: str, last_name: str,
                      contact: str = '', avatar: str = '') -> User:
        """
        Create a User-class account.

        Raises:
            ConflictError: If the email is already registered
        """
        email = User.objects.normalize_email(email)

        with store_errors('register'):
            if User.objects.filter(email=email).exists():
                raise ConflictError('An account with this email already exists', details={'email': email})

            try:
                user = User.objects.create_user(
                    email=email,
                    password=password,
                    first_name=first_name,
                    last_name=last_name,
                    contact=contact or '',
                    avatar=avatar or '',
                )
            except IntegrityError:
                # Lost a race with a concurrent registration of the same email
                raise ConflictError('An account with this email already exists', details={'email': email})

        logger.info(
            f"Registered account {user.id}",
            extra={'account_id': user.id}
        )
        return user

    @classmethod
    def change_password(cls, user: User, current_password: str, new_password: str):
        """
        Raises:
            ValidationError: If the current password is wrong or the new one is weak
        """
        if not user.check_password(current_password):
            raise ValidationError('Current password is incorrect')

        try:
            validate_password(new_password, user)
        except DjangoValidationError as e:
            raise ValidationError('New password is too weak', details={'newPassword': list(e.messages)})

        with store_errors('change_password'):
            user.set_password(new_password)
            user.save(update_fields=['password_hash', 'updated_at'])

        logger.info(f"Password changed for {user.id}", extra={'account_id': user.id})


class AccountService:
    """
    Administrative operations on accounts.
    """

    UPDATABLE_FIELDS = ('first_name', 'last_name', 'contact', 'avatar')

    @classmethod
    @transient_store('list_accounts')
    def list_accounts(cls, account_class: str = None):
        if account_class:
            return list(User.objects.of_class(account_class))
        return list(User.objects.all())

    @classmethod
    @transient_store('get_account')
    def get_account(cls, account_id: str) -> User:
        user = User.objects.filter(id=account_id).first()
        if user is None:
            raise NotFoundError(f"Account {account_id} not found", details={'id': account_id})
        return user

    @classmethod
    def update_accounts(cls, items: List[Dict[str, Any]], updated_by: str) -> BatchResult:
        """
        Apply profile updates to several accounts.

        Each item is ``{'id': ..., <field>: ...}`` using model field names plus
        an optional ``password``. Items are independent; a bad item is
        reported and the rest still apply.
        """
        result = BatchResult()

        for item in items:
            account_id = item.get('id')
            try:
                cls._update_one(account_id, item)
            except TeamflowException as e:
                result.failed(account_id, e.message)
                continue
            result.succeeded(account_id, 'Account updated')

        logger.info(
            f"Batch account update by {updated_by}",
            extra={
                'updated_by': updated_by,
                'successful_count': result.successful_count,
                'failed_count': result.failed_count,
            }
        )
        return result

    @classmethod
    def _update_one(cls, account_id, changes):
        if not account_id:
            raise ValidationError('Account id is required')

        user = cls.get_account(account_id)

        update_fields = ['updated_at']
        for field_name in cls.UPDATABLE_FIELDS:
            if field_name in changes:
                setattr(user, field_name, changes[field_name])
                update_fields.append(field_name)

        password = changes.get('password')
        if password:
            try:
                validate_password(password, user)
            except DjangoValidationError as e:
                raise ValidationError(' '.join(e.messages))
            user.set_password(password)
            update_fields.append('password_hash')

        if len(update_fields) == 1:
            raise ValidationError('No fields to update')

        with store_errors('update_account'):
            user.save(update_fields=update_fields)

        logger.info(
            f"Updated account {account_id}",
            extra={
                'account_id': account_id,
                'fields': update_fields[1:],
                'contact': mask_contact(user.contact) if 'contact' in update_fields else None,
            }
        )

    @classmethod
    def promote_to_project_manager(cls, account_id: str, promoted_by: str) -> User:
        """
        Turn a User-class account into a Project Manager.

        Project Managers never take part in teams, so the account is first
        removed from every leader list, member list and task assignment.

        Raises:
            NotFoundError: If the account does not exist
            ConflictError: If the account is already an Admin or Project Manager
        """
        from apps.projects.models import Task, Team

        user = cls.get_account(account_id)
        if user.account_class != User.USER:
            raise ConflictError(
                f"Account {account_id} is already a {user.account_class}",
                details={'id': account_id, 'accountClass': user.account_class}
            )

        with store_errors('promote_account'), transaction.atomic():
            led = remove_from_array(Team.objects.all(), 'team_leader', account_id)
            joined = remove_from_array(Team.objects.all(), 'members', account_id)
            tasks = remove_from_array(Task.objects.all(), 'assigned_to', account_id)

            user.account_class = User.PROJECT_MANAGER
            user.save(update_fields=['account_class', 'updated_at'])

        logger.info(
            f"Promoted {account_id} to ProjectManager",
            extra={
                'account_id': account_id,
                'teams_left_as_leader': led,
                'teams_left_as_member': joined,
                'tasks_unassigned': tasks,
            }
        )
        SecurityLogger.log_account_promoted(account_id=account_id, promoted_by=promoted_by)
        return user

    @classmethod
    def delete_accounts(cls, account_ids: List[str], deleted_by: str) -> BatchResult:
        from apps.projects.services import CascadeService
        return CascadeService.delete_accounts(account_ids, deleted_by)

