"""
Access-Control Gate.

Every protected operation is checked against a fixed role table, plus a
record ownership rule when the operation targets a record another account
may have created.

This module provides:
- Role: the effective roles an account can hold
- AccessGate: pure decision functions over the operation table
- HasOperationAccess: DRF permission class applying the gate per request
- @requires_operation: decorator declaring the operation on views
"""
import logging
from dataclasses import dataclass
from functools import wraps
from rest_framework.permissions import BasePermission

from apps.core.exceptions import AuthenticationError, PermissionDeniedError, TransientStoreError

logger = logging.getLogger(__name__)


class Role:
    """Effective roles. Only Admin and ProjectManager are ever stored."""

    ADMIN = 'Admin'
    PROJECT_MANAGER = 'ProjectManager'
    TEAM_LEADER = 'TeamLeader'
    TEAM_MEMBER = 'TeamMember'
    TEAM_LEADER_AND_MEMBER = 'TeamLeaderAndMember'
    USER = 'User'

    ALL = (ADMIN, PROJECT_MANAGER, TEAM_LEADER, TEAM_MEMBER, TEAM_LEADER_AND_MEMBER, USER)
    LEADERS = (TEAM_LEADER, TEAM_LEADER_AND_MEMBER)
    MEMBERS = (TEAM_MEMBER, TEAM_LEADER_AND_MEMBER)
    PARTICIPANTS = (TEAM_LEADER, TEAM_MEMBER, TEAM_LEADER_AND_MEMBER)


OPERATION_ROLES = {
    'accounts:list': {Role.ADMIN},
    'accounts:update': {Role.ADMIN},
    'accounts:delete': {Role.ADMIN},
    'accounts:promote': {Role.ADMIN},

    'teams:view': {Role.PROJECT_MANAGER},
    'teams:create': {Role.PROJECT_MANAGER},
    'teams:update': {Role.PROJECT_MANAGER},
    'teams:delete': {Role.PROJECT_MANAGER},

    'projects:view': {Role.PROJECT_MANAGER},
    'projects:create': {Role.PROJECT_MANAGER},
    'projects:update': {Role.PROJECT_MANAGER},
    'projects:delete': {Role.PROJECT_MANAGER},
    'projects:assign': {Role.PROJECT_MANAGER},
    'projects:unassign': {Role.PROJECT_MANAGER},

    'tasks:create': set(Role.LEADERS),
    'tasks:review': set(Role.LEADERS),
    'tasks:submit': set(Role.MEMBERS),
    'tasks:view': set(Role.PARTICIPANTS),
}


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str = ''

    def __bool__(self):
        return self.allowed


class AccessGate:
    """
    Decides whether a role may perform an operation.

    The role check and the ownership check are independent: an allowed role
    acting on a record created by someone else is still denied.
    """

    @classmethod
    def authorize(cls, role, operation, caller_id=None, target_owner_id=None) -> AccessDecision:
        allowed_roles = OPERATION_ROLES.get(operation)
        if allowed_roles is None:
            return AccessDecision(False, f"Unknown operation '{operation}'")

        if role not in allowed_roles:
            return AccessDecision(False, f"Role '{role}' may not perform '{operation}'")

        if target_owner_id is not None and target_owner_id != caller_id:
            return AccessDecision(False, 'Record is owned by another account')

        return AccessDecision(True)

    @classmethod
    def enforce(cls, role, operation, caller_id=None, target_owner_id=None):
        """Raise PermissionDeniedError unless ``authorize`` allows the call."""
        decision = cls.authorize(role, operation, caller_id, target_owner_id)
        if not decision.allowed:
            from apps.core.logging import SecurityLogger
            SecurityLogger.log_permission_denied(
                account_id=caller_id,
                role=role,
                operation=operation,
                reason=decision.reason,
            )
            raise PermissionDeniedError(decision.reason, details={'operation': operation})
        return decision

    @classmethod
    def enforce_ownership(cls, records, caller_id, operation, owner_field='created_by'):
        """
        Require every record in ``records`` to be owned by ``caller_id``.

        All-or-nothing: one foreign record denies the whole batch.
        """
        foreign = [record.pk for record in records if getattr(record, owner_field) != caller_id]
        if foreign:
            from apps.core.logging import SecurityLogger
            SecurityLogger.log_permission_denied(
                account_id=caller_id,
                role=None,
                operation=operation,
                reason=f"Records owned by another account: {foreign}",
            )
            raise PermissionDeniedError(
                'You can only modify records you created',
                details={'operation': operation, 'ids': foreign},
            )


class HasOperationAccess(BasePermission):
    """
    DRF permission class that applies the operation table to a request.

    The caller's effective role is resolved from team membership on every
    request and stored on ``request.role``. A role lookup that fails against
    the store is treated as unauthenticated.

    Usage in views:
        @requires_operation('teams:create')
        class TeamCreateView(APIView):
            permission_classes = [HasOperationAccess]

    Or per method:
        class TaskListView(APIView):
            permission_classes = [HasOperationAccess]

            @requires_operation('tasks:view')
            def get(self, request):
                pass
    """

    def has_permission(self, request, view):
        operation = self._operation_for(request, view)

        user = getattr(request, 'user', None)
        if not user or not getattr(user, 'is_authenticated', False):
            raise AuthenticationError('Authentication credentials were not provided')

        role = self._resolve_role(request, user)

        if operation is None:
            return True

        decision = AccessGate.authorize(role, operation)
        if not decision.allowed:
            from apps.core.logging import SecurityLogger
            SecurityLogger.log_permission_denied(
                account_id=user.pk,
                role=role,
                operation=operation,
                reason=decision.reason,
                ip_address=request.META.get('REMOTE_ADDR'),
            )
            logger.warning(
                f"Permission denied: {user.pk} as {role} for {operation}",
                extra={
                    'account_id': user.pk,
                    'role': role,
                    'operation': operation,
                    'view': view.__class__.__name__,
                    'method': request.method,
                    'path': request.path,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            raise PermissionDeniedError(decision.reason, details={'operation': operation})

        return True

    @staticmethod
    def _operation_for(request, view):
        handler = getattr(view, request.method.lower(), None)
        operation = getattr(handler, 'required_operation', None)
        if operation is None:
            operation = getattr(view, 'required_operation', None)
        return operation

    @staticmethod
    def _resolve_role(request, user):
        from apps.accounts.roles import RoleResolver

        try:
            role = RoleResolver.resolve_role(user.pk, user.account_class)
        except TransientStoreError as e:
            raise role_unverifiable(request, user, e) from e

        request.role = role
        return role


def role_unverifiable(request, user, error):
    """
    Log a failed role lookup and return the 401 to raise for it.

    Membership lookups that fail against the store never fall through to a
    guessed role; the caller is treated as unauthenticated.
    """
    from apps.core.logging import SecurityLogger
    SecurityLogger.log_role_resolution_failed(
        account_id=user.pk,
        error=error.message,
        ip_address=request.META.get('REMOTE_ADDR'),
    )
    return AuthenticationError('Could not verify your role. Please sign in again.')


def requires_operation(operation):
    """
    Decorator to declare the gated operation on a view class or method.

    The attribute is read by HasOperationAccess before the handler runs.
    """
    def decorator(view_or_method):
        if isinstance(view_or_method, type):
            view_or_method.required_operation = operation
            return view_or_method

        @wraps(view_or_method)
        def wrapped(self, request, *args, **kwargs):
            return view_or_method(self, request, *args, **kwargs)

        wrapped.required_operation = operation
        return wrapped

    return decorator
