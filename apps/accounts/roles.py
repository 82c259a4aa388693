"""
Effective role resolution.

Admin and ProjectManager are stored account classes. Everyone else gets a
role from team membership at the moment of the request:

    leads a team      member of a team    role
    no                no                  User
    yes               no                  TeamLeader
    no                yes                 TeamMember
    yes               yes                 TeamLeaderAndMember

Roles are computed on every call. Nothing is cached, so a team change is
visible on the very next request.
"""
import logging
from dataclasses import dataclass, field
from typing import List

from apps.core.permissions import Role
from apps.core.store import array_contains, store_errors

logger = logging.getLogger(__name__)


@dataclass
class Participation:
    leading: List[str] = field(default_factory=list)
    member_of: List[str] = field(default_factory=list)

    def to_dict(self):
        return {'leading': self.leading, 'memberOf': self.member_of}


class RoleResolver:

    STORED_ROLES = {Role.ADMIN, Role.PROJECT_MANAGER}

    @staticmethod
    def role_from_flags(is_leader: bool, is_member: bool) -> str:
        if is_leader and is_member:
            return Role.TEAM_LEADER_AND_MEMBER
        if is_leader:
            return Role.TEAM_LEADER
        if is_member:
            return Role.TEAM_MEMBER
        return Role.USER

    @classmethod
    def resolve_role(cls, account_id: str, account_class: str) -> str:
        """
        Return the effective role of an account.

        Raises:
            TransientStoreError: If the team lookup fails; callers must
                treat the request as unauthenticated
        """
        if account_class in cls.STORED_ROLES:
            return account_class

        from apps.projects.models import Team

        with store_errors('resolve_role'):
            is_leader = Team.objects.filter(array_contains('team_leader', account_id)).exists()
            is_member = Team.objects.filter(array_contains('members', account_id)).exists()

        role = cls.role_from_flags(is_leader, is_member)
        logger.debug(
            f"Resolved role {role} for {account_id}",
            extra={'account_id': account_id, 'role': role}
        )
        return role

    @classmethod
    def participation(cls, account_id: str) -> Participation:
        """Return the ids of the teams the account leads and belongs to."""
        from apps.projects.models import Team

        with store_errors('participation'):
            leading = list(
                Team.objects.filter(array_contains('team_leader', account_id)).values_list('id', flat=True)
            )
            member_of = list(
                Team.objects.filter(array_contains('members', account_id)).values_list('id', flat=True)
            )

        return Participation(leading=leading, member_of=member_of)
