"""
Authorization
=============

The authentication gate (outside this service) resolves WHO is calling.
This module answers one question per operation: may this caller do this?

authorize(caller, required_role, owner_id) replaces scattered
`if role == 'author' and ...` checks:

    - required_role: the lowest tier allowed to attempt the operation
    - owner_id: when given, an `author` must also own the resource;
      admins and super admins act on anything at or below their tier

Role ladder: author < admin < super_admin
"""

from dataclasses import dataclass
from typing import Optional

from rest_framework import permissions

from .exceptions import PermissionDeniedError
from .models import Profile

ROLE_RANK = {
    Profile.Role.AUTHOR: 1,
    Profile.Role.ADMIN: 2,
    Profile.Role.SUPER_ADMIN: 3,
}


@dataclass(frozen=True)
class Caller:
    """Resolved (user_id, role) pair handed to engine operations."""
    user_id: int
    role: Optional[str]


def caller_for(user) -> Caller:
    """
    Resolve a Django user to a Caller.

    Superusers without a profile act as super_admin; any other user
    without a profile has no role at all.
    """
    profile = getattr(user, 'profile', None) if user is not None else None
    if profile is not None:
        return Caller(user_id=user.id, role=profile.role)
    if user is not None and user.is_superuser:
        return Caller(user_id=user.id, role=Profile.Role.SUPER_ADMIN)
    return Caller(user_id=getattr(user, 'id', None), role=None)


def has_role(caller: Caller, required_role: str) -> bool:
    return ROLE_RANK.get(caller.role, 0) >= ROLE_RANK[required_role]


def authorize(caller: Caller, required_role: str, owner_id: Optional[int] = None) -> None:
    """Raise PermissionDeniedError unless the caller may act."""
    if not has_role(caller, required_role):
        raise PermissionDeniedError(
            f"Role '{required_role}' or above is required",
            required_role=required_role
        )

    if owner_id is not None and caller.role == Profile.Role.AUTHOR and caller.user_id != owner_id:
        raise PermissionDeniedError("You can only modify your own posts")


def _user_caller(request) -> Optional[Caller]:
    user = request.user
    if not user or not user.is_authenticated:
        return None
    return caller_for(user)


class IsAuthorOrAbove(permissions.BasePermission):
    """Any registered writer: author, admin or super_admin."""

    def has_permission(self, request, view):
        caller = _user_caller(request)
        return caller is not None and has_role(caller, Profile.Role.AUTHOR)


class IsModerator(permissions.BasePermission):
    """Admins and super admins - comment moderation and submission review."""

    def has_permission(self, request, view):
        caller = _user_caller(request)
        return caller is not None and has_role(caller, Profile.Role.ADMIN)
