"""
Permission classes for back-office API endpoints.

- BelongsToCompany: User is attached to an operating company
- IsAccountingStaff: User may generate, approve or reject settlements
- IsContractManager: User may create and adjust contracts

Every queryset behind these permissions is scoped to
``request.user.company_id``; objects of other companies answer 404.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

from accounts.models import UserRole

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


class BelongsToCompany(permissions.BasePermission):
    message = "Your account is not attached to a company."

    def has_permission(self, request: Request, view: APIView) -> bool:
        user = request.user
        return bool(user and user.is_authenticated and user.company_id)


class _RolePermission(BelongsToCompany):
    """Read access for any company user; writes only for ``allowed_roles``."""

    allowed_roles: frozenset[str] = frozenset()

    def has_permission(self, request: Request, view: APIView) -> bool:
        if not super().has_permission(request, view):
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        return request.user.is_superuser or request.user.role in self.allowed_roles


class IsAccountingStaff(_RolePermission):
    message = "Only accounting staff can change settlements or payables."
    allowed_roles = frozenset({UserRole.ADMIN, UserRole.ACCOUNTING})


class IsContractManager(_RolePermission):
    message = "Only commercial or accounting staff can change contracts."
    allowed_roles = frozenset(
        {UserRole.ADMIN, UserRole.ACCOUNTING, UserRole.COMMERCIAL, UserRole.COORDINATOR}
    )
