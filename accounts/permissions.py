"""Role and tenancy permissions shared by all API apps."""

from rest_framework import permissions


def is_manager(user) -> bool:
    return bool(user and user.is_authenticated and getattr(user, 'is_manager', False))


class IsCompanyMember(permissions.BasePermission):
    """Authenticated user attached to a company.

    Object-level: the object must belong to the same company.
    """

    message = 'You must belong to a company to use this endpoint.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, 'company_id', None))

    def has_object_permission(self, request, view, obj):
        return getattr(obj, 'company_id', None) == request.user.company_id


class IsManager(permissions.BasePermission):
    """Only managers and admins."""

    message = 'Manager or admin role required.'

    def has_permission(self, request, view):
        return is_manager(request.user)


class IsManagerOrReadOnly(permissions.BasePermission):
    """Everyone in the company reads; managers and admins write."""

    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True
        return is_manager(request.user)


class IsAdmin(permissions.BasePermission):
    message = 'Admin role required.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, 'role', None) == 'ADMIN')
