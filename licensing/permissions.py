"""
Permission classes for licensing endpoints.
"""
from rest_framework import permissions


class IsLicensingAdmin(permissions.BasePermission):
    """
    Allow only staff users or Django superusers.

    Guards administrative transitions (activate, suspend, terminate) and the
    renewal analytics report.
    """

    def has_permission(self, request, view):
        user = getattr(request, 'user', None)
        if not user or not user.is_authenticated:
            return False
        return bool(user.is_staff or user.is_superuser)
