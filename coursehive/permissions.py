from rest_framework import permissions


class IsAdminRole(permissions.BasePermission):
    message = "Only admins can perform this action."

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and is_admin(request.user))


class IsAdminOrReadOnly(permissions.BasePermission):
    message = "Only admins can perform this action."

    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True
        return is_admin(request.user)


def is_admin(user):
    if user.is_staff:
        return True
    return hasattr(user, 'profile') and user.profile.role == 'admin'
