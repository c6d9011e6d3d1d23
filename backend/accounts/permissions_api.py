from rest_framework import permissions


def is_admin(user) -> bool:
    if not user or not getattr(user, 'is_authenticated', False):
        return False
    return bool(getattr(user, 'is_superuser', False)) or getattr(user, 'role', None) == 'admin'


def profile_id(user, profile: str):
    """Primary key of the user's `teacher_profile` / `student_profile`, or None."""
    obj = getattr(user, profile, None)
    return getattr(obj, 'pk', None)


class HasRole(permissions.BasePermission):
    """Allow authenticated users whose `role` is listed in `allowed_roles`.

    Views set `allowed_roles` (a tuple of `User.Role` values). Superusers
    always pass.
    """

    allowed_roles: tuple = ()

    def has_permission(self, request, view):
        user = getattr(request, 'user', None)
        if not user or not user.is_authenticated:
            return False
        if getattr(user, 'is_superuser', False):
            return True

        allowed = getattr(view, 'allowed_roles', None) or self.allowed_roles
        if not allowed:
            return True
        return getattr(user, 'role', None) in allowed


class IsAdminRole(permissions.BasePermission):
    def has_permission(self, request, view):
        return is_admin(getattr(request, 'user', None))


class IsCoordinator(permissions.BasePermission):
    """Admins, coordinators, and teachers flagged `is_coordinator`."""

    def has_permission(self, request, view):
        user = getattr(request, 'user', None)
        if not user or not user.is_authenticated:
            return False
        return bool(getattr(user, 'is_superuser', False)) or bool(getattr(user, 'can_coordinate', False))
