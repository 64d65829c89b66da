from rest_framework.permissions import SAFE_METHODS, BasePermission


class IsManager(BasePermission):
    """Allows access only to users with role MANAGER or superuser."""

    def has_permission(self, request, view):
        user = request.user
        return bool(
            user
            and user.is_authenticated
            and (user.is_superuser or getattr(user, "role", None) == "MANAGER")
        )


class IsStaffMember(BasePermission):
    """Allows access to MANAGER or ATTENDANT roles (and superusers)."""

    def has_permission(self, request, view):
        user = request.user
        return bool(
            user
            and user.is_authenticated
            and (
                user.is_superuser
                or getattr(user, "role", None) in ("MANAGER", "ATTENDANT")
            )
        )


class IsManagerOrReadOnly(BasePermission):
    """Staff may read; only managers may write."""

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return IsStaffMember().has_permission(request, view)
        return IsManager().has_permission(request, view)
