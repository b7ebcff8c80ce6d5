from rest_framework.permissions import BasePermission, SAFE_METHODS


class IsStaffOrReadOnly(BasePermission):
    """
    Anyone authenticated may read; writes need is_staff.
    """

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return bool(request.user and request.user.is_staff)


class IsStaff(BasePermission):
    """
    Approval-type actions (approve, complete, cancel).
    """

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_staff)
