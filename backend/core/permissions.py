# backend/core/permissions.py
from rest_framework.permissions import BasePermission


class ActionPermission(BasePermission):
    """
    Maps ViewSet actions to Django permission codes.

    Views declare:
        action_permissions = {
            "list": "agreements.view_agreement",
            "create": "agreements.add_agreement",
            ...
        }

    Actions that are not listed fall back to `default_permission` (if set on the
    view) or are allowed for any authenticated user. Superusers always pass.
    """

    message = "You do not have permission to perform this action."

    def get_required_permission(self, view):
        mapping = getattr(view, "action_permissions", None) or {}
        action = getattr(view, "action", None)
        if action in mapping:
            return mapping[action]
        return getattr(view, "default_permission", None)

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            self.message = "Authentication required."
            return False
        if user.is_superuser:
            return True

        required = self.get_required_permission(view)
        if not required:
            return True
        if isinstance(required, str):
            required = (required,)
        return user.has_perms(required)
