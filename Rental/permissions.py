from rest_framework.permissions import BasePermission


class IsOperator(BasePermission):
    message = 'Only operators can manage vehicles.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, 'is_operator', False))
