"""Role helpers shared by the order and invoice views."""

from rest_framework.exceptions import NotFound, PermissionDenied

from .models import User


def is_admin(user):
    """Staff accounts and ``user_type='admin'`` both count as admins."""
    return bool(user and user.is_authenticated and (user.is_staff or getattr(user, 'user_type', None) == 'admin'))


def resolve_target_user(request, user_id=None):
    """User an order/invoice is created for.

    Customers always act for themselves; only admins may pass another
    ``user_id``.
    """
    if user_id in (None, '') or str(user_id) == str(request.user.pk):
        return request.user
    if not is_admin(request.user):
        raise PermissionDenied('Only admins can act on behalf of another user')
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        raise NotFound('User not found')
    return user
