"""
Authz permission helpers shared by the API apps.
"""


def get_user_roles(request):
    """Return the set of role names for the authenticated request user."""
    if not request.user or not request.user.is_authenticated:
        return set()
    return set(
        request.user.user_roles.values_list('role__name', flat=True)
    )
