"""
Permission classes used across the API.

This module exposes:
- `is_site_admin(user)`: True for superusers and users whose `canadmin`
  preference is "1".
- `IsSiteAdministrator`: view-level guard for user administration, the site log
  and tree creation/deletion.
- `TreeRolePermission`: view-level guard for tree-scoped endpoints. The view
  supplies the tree (`get_tree()`) and the minimum role for the current request
  (`required_role(request)`); the tree decides via `Tree.allows()`.

Security
--------
# SECURITY: Tree-scoped querysets must also be filtered by tree in the view, so a
# record id from another tree can never be reached through this tree's URL.
"""

from rest_framework.permissions import BasePermission


def is_site_admin(user) -> bool:
    """Return True when `user` administers the whole site."""
    if user is None or not getattr(user, "is_authenticated", False):
        return False
    return user.is_administrator()


class IsSiteAdministrator(BasePermission):
    """Only site administrators pass (anonymous callers never do)."""

    message = "Site administrator rights are required."

    def has_permission(self, request, view) -> bool:
        return is_site_admin(getattr(request, "user", None))


class TreeRolePermission(BasePermission):
    """
    Require the caller's role on the URL's tree to reach the view's threshold.

    Views using this permission implement:
        get_tree() -> Tree          (raises Http404 for unknown trees)
        required_role(request) -> TreeRole

    NOTE:
        Anonymous callers pass read checks only on trees whose
        `REQUIRE_AUTHENTICATION` setting is "0".
    """

    message = "You do not have the required role on this family tree."

    def has_permission(self, request, view) -> bool:
        tree = view.get_tree()
        minimum = view.required_role(request)
        return tree.allows(request.user, minimum)
