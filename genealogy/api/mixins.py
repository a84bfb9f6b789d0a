"""
Mixins shared by API viewsets.

Contents
--------
- ETagConcurrencyMixin
    Optimistic concurrency for detail endpoints using **weak ETags**
    (see `core.utils.concurrency`).
    * GET (retrieve): attaches an `ETag` header.
    * PUT/PATCH/DELETE: validates `If-Match` against the current ETag
      (412 on mismatch, 428 when `ENFORCE_IF_MATCH` is on and the header is
      missing).

    WHY:
      The fingerprint covers every persisted field, so edits made by imports,
      the admin or accepted pending changes rotate the tag too. List endpoints
      do not carry ETags.

- TreeLookupMixin
    Resolves the `{tree}` URL segment once per request and exposes the
    `get_tree()` / `required_role()` pair `TreeRolePermission` relies on.
"""

from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework.permissions import SAFE_METHODS
from rest_framework.response import Response

from core.utils.concurrency import check_if_match, compute_etag
from genealogy.models import Tree, TreeRole


class ETagConcurrencyMixin:
    """Weak ETag on retrieve; `If-Match` precondition on update and destroy."""

    def check_preconditions(self, request, obj) -> None:
        """Raise 412/428 when `If-Match` does not allow modifying `obj`."""
        check_if_match(request, obj)

    def set_etag(self, response: Response, obj) -> Response:
        response["ETag"] = compute_etag(obj)
        return response

    def retrieve(self, request, *args, **kwargs) -> Response:
        instance = self.get_object()
        serializer = self.get_serializer(instance)
        return self.set_etag(Response(serializer.data), instance)

    def update(self, request, *args, **kwargs) -> Response:
        """
        Enforce If-Match, perform the update, and return the new ETag.

        NOTE:
            The row is re-read after saving so the tag reflects the database
            state (auto_now timestamps included).
        """
        obj = self.get_object()
        self.check_preconditions(request, obj)
        response = super().update(request, *args, **kwargs)
        obj.refresh_from_db()
        return self.set_etag(response, obj)

    def destroy(self, request, *args, **kwargs) -> Response:
        obj = self.get_object()
        self.check_preconditions(request, obj)
        return super().destroy(request, *args, **kwargs)


class TreeLookupMixin:
    """
    Tree resolution for routes nested under `trees/{tree}/`.

    Reads need `access` on the tree, writes need `edit`; views override
    `required_role()` for stricter actions.
    """

    tree_url_kwarg = "tree"
    read_role = TreeRole.ACCESS
    write_role = TreeRole.EDIT

    def get_tree(self) -> Tree:
        tree = getattr(self, "_tree", None)
        if tree is None:
            tree = get_object_or_404(Tree, name=self.kwargs[self.tree_url_kwarg])
            self._tree = tree
        return tree

    def required_role(self, request) -> str:
        return self.read_role if request.method in SAFE_METHODS else self.write_role

    def is_schema_view(self) -> bool:
        """drf-spectacular introspects views without URL kwargs."""
        return getattr(self, "swagger_fake_view", False)
