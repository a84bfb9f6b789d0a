from __future__ import annotations

"""
Smoke tests for the project URLconf.

What these tests verify
-----------------------
- Every router and standalone route builds its view: the first request
  resolves the whole URLconf, so one bad `as_view()` keyword breaks all
  endpoints at once.
- Custom viewset actions that carry their own throttle scope (`names/`,
  `child-names/`) are routed.
- The OpenAPI schema renders, which walks every registered view, and
  documents the `If-Match` header with an example ETag.

Notes
-----
- These stay lightweight; behaviour is covered by the per-app API tests.
"""

from django.test import TestCase
from django.urls import resolve, reverse
from rest_framework.test import APIClient

from genealogy.models import Tree


class RoutingSmokeTests(TestCase):
    def setUp(self):
        self.tree = Tree.objects.create(name="demo", title="Demo")
        self.client = APIClient()

    def test_public_endpoints_respond(self):
        for url in ("/api/census/", "/api/trees/", "/health/"):
            r = self.client.get(url)
            self.assertEqual(r.status_code, 200, (url, r.content))

    def test_actions_with_their_own_throttle_scope_are_routed(self):
        names_url = reverse("tree-names", kwargs={"name": "demo"})
        self.assertEqual(names_url, "/api/trees/demo/names/")
        self.assertEqual(resolve(names_url).func.cls.__name__, "TreeViewSet")

        child_names_url = reverse("family-child-names", kwargs={"tree": "demo", "pk": 1})
        self.assertEqual(child_names_url, "/api/trees/demo/families/1/child-names/")
        self.assertEqual(resolve(child_names_url).func.cls.__name__, "FamilyViewSet")

    def test_schema_renders(self):
        r = self.client.get("/api/schema/")
        self.assertEqual(r.status_code, 200)

    def test_schema_documents_if_match_example(self):
        r = self.client.get("/api/schema/", {"format": "json"})
        self.assertEqual(r.status_code, 200)
        operation = r.json()["paths"]["/api/trees/{name}/"]["patch"]
        if_match = next(p for p in operation["parameters"] if p["name"] == "If-Match")
        self.assertEqual(if_match["in"], "header")
        values = [example["value"] for example in if_match["examples"].values()]
        self.assertEqual(values, ['W/"3c1f0a9e..."'])
