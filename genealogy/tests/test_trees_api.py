"""
Tree API tests (`/api/trees/`).

What these tests verify
-----------------------
- The list only shows trees the caller may read.
- Site administrators create and delete trees; managers rename them, edit
  preferences and grant roles. Every change writes a `config` log row.
- `names/` returns the tree tradition's suggestions.
"""

from django.contrib.auth import get_user_model
from rest_framework.test import APIClient, APITestCase

from genealogy.models import Individual, LogType, SiteLog, Tree, TreeRole

User = get_user_model()


class TreeApiTests(APITestCase):
    def setUp(self):
        self.public = Tree.objects.create(name="public", title="Public tree")
        self.private = Tree.objects.create(name="private", title="Private tree")
        self.private.set_preference("REQUIRE_AUTHENTICATION", "1")

        self.admin = User.objects.create_user(username="admin", password="pw")
        self.admin.set_preference("canadmin", "1")
        self.manager = User.objects.create_user(username="manager", password="pw")
        self.member = User.objects.create_user(username="member", password="pw")
        self.private.set_user_preference(self.manager, "canedit", TreeRole.ADMIN)
        self.private.set_user_preference(self.member, "canedit", TreeRole.ACCESS)
        self.client = APIClient()

    def _names(self, response):
        return [row["name"] for row in response.json()["results"]]

    def test_list_visibility(self):
        self.assertEqual(self._names(self.client.get("/api/trees/")), ["public"])

        self.client.force_authenticate(self.member)
        self.assertEqual(sorted(self._names(self.client.get("/api/trees/"))), ["private", "public"])

        outsider = User.objects.create_user(username="outsider", password="pw")
        self.client.force_authenticate(outsider)
        self.assertEqual(self._names(self.client.get("/api/trees/")), ["public"])

        self.client.force_authenticate(self.admin)
        self.assertEqual(sorted(self._names(self.client.get("/api/trees/"))), ["private", "public"])

    def test_retrieve_includes_role(self):
        self.client.force_authenticate(self.member)
        r = self.client.get("/api/trees/private/")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["role"], "access")
        self.assertEqual(self.client.get("/api/trees/public/").json()["role"], "none")

    def test_private_tree_hidden_from_visitors(self):
        self.assertEqual(self.client.get("/api/trees/private/").status_code, 403)

    def test_create_and_delete_need_site_admin(self):
        self.client.force_authenticate(self.manager)
        r = self.client.post("/api/trees/", {"name": "new-tree", "title": "New"}, format="json")
        self.assertEqual(r.status_code, 403)

        self.client.force_authenticate(self.admin)
        r = self.client.post("/api/trees/", {"name": "new-tree", "title": "New"}, format="json")
        self.assertEqual(r.status_code, 201, r.content)
        self.assertTrue(SiteLog.objects.filter(log_type=LogType.CONFIG, message="Tree created: new-tree").exists())

        r = self.client.delete("/api/trees/new-tree/")
        self.assertEqual(r.status_code, 204)
        self.assertFalse(Tree.objects.filter(name="new-tree").exists())

    def test_manager_renames(self):
        self.client.force_authenticate(self.manager)
        r = self.client.patch("/api/trees/private/", {"title": "Renamed"}, format="json")
        self.assertEqual(r.status_code, 200, r.content)
        self.client.force_authenticate(self.member)
        r = self.client.patch("/api/trees/private/", {"title": "Nope"}, format="json")
        self.assertEqual(r.status_code, 403)

    def test_preferences(self):
        self.client.force_authenticate(self.member)
        r = self.client.get("/api/trees/private/preferences/")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["SURNAME_TRADITION"], "paternal")
        self.assertEqual(r.json()["REQUIRE_AUTHENTICATION"], "1")
        r = self.client.patch("/api/trees/private/preferences/", {"SURNAME_TRADITION": "polish"}, format="json")
        self.assertEqual(r.status_code, 403)

        self.client.force_authenticate(self.manager)
        r = self.client.patch(
            "/api/trees/private/preferences/",
            {"SURNAME_TRADITION": "polish", "CONTACT_USER_ID": str(self.manager.pk)},
            format="json",
        )
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.json()["SURNAME_TRADITION"], "polish")
        self.assertEqual(Tree.objects.get(name="private").get_preference("CONTACT_USER_ID"), str(self.manager.pk))
        self.assertTrue(SiteLog.objects.filter(log_type=LogType.CONFIG, tree=self.private).exists())

    def test_preferences_validation(self):
        self.client.force_authenticate(self.manager)
        url = "/api/trees/private/preferences/"
        self.assertEqual(self.client.patch(url, {"SURNAME_TRADITION": "klingon"}, format="json").status_code, 400)
        self.assertEqual(self.client.patch(url, {"REQUIRE_AUTHENTICATION": "yes"}, format="json").status_code, 400)
        self.assertEqual(self.client.patch(url, {"WEBMASTER_USER_ID": "99999"}, format="json").status_code, 400)

    def test_grant_access(self):
        Individual.objects.create(tree=self.private, xref="I1", name="Bob /Member/")
        newcomer = User.objects.create_user(username="newcomer", password="pw")
        self.client.force_authenticate(self.manager)

        r = self.client.post(
            "/api/trees/private/access/",
            {"user": "newcomer", "role": "edit", "gedcomid": "I1"},
            format="json",
        )
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.json(), {"user": "newcomer", "role": "edit", "gedcomid": "I1", "rootid": ""})
        self.assertEqual(self.private.role_for(newcomer), TreeRole.EDIT)

        r = self.client.post(
            "/api/trees/private/access/", {"user": "newcomer", "role": "edit", "rootid": "I99"}, format="json"
        )
        self.assertEqual(r.status_code, 400)
        r = self.client.post("/api/trees/private/access/", {"user": "ghost", "role": "edit"}, format="json")
        self.assertEqual(r.status_code, 400)

    def test_member_cannot_grant_access(self):
        self.client.force_authenticate(self.member)
        r = self.client.post("/api/trees/private/access/", {"user": "member", "role": "admin"}, format="json")
        self.assertEqual(r.status_code, 403)

    def test_name_suggestions(self):
        self.client.force_authenticate(self.member)
        r = self.client.post(
            "/api/trees/private/names/",
            {"relation": "child", "father_name": "John /White/", "mother_name": "Mary /Black/", "sex": "M"},
            format="json",
        )
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(
            r.json(),
            {"tradition": "paternal", "has_surnames": True, "has_married_names": True,
             "names": {"NAME": "/White/", "SURN": "White"}},
        )

        r = self.client.post(
            "/api/trees/private/names/", {"relation": "spouse", "spouse_name": "John /White/", "sex": "F"},
            format="json",
        )
        self.assertEqual(r.json()["names"], {"NAME": "//", "_MARNM": "/White/"})

        r = self.client.post("/api/trees/private/names/", {"relation": "cousin"}, format="json")
        self.assertEqual(r.status_code, 400)

    def test_name_suggestions_on_public_tree_for_visitors(self):
        self.public.set_preference("SURNAME_TRADITION", "icelandic")
        r = self.client.post(
            "/api/trees/public/names/", {"relation": "child", "father_name": "Jon Einarsson", "sex": "F"},
            format="json",
        )
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["names"], {"NAME": "Jonsdottir"})
        self.assertFalse(r.json()["has_surnames"])
