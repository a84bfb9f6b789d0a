"""
Pending change review tests (`/api/trees/{tree}/changes/`).

What these tests verify
-----------------------
- Editors list only their own changes; moderators see the whole queue.
- Accepting applies creates, partial updates and deletes; rejecting closes.
- A change can be reviewed once (409 afterwards), and accepting a change
  whose record vanished is a 409 too.
- Editors cannot review changes.
"""

from django.contrib.auth import get_user_model
from rest_framework.test import APIClient, APITestCase

from genealogy import changes
from genealogy.models import ChangeAction, ChangeStatus, Individual, PendingChange, RecordType, Tree, TreeRole

User = get_user_model()


class PendingChangeApiTests(APITestCase):
    def setUp(self):
        self.tree = Tree.objects.create(name="demo", title="Demo")
        self.editor = User.objects.create_user(username="editor", password="pass12345")
        self.other_editor = User.objects.create_user(username="editor2", password="pass12345")
        self.moderator = User.objects.create_user(username="moderator", password="pass12345")
        self.tree.set_user_preference(self.editor, "canedit", TreeRole.EDIT)
        self.tree.set_user_preference(self.other_editor, "canedit", TreeRole.EDIT)
        self.tree.set_user_preference(self.moderator, "canedit", TreeRole.ACCEPT)
        self.client = APIClient()
        self.base = "/api/trees/demo/changes/"

    def _propose(self, user, action=ChangeAction.CREATE, instance=None, data=None):
        return changes.propose(self.tree, user, RecordType.INDIVIDUAL, action, instance=instance, data=data)

    def test_editors_see_own_changes_only(self):
        mine = self._propose(self.editor, data={"name": "Ann /White/"})
        self._propose(self.other_editor, data={"name": "Bob /White/"})

        self.client.force_authenticate(self.editor)
        r = self.client.get(self.base)
        self.assertEqual(r.status_code, 200)
        self.assertEqual([row["id"] for row in r.json()["results"]], [mine.pk])

        self.client.force_authenticate(self.moderator)
        r = self.client.get(self.base)
        self.assertEqual(r.json()["count"], 2)

    def test_filter_by_status(self):
        self._propose(self.editor, data={"name": "Ann /White/"})
        done = self._propose(self.editor, data={"name": "Bob /White/"})
        changes.reject(done, self.moderator)

        self.client.force_authenticate(self.moderator)
        r = self.client.get(self.base, {"status": "rejected"})
        self.assertEqual([row["id"] for row in r.json()["results"]], [done.pk])

    def test_accept_create(self):
        change = self._propose(self.editor, data={"name": "Ann /White/", "sex": "F"})
        self.client.force_authenticate(self.moderator)

        r = self.client.post(f"{self.base}{change.pk}/accept/")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.json()["status"], "accepted")
        self.assertEqual(r.json()["reviewed_by"], "moderator")

        person = Individual.objects.get(tree=self.tree)
        self.assertEqual(person.name, "Ann /White/")
        self.assertEqual(r.json()["xref"], person.xref)
        self.assertEqual(r.json()["object_id"], person.pk)

    def test_accept_update_is_partial(self):
        person = Individual.objects.create(tree=self.tree, name="John /White/", birth_place="Leeds")
        change = self._propose(self.editor, ChangeAction.UPDATE, instance=person, data={"birth_date": "1901"})
        changes.accept(change, self.moderator)
        person.refresh_from_db()
        self.assertEqual(person.birth_date, "1901")
        self.assertEqual(person.birth_place, "Leeds")

    def test_accept_delete(self):
        person = Individual.objects.create(tree=self.tree, name="John /White/")
        change = self._propose(self.editor, ChangeAction.DELETE, instance=person)
        self.assertIsNone(changes.accept(change, self.moderator))
        self.assertFalse(Individual.objects.filter(pk=person.pk).exists())

    def test_reject(self):
        change = self._propose(self.editor, data={"name": "Ann /White/"})
        self.client.force_authenticate(self.moderator)
        r = self.client.post(f"{self.base}{change.pk}/reject/")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["status"], "rejected")
        self.assertFalse(Individual.objects.exists())

    def test_second_review_conflicts(self):
        change = self._propose(self.editor, data={"name": "Ann /White/"})
        self.client.force_authenticate(self.moderator)
        self.assertEqual(self.client.post(f"{self.base}{change.pk}/accept/").status_code, 200)
        r = self.client.post(f"{self.base}{change.pk}/reject/")
        self.assertEqual(r.status_code, 409)
        self.assertEqual(r.json()["code"], "change_conflict")

    def test_vanished_record_conflicts(self):
        person = Individual.objects.create(tree=self.tree, name="John /White/")
        change = self._propose(self.editor, ChangeAction.UPDATE, instance=person, data={"birth_date": "1901"})
        person.delete()

        self.client.force_authenticate(self.moderator)
        r = self.client.post(f"{self.base}{change.pk}/accept/")
        self.assertEqual(r.status_code, 409)
        change.refresh_from_db()
        self.assertEqual(change.status, ChangeStatus.PENDING)

    def test_stale_data_fails_validation(self):
        change = self._propose(self.editor, data={"sex": "M"})
        self.client.force_authenticate(self.moderator)
        r = self.client.post(f"{self.base}{change.pk}/accept/")
        self.assertEqual(r.status_code, 400)
        self.assertEqual(PendingChange.objects.get(pk=change.pk).status, ChangeStatus.PENDING)

    def test_editor_cannot_review(self):
        change = self._propose(self.other_editor, data={"name": "Ann /White/"})
        self.client.force_authenticate(self.editor)
        self.assertEqual(self.client.post(f"{self.base}{change.pk}/accept/").status_code, 403)
