"""
Model-level tests for trees, roles, records and signals.

What these tests verify
-----------------------
- Role ranking and `Tree.allows()` (public trees, site administrators).
- Tree settings defaults and per-user tree settings.
- Automatic per-tree xrefs (retried on a unique clash) and GEDCOM name
  splitting on save.
- Signals: new users receive the default blocks and `reg_timestamp`; deleting
  an individual unlinks the users pointing at it.
"""

from unittest import mock

from django.contrib.auth import get_user_model
from django.db import IntegrityError
from django.test import SimpleTestCase, TestCase

from genealogy.models import (
    Block,
    BlockLocation,
    Family,
    Individual,
    Source,
    Tree,
    TreeRole,
    UserTreeSetting,
    role_at_least,
)

User = get_user_model()


class RoleRankTests(SimpleTestCase):
    def test_ordering(self):
        self.assertTrue(role_at_least(TreeRole.ADMIN, TreeRole.ACCEPT))
        self.assertTrue(role_at_least(TreeRole.EDIT, TreeRole.EDIT))
        self.assertFalse(role_at_least(TreeRole.ACCESS, TreeRole.EDIT))
        self.assertFalse(role_at_least("bogus", TreeRole.ACCESS))


class TreeTests(TestCase):
    def setUp(self):
        self.tree = Tree.objects.create(name="demo", title="Demo")
        self.alice = User.objects.create_user(username="alice", password="pass12345")

    def test_defaults(self):
        self.assertEqual(self.tree.get_preference("SURNAME_TRADITION"), "paternal")
        self.assertEqual(self.tree.get_preference("REQUIRE_AUTHENTICATION"), "0")
        self.assertEqual(self.tree.get_preference("CONTACT_USER_ID"), "")
        self.assertEqual(self.tree.surname_tradition.name, "paternal")

    def test_set_preference_persists(self):
        self.tree.set_preference("SURNAME_TRADITION", "polish")
        fresh = Tree.objects.get(pk=self.tree.pk)
        self.assertEqual(fresh.get_preference("SURNAME_TRADITION"), "polish")
        self.assertEqual(fresh.preferences()["SURNAME_TRADITION"], "polish")

    def test_unknown_tradition_setting_uses_default(self):
        self.tree.set_preference("SURNAME_TRADITION", "nonsense")
        self.assertEqual(self.tree.surname_tradition.name, "default")

    def test_roles(self):
        self.assertEqual(self.tree.role_for(self.alice), TreeRole.NONE)
        self.tree.set_user_preference(self.alice, "canedit", TreeRole.EDIT)
        self.assertEqual(self.tree.role_for(self.alice), TreeRole.EDIT)
        self.assertTrue(self.tree.allows(self.alice, TreeRole.EDIT))
        self.assertFalse(self.tree.allows(self.alice, TreeRole.ACCEPT))

    def test_unknown_role_value_counts_as_none(self):
        self.tree.set_user_preference(self.alice, "canedit", "superuser")
        self.assertEqual(self.tree.role_for(self.alice), TreeRole.NONE)

    def test_site_administrator_manages_every_tree(self):
        self.alice.set_preference("canadmin", "1")
        self.assertEqual(self.tree.role_for(self.alice), TreeRole.ADMIN)

    def test_public_tree_readable_by_anyone(self):
        self.assertTrue(self.tree.allows(None, TreeRole.ACCESS))
        self.tree.set_preference("REQUIRE_AUTHENTICATION", "1")
        self.assertFalse(self.tree.allows(None, TreeRole.ACCESS))
        self.assertFalse(self.tree.allows(self.alice, TreeRole.ACCESS))
        self.tree.set_user_preference(self.alice, "canedit", TreeRole.ACCESS)
        self.assertTrue(self.tree.allows(self.alice, TreeRole.ACCESS))

    def test_user_tree_setting_unique(self):
        self.tree.set_user_preference(self.alice, "gedcomid", "I1")
        self.tree.set_user_preference(self.alice, "gedcomid", "I2")
        self.assertEqual(self.tree.user_preference(self.alice, "gedcomid"), "I2")
        with self.assertRaises(IntegrityError):
            UserTreeSetting.objects.create(user=self.alice, tree=self.tree, setting_name="gedcomid")


class RecordTests(TestCase):
    def setUp(self):
        self.tree = Tree.objects.create(name="demo", title="Demo")
        self.other = Tree.objects.create(name="other", title="Other")

    def test_xrefs_assigned_per_tree_and_type(self):
        a = Individual.objects.create(tree=self.tree, name="A /One/")
        b = Individual.objects.create(tree=self.tree, name="B /One/")
        c = Individual.objects.create(tree=self.other, name="C /Two/")
        s = Source.objects.create(tree=self.tree, title="Parish register")
        f = Family.objects.create(tree=self.tree, husband=a)
        self.assertEqual((a.xref, b.xref, c.xref), ("I1", "I2", "I1"))
        self.assertEqual(s.xref, "S1")
        self.assertEqual(f.xref, "F1")

    def test_next_xref_skips_past_imported_ids(self):
        Individual.objects.create(tree=self.tree, xref="I40", name="Imported /Person/")
        Individual.objects.create(tree=self.tree, xref="Ifoo", name="Odd /Id/")
        person = Individual.objects.create(tree=self.tree, name="New /Person/")
        self.assertEqual(person.xref, "I41")

    def test_xref_clash_retries_with_a_fresh_xref(self):
        Individual.objects.create(tree=self.tree, xref="I1", name="First /Person/")
        # A concurrent create took I1 between reading the highest xref and inserting.
        with mock.patch.object(Individual, "next_xref", side_effect=["I1", "I2"]) as next_xref:
            person = Individual.objects.create(tree=self.tree, name="Second /Person/")
        self.assertEqual(person.xref, "I2")
        self.assertEqual(next_xref.call_count, 2)
        self.assertEqual(Individual.objects.filter(tree=self.tree).count(), 2)

    def test_xref_clash_gives_up_after_retries(self):
        Individual.objects.create(tree=self.tree, xref="I1", name="First /Person/")
        with mock.patch.object(Individual, "next_xref", return_value="I1"):
            with self.assertRaises(IntegrityError):
                Individual.objects.create(tree=self.tree, name="Second /Person/")
        self.assertEqual(Individual.objects.filter(tree=self.tree).count(), 1)

    def test_xref_unique_per_tree(self):
        Individual.objects.create(tree=self.tree, xref="I1", name="A")
        with self.assertRaises(IntegrityError):
            Individual.objects.create(tree=self.tree, xref="I1", name="B")

    def test_name_parts_derived_on_save(self):
        person = Individual.objects.create(tree=self.tree, name="John Paul /van der Berg/")
        self.assertEqual(person.given_names, "John Paul")
        self.assertEqual(person.surname_prefix, "van der")
        self.assertEqual(person.surname, "Berg")
        self.assertEqual(person.display_name, "John Paul van der Berg")

        person.name = "Johnny /Smith/"
        person.save(update_fields=["name"])
        person.refresh_from_db()
        self.assertEqual(person.surname, "Smith")
        self.assertEqual(person.given_names, "Johnny")


class SignalTests(TestCase):
    def test_new_user_gets_default_blocks_and_registration_time(self):
        Block.objects.create(location=BlockLocation.MAIN, block_order=0, module_name="todays_events")
        Block.objects.create(location=BlockLocation.SIDE, block_order=1, module_name="user_welcome")

        user = User.objects.create_user(username="carol", password="pass12345")

        modules = list(Block.objects.filter(user=user).values_list("location", "module_name"))
        self.assertEqual(modules, [("main", "todays_events"), ("side", "user_welcome")])
        self.assertTrue(user.get_preference("reg_timestamp").isdigit())
        # Defaults stay untouched.
        self.assertEqual(Block.objects.filter(user__isnull=True, tree__isnull=True).count(), 2)

    def test_deleting_individual_unlinks_users(self):
        tree = Tree.objects.create(name="demo", title="Demo")
        other = Tree.objects.create(name="other", title="Other")
        user = User.objects.create_user(username="carol", password="pass12345")
        person = Individual.objects.create(tree=tree, name="Carol /White/")
        tree.set_user_preference(user, "gedcomid", person.xref)
        tree.set_user_preference(user, "rootid", person.xref)
        other.set_user_preference(user, "gedcomid", person.xref)
        self.assertEqual(User.objects.find_by_individual(person), user)

        person.delete()

        self.assertEqual(tree.user_preference(user, "gedcomid"), "")
        self.assertEqual(tree.user_preference(user, "rootid"), "")
        # Same xref on another tree is a different person.
        self.assertEqual(other.user_preference(user, "gedcomid"), person.xref)
