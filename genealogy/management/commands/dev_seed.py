from __future__ import annotations

"""
Seed development data for the Family Tree app.

Goals
-----
- Fast local onboarding with small, deterministic sample data.
- Idempotent-ish: uses `get_or_create` so re-running keeps data consistent
  without creating duplicates.

What it creates
---------------
- Site default home-page blocks (copied to every new user).
- Users "admin" (site administrator), "alice" (editor) and "bob" (member),
  all with the password given by `--password`.
- A tree "demo" with three generations of one family.

Safety
------
- `--reset` deletes the demo tree (and its records) before seeding.
- The command runs in one transaction.

Usage
-----
    python manage.py dev_seed
    python manage.py dev_seed --reset --tradition polish
"""

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandParser
from django.db import transaction

from genealogy.models import Block, BlockLocation, Family, Individual, Tree, TreeRole
from genealogy.surname_traditions import TRADITIONS

User = get_user_model()

DEFAULT_BLOCKS = (
    (BlockLocation.MAIN, "todays_events"),
    (BlockLocation.MAIN, "user_messages"),
    (BlockLocation.MAIN, "user_favorites"),
    (BlockLocation.SIDE, "user_welcome"),
    (BlockLocation.SIDE, "random_media"),
    (BlockLocation.SIDE, "upcoming_events"),
)

# (username, real name, site admin?, role on the demo tree)
USERS = (
    ("admin", "Site Administrator", True, TreeRole.ADMIN),
    ("alice", "Alice Editor", False, TreeRole.EDIT),
    ("bob", "Bob Member", False, TreeRole.ACCESS),
)


class Command(BaseCommand):
    help = "Seed development data (idempotent). Use --reset to recreate the demo tree."

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument("--reset", action="store_true", help="Delete the demo tree first.")
        parser.add_argument("--password", default="pass12345", help="Password for the seeded users.")
        parser.add_argument(
            "--tradition",
            default="paternal",
            choices=sorted(TRADITIONS),
            help="Surname tradition of the demo tree.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if options["reset"]:
            Tree.objects.filter(name="demo").delete()
            self.stdout.write(self.style.WARNING("Deleted the demo tree."))

        # Defaults first: the user post_save signal copies them.
        for order, (location, module) in enumerate(DEFAULT_BLOCKS):
            Block.objects.get_or_create(
                user=None, tree=None, module_name=module,
                defaults={"location": location, "block_order": order},
            )

        tree, _ = Tree.objects.get_or_create(name="demo", defaults={"title": "Demo family"})
        tree.set_preference("SURNAME_TRADITION", options["tradition"])

        for username, real_name, is_admin, role in USERS:
            user, created = User.objects.get_or_create(
                username=username, defaults={"real_name": real_name, "email": f"{username}@example.com"}
            )
            if created:
                user.change_password(options["password"])
            if is_admin:
                user.set_preference("canadmin", "1")
            tree.set_user_preference(user, "canedit", role)

        people = self._seed_people(tree)
        tree.set_user_preference(User.objects.get(username="alice"), "gedcomid", people["alice"].xref)

        self.stdout.write(self.style.SUCCESS(
            f"Seeded tree '{tree.name}' with {Individual.objects.filter(tree=tree).count()} individuals "
            f"and {Family.objects.filter(tree=tree).count()} families."
        ))

    def _person(self, tree, xref, name, sex, **extra) -> Individual:
        person, _ = Individual.objects.get_or_create(
            tree=tree, xref=xref, defaults={"name": name, "sex": sex, **extra}
        )
        return person

    def _family(self, tree, xref, husband, wife, children, **extra) -> Family:
        family, _ = Family.objects.get_or_create(
            tree=tree, xref=xref, defaults={"husband": husband, "wife": wife, **extra}
        )
        family.children.set(children)
        return family

    def _seed_people(self, tree) -> dict[str, Individual]:
        john = self._person(tree, "I1", "John /White/", "M", birth_date="12 MAR 1901", birth_place="Leeds, England")
        mary = self._person(tree, "I2", "Mary /Black/", "F", birth_date="1903", married_name="Mary /White/")
        peter = self._person(tree, "I3", "Peter /White/", "M", birth_date="04 JUL 1930")
        anne = self._person(tree, "I4", "Anne /Green/", "F", birth_date="1932", married_name="Anne /White/")
        alice = self._person(tree, "I5", "Alice /White/", "F", birth_date="22 SEP 1960")
        self._family(tree, "F1", john, mary, [peter], marriage_date="1928", marriage_place="Leeds, England")
        self._family(tree, "F2", peter, anne, [alice], marriage_date="15 MAY 1958")
        return {"john": john, "mary": mary, "peter": peter, "anne": anne, "alice": alice}
