"""
Self-registration and email verification (`register/`, `verify/`).

What these tests verify
-----------------------
- Registration creates an unverified (and, by default, unapproved) account,
  emails a uid/token and does not log the user in. Usernames and emails
  that differ only in case count as taken.
- Verifying the address flips `verified` and tells site administrators when
  approval is still needed; a used link stops working.
- `ENABLE_REGISTRATION=False` turns the endpoint off.
"""

from __future__ import annotations

import re

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

User = get_user_model()

PAYLOAD = {
    "username": "newbie",
    "email": "newbie@example.com",
    "real_name": "New Person",
    "comment": "Researching the White family",
    "password1": "Str0ng!Passphrase",
    "password2": "Str0ng!Passphrase",
}


def _uid_token(body: str) -> dict:
    return {
        "uid": re.search(r"^UID: (\S+)$", body, re.M).group(1),
        "token": re.search(r"^TOKEN: (\S+)$", body, re.M).group(1),
    }


@override_settings(ENABLE_REGISTRATION=True, REQUIRE_ADMIN_APPROVAL=True)
class RegistrationTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = User.objects.create_user(username="admin", password="pw", email="admin@example.com")
        self.admin.set_preference("canadmin", "1")

    def test_register_rejects_case_variant_duplicates(self):
        User.objects.create_user(username="alice", password="pw", email="alice@example.com")
        r = self.client.post("/api/auth/register/",
                             {**PAYLOAD, "email": "Alice@Example.com"}, format="json")
        self.assertEqual(r.status_code, 400)
        self.assertIn("email", r.json())

        r = self.client.post("/api/auth/register/", {**PAYLOAD, "username": "ALICE"}, format="json")
        self.assertEqual(r.status_code, 400)
        self.assertIn("username", r.json())
        self.assertEqual(User.objects.filter(email__iexact="alice@example.com").count(), 1)

    def test_register_creates_unverified_account(self):
        r = self.client.post("/api/auth/register/", PAYLOAD, format="json")
        self.assertEqual(r.status_code, 201, r.content)
        self.assertTrue(r.json()["verification_required"])
        self.assertEqual(r.json()["username"], "newbie")

        user = User.objects.get(username="newbie")
        self.assertEqual(user.real_name, "New Person")
        self.assertEqual(user.get_preference("verified"), "0")
        self.assertEqual(user.get_preference("verified_by_admin"), "0")
        self.assertEqual(user.get_preference("contactmethod"), "messaging2")
        self.assertEqual(user.get_preference("comment"), "Researching the White family")
        self.assertEqual(user.get_preference("language"), "en")

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["newbie@example.com"])
        # Not logged in.
        self.assertEqual(self.client.get("/api/auth/me/").status_code, 401)

    def test_validation(self):
        User.objects.create_user(username="taken", password="pw", email="taken@example.com")
        bad = [
            {"username": "taken"},
            {"email": "taken@example.com"},
            {"password2": "Different!Pass1"},
            {"password1": "short", "password2": "short"},
        ]
        for change in bad:
            payload = dict(PAYLOAD, **change)
            r = self.client.post("/api/auth/register/", payload, format="json")
            self.assertEqual(r.status_code, 400, change)
        self.assertFalse(User.objects.filter(username="newbie").exists())

    def test_verify_notifies_administrators(self):
        self.client.post("/api/auth/register/", PAYLOAD, format="json")
        link = _uid_token(mail.outbox[0].body)

        r = self.client.post("/api/auth/verify/", link, format="json")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.json(), {"verified": True, "approval_required": True})
        self.assertEqual(User.objects.get(username="newbie").get_preference("verified"), "1")

        self.assertEqual(len(mail.outbox), 2)
        self.assertEqual(mail.outbox[1].to, ["admin@example.com"])
        self.assertIn("newbie", mail.outbox[1].body)

        # The hash includes the verified flag, so the link is single-use.
        r = self.client.post("/api/auth/verify/", link, format="json")
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["code"], "invalid_token")

    @override_settings(REQUIRE_ADMIN_APPROVAL=False)
    def test_without_admin_approval(self):
        self.client.post("/api/auth/register/", PAYLOAD, format="json")
        user = User.objects.get(username="newbie")
        self.assertEqual(user.get_preference("verified_by_admin"), "")

        r = self.client.post("/api/auth/verify/", _uid_token(mail.outbox[0].body), format="json")
        self.assertEqual(r.json()["approval_required"], False)
        self.assertEqual(len(mail.outbox), 1)

        r = self.client.post("/api/auth/login/", {"username": "newbie", "password": PAYLOAD["password1"]})
        self.assertEqual(r.status_code, 200)

    def test_bad_link(self):
        r = self.client.post("/api/auth/verify/", {"uid": "???", "token": "nope"}, format="json")
        self.assertEqual(r.status_code, 400)

    @override_settings(ENABLE_REGISTRATION=False)
    def test_registration_disabled(self):
        r = self.client.post("/api/auth/register/", PAYLOAD, format="json")
        self.assertEqual(r.status_code, 403)
        self.assertEqual(r.json()["code"], "registration_disabled")
