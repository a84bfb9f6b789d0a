"""
Password reset flow tests (`password/reset/` and `password/reset/confirm/`).

Notes
-----
- The Django test client skips CSRF unless asked, so the client is built
  with `enforce_csrf_checks=True`.
- Reset tokens and email verification tokens use different salts.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.contrib.auth.tokens import default_token_generator
from django.core import mail
from django.test import Client, TestCase
from django.utils.encoding import force_bytes
from django.utils.http import urlsafe_base64_encode

from accounts.tokens import email_verification_token

User = get_user_model()


class PasswordResetFlowTests(TestCase):
    def setUp(self) -> None:
        self.client = Client(enforce_csrf_checks=True)
        self.reset_url = "/api/auth/password/reset/"
        self.confirm_url = "/api/auth/password/reset/confirm/"
        self.csrf_url = "/api/auth/csrf/"

    def _csrf_headers(self):
        # Prime CSRF cookie and return appropriate header for POSTs
        resp = self.client.get(self.csrf_url)
        self.assertEqual(resp.status_code, 204)
        csrftoken = self.client.cookies.get("csrftoken").value
        return {"HTTP_X_CSRFTOKEN": csrftoken}

    def _confirm(self, user, token, password="BrandNew!234", **headers):
        payload = {
            "uid": urlsafe_base64_encode(force_bytes(user.pk)),
            "token": token,
            "new_password1": password,
            "new_password2": password,
        }
        return self.client.post(self.confirm_url, payload, content_type="application/json", **headers)

    def test_request_returns_204_and_sends_email_for_existing_user(self):
        User.objects.create_user(username="alice", email="alice@example.com", password="xYz!23456")

        headers = self._csrf_headers()
        resp = self.client.post(self.reset_url, {"email": "alice@example.com"}, content_type="application/json", **headers)
        self.assertEqual(resp.status_code, 204)
        self.assertEqual(len(mail.outbox), 1)
        body = mail.outbox[0].body
        # Dev-friendly body contains UID and TOKEN lines
        self.assertIn("UID:", body)
        self.assertIn("TOKEN:", body)

    def test_request_returns_204_and_sends_no_email_for_unknown(self):
        headers = self._csrf_headers()
        resp = self.client.post(self.reset_url, {"email": "nobody@example.com"}, content_type="application/json", **headers)
        self.assertEqual(resp.status_code, 204)
        self.assertEqual(len(mail.outbox), 0)

        resp = self.client.post(self.reset_url, {"email": "not-an-email"}, content_type="application/json", **headers)
        self.assertEqual(resp.status_code, 204)

    def test_request_requires_csrf(self):
        resp = self.client.post(self.reset_url, {"email": "x@example.com"}, content_type="application/json")
        self.assertEqual(resp.status_code, 403)

    def test_confirm_invalid_token_400(self):
        u = User.objects.create_user(username="bob", email="bob@example.com", password="xYz!23456")
        resp = self._confirm(u, "invalid-token", **self._csrf_headers())
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["code"], "invalid_token")

    def test_verification_token_cannot_reset(self):
        u = User.objects.create_user(username="bob", email="bob@example.com", password="xYz!23456")
        resp = self._confirm(u, email_verification_token.make_token(u), **self._csrf_headers())
        self.assertEqual(resp.status_code, 400)

    def test_weak_password_rejected(self):
        u = User.objects.create_user(username="bob", email="bob@example.com", password="xYz!23456")
        resp = self._confirm(u, default_token_generator.make_token(u), password="123", **self._csrf_headers())
        self.assertEqual(resp.status_code, 400)
        self.assertIn("new_password1", resp.json())

    def test_confirm_success_sets_password_and_allows_login(self):
        u = User.objects.create_user(username="carol", email="carol@example.com", password="Old!Pass123")
        token = default_token_generator.make_token(u)

        resp = self._confirm(u, token, **self._csrf_headers())
        self.assertEqual(resp.status_code, 204)

        self.assertFalse(self.client.login(username="carol", password="Old!Pass123"))
        self.assertTrue(self.client.login(username="carol", password="BrandNew!234"))

        # The token is single-use: the password hash changed.
        self.client.logout()
        resp = self._confirm(u, token, password="Another!567", **self._csrf_headers())
        self.assertEqual(resp.status_code, 400)

    def test_confirm_requires_csrf(self):
        u = User.objects.create_user(username="dave", email="dave@example.com", password="Old!Pass123")
        resp = self._confirm(u, default_token_generator.make_token(u))
        self.assertEqual(resp.status_code, 403)

    def test_request_throttled(self):
        User.objects.create_user(username="eve", email="eve@example.com", password="xYz!23456")
        headers = self._csrf_headers()
        # default rate: 5/min
        for _ in range(5):
            r = self.client.post(self.reset_url, {"email": "eve@example.com"}, content_type="application/json", **headers)
            self.assertEqual(r.status_code, 204)
        r6 = self.client.post(self.reset_url, {"email": "eve@example.com"}, content_type="application/json", **headers)
        self.assertEqual(r6.status_code, 429)
