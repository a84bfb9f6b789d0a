"""
Per-user language tests (`UserLanguageMiddleware`).

- A signed-in user's `language` preference wins over `Accept-Language`.
- Unknown preferences are ignored.
- Visitors keep the locale negotiated from `Accept-Language`.
"""

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

User = get_user_model()


class UserLanguageTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="anna", password="pw")
        self.client = APIClient()

    def test_user_preference_sets_content_language(self):
        self.user.set_preference("language", "de")
        self.client.login(username="anna", password="pw")
        r = self.client.get("/api/auth/me/", HTTP_ACCEPT_LANGUAGE="fr")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r["Content-Language"], "de")
        self.assertEqual(r.json()["language"], "de")

    def test_unknown_preference_is_ignored(self):
        self.user.set_preference("language", "tlh")
        self.client.login(username="anna", password="pw")
        r = self.client.get("/api/auth/me/")
        self.assertEqual(r["Content-Language"], "en")

    def test_visitors_use_accept_language(self):
        r = self.client.get("/api/census/", HTTP_ACCEPT_LANGUAGE="fr")
        self.assertEqual(r["Content-Language"], "fr")
