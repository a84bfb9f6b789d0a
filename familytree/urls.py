"""
Project URL configuration.

Surfaces
--------
- `/admin/`: Django admin (back-office only).
- `/health/`: liveness + database check.
- `/api/`: primary API surface: router-driven ViewSets plus standalone
  auth, census and GEDCOM endpoints.
- `/api/schema`, `/api/docs`, `/api/redoc`: OpenAPI schema & UIs.

Notes
-----
- Tree-scoped records are registered with a `(?P<tree>[-\\w]+)` prefix, so the
  tree name reaches the viewsets as `kwargs["tree"]`.
- The GEDCOM endpoints are listed before the router so `trees/{name}/import/`
  is not taken for a tree detail action.
"""

from __future__ import annotations

from django.contrib import admin
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)

from accounts.views import (
    CsrfView,
    LoginView,
    LogoutView,
    MePreferencesView,
    MeView,
    PasswordChangeView,
    PasswordResetConfirmView,
    PasswordResetView,
    RegisterView,
    VerifyEmailView,
)
from accounts.viewsets import UserViewSet
from core.views import health
from genealogy.api import (
    BlockViewSet,
    CensusView,
    FamilyViewSet,
    GedcomExportView,
    GedcomImportView,
    IndividualViewSet,
    MediaObjectViewSet,
    MessageViewSet,
    PendingChangeViewSet,
    SiteLogViewSet,
    SourceViewSet,
    TreeViewSet,
)

TREE = r"trees/(?P<tree>[-\w]+)"

router = DefaultRouter()
router.register(r"trees", TreeViewSet, basename="tree")
router.register(rf"{TREE}/individuals", IndividualViewSet, basename="individual")
router.register(rf"{TREE}/families", FamilyViewSet, basename="family")
router.register(rf"{TREE}/sources", SourceViewSet, basename="source")
router.register(rf"{TREE}/media", MediaObjectViewSet, basename="media")
router.register(rf"{TREE}/changes", PendingChangeViewSet, basename="change")
router.register(r"blocks", BlockViewSet, basename="block")
router.register(r"messages", MessageViewSet, basename="message")
router.register(r"logs", SiteLogViewSet, basename="sitelog")
router.register(r"users", UserViewSet, basename="user")

urlpatterns = [
    path("admin/", admin.site.urls),
    path("health/", health, name="health"),

    # OpenAPI / Docs
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("api/redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),

    # Auth
    path("api/auth/csrf/", CsrfView.as_view(), name="auth-csrf"),
    path("api/auth/login/", LoginView.as_view(), name="auth-login"),
    path("api/auth/logout/", LogoutView.as_view(), name="auth-logout"),
    path("api/auth/me/", MeView.as_view(), name="auth-me"),
    path("api/auth/me/preferences/", MePreferencesView.as_view(), name="auth-me-preferences"),
    path("api/auth/register/", RegisterView.as_view(), name="auth-register"),
    path("api/auth/verify/", VerifyEmailView.as_view(), name="auth-verify"),
    path("api/auth/password/change/", PasswordChangeView.as_view(), name="auth-password-change"),
    path("api/auth/password/reset/", PasswordResetView.as_view(), name="auth-password-reset"),
    path("api/auth/password/reset/confirm/", PasswordResetConfirmView.as_view(),
         name="auth-password-reset-confirm"),

    # Standalone endpoints
    path("api/census/", CensusView.as_view(), name="census"),
    path("api/trees/<slug:tree>/import/", GedcomImportView.as_view(), name="tree-import"),
    path("api/trees/<slug:tree>/export/", GedcomExportView.as_view(), name="tree-export"),

    # Router-driven API
    path("api/", include(router.urls)),
]
