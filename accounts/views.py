from __future__ import annotations

"""
Session authentication endpoints under `/api/auth/`.

- csrf/ login/ logout/ me/ me/preferences/
- register/ verify/ (feature-flagged by `ENABLE_REGISTRATION`)
- password/change/ password/reset/ password/reset/confirm/

Account states
--------------
A registered user starts with `verified = "0"` (and, when
`REQUIRE_ADMIN_APPROVAL` is on, `verified_by_admin = "0"`). Login refuses
such accounts with 403 `account_unverified` / `account_unapproved`. Users
created by administrators or `createsuperuser` have neither preference and
may log in.

Security
--------
- Anonymous POST endpoints are `csrf_protect`ed explicitly: DRF only enforces
  CSRF for session-authenticated requests.
- Password reset always answers 204 so it cannot be used to probe addresses.
- Login successes and failures go to the site log (`auth`).
"""

import time

from django.conf import settings
from django.contrib.auth import (
    authenticate,
    get_user_model,
    login as dj_login,
    logout as dj_logout,
    update_session_auth_hash,
)
from django.contrib.auth import password_validation
from django.contrib.auth.tokens import default_token_generator
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.mail import send_mail
from django.middleware.csrf import get_token
from django.utils.decorators import method_decorator
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_decode, urlsafe_base64_encode
from django.utils.translation import get_language
from django.utils.translation import gettext_lazy as _
from django.views.decorators.csrf import csrf_protect
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import permissions, serializers, status
from rest_framework.response import Response
from rest_framework.views import APIView

from genealogy.models import LogType
from genealogy.sitelog import write_log

from .serializers import (
    LoginSerializer,
    PasswordChangeSerializer,
    PasswordResetConfirmSerializer,
    PasswordResetSerializer,
    PreferencesSerializer,
    RegisterSerializer,
    UidTokenSerializer,
    UserPublicSerializer,
    public_payload,
)
from .tokens import email_verification_token

User = get_user_model()


def _error(detail, code: str, http_status: int) -> Response:
    return Response({"detail": detail, "code": code}, status=http_status)


def _user_from_uid(uid: str):
    try:
        return User.objects.find(force_str(urlsafe_base64_decode(uid)))
    except (TypeError, ValueError, OverflowError):
        return None


def _uid_token_body(user, token: str) -> str:
    return f"UID: {urlsafe_base64_encode(force_bytes(user.pk))}\nTOKEN: {token}\n"


class CsrfView(APIView):
    """
    GET only: prime a CSRF cookie and expose the token via header.
    Returns 204 with no body.
    """
    permission_classes = [permissions.AllowAny]

    @extend_schema(
        operation_id="auth_csrf",
        summary="Prime CSRF cookie",
        responses={204: OpenApiResponse(description="CSRF cookie set")},
    )
    def get(self, request, *args, **kwargs):
        resp = Response(status=status.HTTP_204_NO_CONTENT)
        resp["X-CSRFToken"] = get_token(request)
        return resp


@method_decorator(csrf_protect, name="dispatch")
class LoginView(APIView):
    """
    Session login using Django auth.
    Throttled with scope `auth-login`.
    """
    permission_classes = [permissions.AllowAny]
    throttle_scope = "auth-login"

    @extend_schema(
        operation_id="auth_login",
        summary="Log in (session-based)",
        request=LoginSerializer,
        responses={
            200: UserPublicSerializer,
            400: OpenApiResponse(description='{"detail":"Invalid username or password.","code":"invalid_credentials"}'),
            403: OpenApiResponse(description="account_unverified / account_unapproved"),
            429: OpenApiResponse(description="Too many attempts (throttled)"),
        },
    )
    def post(self, request, *args, **kwargs):
        ser = LoginSerializer(data=request.data)
        if not ser.is_valid():
            return _error(_("Invalid username or password."), "invalid_credentials", status.HTTP_400_BAD_REQUEST)

        username = ser.validated_data["username"]
        # The login name may be the username or the email address.
        candidate = User.objects.find_by_identifier(username)
        user = authenticate(
            request,
            username=candidate.username if candidate else username,
            password=ser.validated_data["password"],
        )
        if user is None or not user.is_active:
            write_log(LogType.AUTH, f"Login failed: {username}", request=request)
            return _error(_("Invalid username or password."), "invalid_credentials", status.HTTP_400_BAD_REQUEST)

        if user.get_preference("verified") == "0":
            write_log(LogType.AUTH, f"Login refused (email not verified): {user.username}", request=request, user=user)
            return _error(
                _("Please confirm your email address before logging in."),
                "account_unverified",
                status.HTTP_403_FORBIDDEN,
            )
        if user.get_preference("verified_by_admin") == "0":
            write_log(LogType.AUTH, f"Login refused (not approved): {user.username}", request=request, user=user)
            return _error(
                _("Your account has not been approved by an administrator yet."),
                "account_unapproved",
                status.HTTP_403_FORBIDDEN,
            )

        dj_login(request, user)
        user.set_preference("sessiontime", int(time.time()))
        write_log(LogType.AUTH, f"Login: {user.username}", request=request, user=user)
        return Response(public_payload(user), status=status.HTTP_200_OK)


class LogoutView(APIView):
    """
    Session logout (idempotent). CSRF enforced by SessionAuthentication.
    """
    permission_classes = [permissions.AllowAny]

    @extend_schema(
        operation_id="auth_logout",
        summary="Log out",
        responses={204: OpenApiResponse(description="Logged out")},
    )
    def post(self, request, *args, **kwargs):
        if request.user.is_authenticated:
            write_log(LogType.AUTH, f"Logout: {request.user.username}", request=request)
        dj_logout(request)
        return Response(status=status.HTTP_204_NO_CONTENT)


class MeView(APIView):
    """
    Return the current user.

    NOTE:
        AllowAny plus an explicit 401: with session auth only, DRF would
        answer 403 for anonymous callers.
    """
    permission_classes = [permissions.AllowAny]

    @extend_schema(
        operation_id="auth_me",
        summary="Current user",
        responses={200: UserPublicSerializer, 401: OpenApiResponse(description="Not authenticated")},
    )
    def get(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return _error(_("Not authenticated."), "not_authenticated", status.HTTP_401_UNAUTHORIZED)
        return Response(public_payload(request.user), status=status.HTTP_200_OK)


class MePreferencesView(APIView):
    """Read and update the caller's own preferences."""
    permission_classes = [permissions.AllowAny]

    @extend_schema(
        operation_id="auth_me_preferences",
        summary="Current user's preferences",
        responses={200: PreferencesSerializer, 401: OpenApiResponse(description="Not authenticated")},
    )
    def get(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return _error(_("Not authenticated."), "not_authenticated", status.HTTP_401_UNAUTHORIZED)
        return Response(PreferencesSerializer(request.user).data)

    @extend_schema(
        operation_id="auth_me_preferences_update",
        summary="Update current user's preferences",
        request=PreferencesSerializer,
        responses={200: PreferencesSerializer, 400: OpenApiResponse(description="Validation error")},
    )
    def patch(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return _error(_("Not authenticated."), "not_authenticated", status.HTTP_401_UNAUTHORIZED)
        ser = PreferencesSerializer(request.user, data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        user = ser.save()
        return Response(PreferencesSerializer(user).data)


# -----------------------------
# Registration & verification
# -----------------------------
@method_decorator(csrf_protect, name="dispatch")
class RegisterView(APIView):
    """
    Create a new (unverified) account and email a verification uid/token.

    - Throttled with scope `auth-register`.
    - Does not log in: the address must be verified first.
    - Controlled by `ENABLE_REGISTRATION`.
    """
    permission_classes = [permissions.AllowAny]
    throttle_scope = "auth-register"

    @extend_schema(
        operation_id="auth_register",
        summary="Register a new account",
        request=RegisterSerializer,
        responses={
            201: UserPublicSerializer,
            400: OpenApiResponse(description="Validation error"),
            403: OpenApiResponse(description="Registration disabled"),
            429: OpenApiResponse(description="Too many attempts (throttled)"),
        },
    )
    def post(self, request, *args, **kwargs):
        if not getattr(settings, "ENABLE_REGISTRATION", False):
            return _error(_("Registration is disabled."), "registration_disabled", status.HTTP_403_FORBIDDEN)

        ser = RegisterSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = ser.save()
        user.set_preference("verified", "0")
        if getattr(settings, "REQUIRE_ADMIN_APPROVAL", True):
            user.set_preference("verified_by_admin", "0")
        user.set_preference("language", get_language() or settings.LANGUAGE_CODE)
        user.set_preference("contactmethod", "messaging2")
        if ser.validated_data["comment"]:
            user.set_preference("comment", ser.validated_data["comment"])

        send_mail(
            _("Please verify your email address"),
            _uid_token_body(user, email_verification_token.make_token(user)),
            settings.DEFAULT_FROM_EMAIL,
            [user.email],
        )
        write_log(LogType.AUTH, f"User registered: {user.username}", request=request, user=user)

        payload = public_payload(user)
        payload["verification_required"] = True
        return Response(payload, status=status.HTTP_201_CREATED)


@method_decorator(csrf_protect, name="dispatch")
class VerifyEmailView(APIView):
    """
    Confirm the emailed uid/token and mark the address verified.

    When administrator approval is still outstanding, site administrators are
    emailed that a new account is waiting.
    """
    permission_classes = [permissions.AllowAny]
    throttle_scope = "auth-verify"

    @extend_schema(
        operation_id="auth_verify",
        summary="Verify email address",
        request=UidTokenSerializer,
        responses={
            200: OpenApiResponse(description='{"verified": true, "approval_required": bool}'),
            400: OpenApiResponse(description="Invalid or expired link"),
        },
    )
    def post(self, request, *args, **kwargs):
        ser = UidTokenSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = _user_from_uid(ser.validated_data["uid"])
        if user is None or not email_verification_token.check_token(user, ser.validated_data["token"]):
            return _error(_("Invalid or expired link."), "invalid_token", status.HTTP_400_BAD_REQUEST)

        user.set_preference("verified", "1")
        write_log(LogType.AUTH, f"User verified email: {user.username}", request=request, user=user)

        approval_required = user.get_preference("verified_by_admin") == "0"
        if approval_required:
            recipients = [a.email for a in User.objects.administrators() if a.email]
            if recipients:
                send_mail(
                    _("New user needs approval"),
                    f"{user.username} ({user.email}) verified their address and is waiting for approval.",
                    settings.DEFAULT_FROM_EMAIL,
                    recipients,
                )
        return Response({"verified": True, "approval_required": approval_required})


# -----------------------------
# Passwords
# -----------------------------
class PasswordChangeView(APIView):
    """
    Allow an authenticated user to change their password.
    - CSRF protected (SessionAuthentication).
    - Throttled with scope `auth-password-change`.
    - Returns 204 and keeps the session valid.
    """
    permission_classes = [permissions.AllowAny]
    throttle_scope = "auth-password-change"

    @extend_schema(
        operation_id="auth_password_change",
        summary="Change current user's password",
        request=PasswordChangeSerializer,
        responses={
            204: OpenApiResponse(description="Password changed"),
            400: OpenApiResponse(description="Validation error"),
            401: OpenApiResponse(description="Not authenticated"),
            429: OpenApiResponse(description="Too many attempts (throttled)"),
        },
    )
    def post(self, request, *args, **kwargs):
        if not request.user.is_authenticated:
            return _error(_("Not authenticated."), "not_authenticated", status.HTTP_401_UNAUTHORIZED)

        ser = PasswordChangeSerializer(data=request.data, context={"request": request})
        ser.is_valid(raise_exception=True)

        user = request.user
        user.change_password(ser.validated_data["new_password1"])
        update_session_auth_hash(request, user)
        write_log(LogType.AUTH, f"Password changed: {user.username}", request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


@method_decorator(csrf_protect, name="dispatch")
class PasswordResetView(APIView):
    """
    Email a reset uid/token to the address, if it belongs to a user.
    Always 204.
    """
    permission_classes = [permissions.AllowAny]
    throttle_scope = "auth-password-reset"

    @extend_schema(
        operation_id="auth_password_reset",
        summary="Request a password reset email",
        request=PasswordResetSerializer,
        responses={204: OpenApiResponse(description="Request accepted")},
    )
    def post(self, request, *args, **kwargs):
        ser = PasswordResetSerializer(data=request.data)
        if ser.is_valid():
            user = User.objects.find_by_email(ser.validated_data["email"])
            if user is not None and user.is_active:
                send_mail(
                    _("Password reset"),
                    _uid_token_body(user, default_token_generator.make_token(user)),
                    settings.DEFAULT_FROM_EMAIL,
                    [user.email],
                )
                write_log(LogType.AUTH, f"Password reset requested: {user.username}", request=request, user=user)
        return Response(status=status.HTTP_204_NO_CONTENT)


@method_decorator(csrf_protect, name="dispatch")
class PasswordResetConfirmView(APIView):
    permission_classes = [permissions.AllowAny]
    throttle_scope = "auth-password-reset"

    @extend_schema(
        operation_id="auth_password_reset_confirm",
        summary="Set a new password with an emailed uid/token",
        request=PasswordResetConfirmSerializer,
        responses={
            204: OpenApiResponse(description="Password changed"),
            400: OpenApiResponse(description="Invalid token or password"),
        },
    )
    def post(self, request, *args, **kwargs):
        ser = PasswordResetConfirmSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = _user_from_uid(ser.validated_data["uid"])
        if user is None or not default_token_generator.check_token(user, ser.validated_data["token"]):
            return _error(_("Invalid or expired link."), "invalid_token", status.HTTP_400_BAD_REQUEST)

        new_password = ser.validated_data["new_password1"]
        try:
            password_validation.validate_password(new_password, user=user)
        except DjangoValidationError as exc:
            raise serializers.ValidationError({"new_password1": list(exc.messages)})

        user.change_password(new_password)
        write_log(LogType.AUTH, f"Password reset: {user.username}", request=request, user=user)
        return Response(status=status.HTTP_204_NO_CONTENT)
