"""
Serializers for authentication, the caller's preferences and user
administration.

Preferences
-----------
- User-editable: `language`, `contactmethod`, `visibleonline`, `defaulttab`,
  `comment` (`PreferencesSerializer`, used by `me/preferences/`).
- Administrator-only: `canadmin`, `verified`, `verified_by_admin`,
  `auto_accept` (accepted by `UserAdminSerializer` only).
Values are strings; flags are "0"/"1".
"""

from __future__ import annotations

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth import password_validation
from django.utils.translation import gettext_lazy as _
from rest_framework import serializers
from rest_framework.validators import UniqueValidator

User = get_user_model()

FLAG_CHOICES = ("0", "1")
CONTACT_METHODS = ("messaging", "messaging2", "messaging3", "mailto", "none")
USER_PREFERENCES = ("language", "contactmethod", "visibleonline", "defaulttab", "comment")
ADMIN_PREFERENCES = ("canadmin", "verified", "verified_by_admin", "auto_accept")


class UserPublicSerializer(serializers.Serializer):
    """Shape returned by login, `me/` and registration."""
    id = serializers.IntegerField()
    username = serializers.CharField()
    real_name = serializers.CharField(allow_blank=True)
    email = serializers.EmailField(allow_blank=True)
    is_administrator = serializers.BooleanField()
    language = serializers.CharField(allow_blank=True)


def public_payload(user) -> dict:
    return {
        "id": user.id,
        "username": user.get_username(),
        "real_name": user.real_name,
        "email": user.email or "",
        "is_administrator": user.is_administrator(),
        "language": user.get_preference("language"),
    }


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)


class PreferencesSerializer(serializers.Serializer):
    """The caller's own preferences."""
    language = serializers.ChoiceField(choices=[code for code, _name in settings.LANGUAGES], required=False)
    contactmethod = serializers.ChoiceField(choices=CONTACT_METHODS, required=False)
    visibleonline = serializers.ChoiceField(choices=FLAG_CHOICES, required=False)
    defaulttab = serializers.CharField(max_length=255, required=False, allow_blank=True)
    comment = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def to_representation(self, user):
        return {name: user.get_preference(name) for name in USER_PREFERENCES}

    def save(self, **kwargs):
        user = self.instance
        for name, value in self.validated_data.items():
            user.set_preference(name, value)
        return user


# -----------------------------
# Registration & verification
# -----------------------------
class RegisterSerializer(serializers.Serializer):
    username = serializers.CharField(
        max_length=150,
        validators=[UniqueValidator(queryset=User.objects.all(), lookup="iexact",
                                    message=_("A user with that username already exists."))],
    )
    email = serializers.EmailField(
        validators=[UniqueValidator(queryset=User.objects.all(), lookup="iexact",
                                    message=_("A user with that email already exists."))],
    )
    real_name = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    comment = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    password1 = serializers.CharField(write_only=True, trim_whitespace=False)
    password2 = serializers.CharField(write_only=True, trim_whitespace=False)

    def validate(self, attrs):
        if attrs["password1"] != attrs["password2"]:
            raise serializers.ValidationError({"password2": _("Passwords do not match.")})
        password_validation.validate_password(attrs["password1"])
        return attrs

    def create(self, validated_data):
        return User.objects.create_user(
            username=validated_data["username"],
            email=validated_data["email"],
            password=validated_data["password1"],
            real_name=validated_data["real_name"],
        )


class UidTokenSerializer(serializers.Serializer):
    uid = serializers.CharField()
    token = serializers.CharField()


class PasswordChangeSerializer(serializers.Serializer):
    old_password = serializers.CharField(write_only=True, trim_whitespace=False)
    new_password1 = serializers.CharField(write_only=True, trim_whitespace=False)
    new_password2 = serializers.CharField(write_only=True, trim_whitespace=False)

    def validate(self, attrs):
        user = self.context["request"].user
        if not user.check_password(attrs["old_password"]):
            raise serializers.ValidationError({"old_password": _("Your old password was entered incorrectly.")})
        if attrs["new_password1"] != attrs["new_password2"]:
            raise serializers.ValidationError({"new_password2": _("Passwords do not match.")})
        password_validation.validate_password(attrs["new_password1"], user=user)
        return attrs


class PasswordResetSerializer(serializers.Serializer):
    email = serializers.EmailField()


class PasswordResetConfirmSerializer(UidTokenSerializer):
    new_password1 = serializers.CharField(write_only=True, trim_whitespace=False)
    new_password2 = serializers.CharField(write_only=True, trim_whitespace=False)

    def validate(self, attrs):
        if attrs["new_password1"] != attrs["new_password2"]:
            raise serializers.ValidationError({"new_password2": _("Passwords do not match.")})
        return attrs


# -----------------------------
# User administration
# -----------------------------
class UserAdminSerializer(serializers.ModelSerializer):
    """
    Full user record for site administrators.

    `preferences` is write-only on input (administrator-only flags) and, on
    output, lists both the user-editable and administrator-only preferences.
    """
    password = serializers.CharField(write_only=True, required=False, trim_whitespace=False)
    preferences = serializers.DictField(
        child=serializers.CharField(allow_blank=True, max_length=255), required=False, write_only=True
    )

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "real_name",
            "email",
            "password",
            "is_active",
            "date_joined",
            "last_login",
            "preferences",
        ]
        read_only_fields = ["id", "date_joined", "last_login"]

    def validate_email(self, value: str) -> str:
        if value:
            clash = User.objects.filter(email__iexact=value)
            if self.instance is not None:
                clash = clash.exclude(pk=self.instance.pk)
            if clash.exists():
                raise serializers.ValidationError(_("A user with that email already exists."))
        return value

    def validate_password(self, value: str) -> str:
        password_validation.validate_password(value, user=self.instance)
        return value

    def validate_preferences(self, value: dict) -> dict:
        unknown = sorted(set(value) - set(ADMIN_PREFERENCES))
        if unknown:
            raise serializers.ValidationError(f"Unknown preferences: {', '.join(unknown)}")
        bad = sorted(name for name, flag in value.items() if flag not in FLAG_CHOICES)
        if bad:
            raise serializers.ValidationError(f"Use '0' or '1' for: {', '.join(bad)}")
        return value

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data["preferences"] = {name: instance.get_preference(name) for name in USER_PREFERENCES + ADMIN_PREFERENCES}
        return data

    def create(self, validated_data):
        preferences = validated_data.pop("preferences", {})
        password = validated_data.pop("password", None)
        user = User.objects.create_user(password=password, **validated_data)
        for name, value in preferences.items():
            user.set_preference(name, value)
        return user

    def update(self, instance, validated_data):
        preferences = validated_data.pop("preferences", {})
        password = validated_data.pop("password", None)
        instance.set_user_name(validated_data.pop("username", instance.username))
        instance.set_real_name(validated_data.pop("real_name", instance.real_name))
        instance.set_email(validated_data.pop("email", instance.email))
        if "is_active" in validated_data:
            instance._set_field("is_active", validated_data.pop("is_active"))
        if password:
            instance.change_password(password)
        for name, value in preferences.items():
            instance.set_preference(name, value)
        return instance
