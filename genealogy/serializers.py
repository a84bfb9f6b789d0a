"""
DRF serializers for trees, records, pending changes, blocks, messages and the
site log.

Tree scoping
------------
Record serializers receive the URL's tree in `context["tree"]`. Relations to
other records (family members, media links) only accept records of that same
tree, so a request can never attach a person from another tree.

NOTE:
    `gedcom` and the derived name parts (`given_names`, `surname_prefix`,
    `surname`) are read-only; they are maintained by imports and
    `Individual.save()`.
"""

from __future__ import annotations

from typing import Any, Dict

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import (
    Block,
    BlockLocation,
    Family,
    Individual,
    MediaObject,
    Message,
    PendingChange,
    Sex,
    SiteLog,
    Source,
    Tree,
    TreeRole,
)
from .surname_traditions import TRADITION_CHOICES

User = get_user_model()

FLAG_CHOICES = ("0", "1")


# ----------------------------
# Trees
# ----------------------------
class TreeSerializer(serializers.ModelSerializer):
    """Tree with the caller's role on it."""

    role = serializers.SerializerMethodField()

    class Meta:
        model = Tree
        fields = ["id", "name", "title", "role", "created_at", "updated_at"]
        read_only_fields = ["id", "role", "created_at", "updated_at"]

    def get_role(self, obj: Tree) -> str:
        request = self.context.get("request")
        return obj.role_for(getattr(request, "user", None))


class TreePreferencesSerializer(serializers.Serializer):
    """Editable tree settings. Unknown keys are ignored."""

    SURNAME_TRADITION = serializers.ChoiceField(choices=TRADITION_CHOICES, required=False)
    REQUIRE_AUTHENTICATION = serializers.ChoiceField(choices=FLAG_CHOICES, required=False)
    CONTACT_USER_ID = serializers.CharField(required=False, allow_blank=True)
    WEBMASTER_USER_ID = serializers.CharField(required=False, allow_blank=True)

    def _validate_user_id(self, value: str) -> str:
        if value and (not value.isdigit() or not User.objects.filter(pk=int(value)).exists()):
            raise serializers.ValidationError("Unknown user id.")
        return value

    def validate_CONTACT_USER_ID(self, value: str) -> str:
        return self._validate_user_id(value)

    def validate_WEBMASTER_USER_ID(self, value: str) -> str:
        return self._validate_user_id(value)


class TreeAccessSerializer(serializers.Serializer):
    """Grant a user a role on a tree and optionally link them to an individual."""

    user = serializers.SlugRelatedField(slug_field="username", queryset=User.objects.all())
    role = serializers.ChoiceField(choices=TreeRole.choices)
    gedcomid = serializers.CharField(required=False, allow_blank=True, max_length=20)
    rootid = serializers.CharField(required=False, allow_blank=True, max_length=20)

    def _validate_xref(self, value: str) -> str:
        tree = self.context["tree"]
        if value and not Individual.objects.filter(tree=tree, xref=value).exists():
            raise serializers.ValidationError("No individual with this xref in the tree.")
        return value

    def validate_gedcomid(self, value: str) -> str:
        return self._validate_xref(value)

    def validate_rootid(self, value: str) -> str:
        return self._validate_xref(value)


class NameSuggestionSerializer(serializers.Serializer):
    """
    Input for `POST trees/{name}/names/`.

    - relation=child:  father_name, mother_name, sex (of the child)
    - relation=parent: child_name, sex (of the parent)
    - relation=spouse: spouse_name, sex (of the new spouse)
    """

    RELATIONS = ("child", "parent", "spouse")

    relation = serializers.ChoiceField(choices=RELATIONS)
    sex = serializers.ChoiceField(choices=Sex.choices, default=Sex.UNKNOWN)
    father_name = serializers.CharField(required=False, allow_blank=True, default="")
    mother_name = serializers.CharField(required=False, allow_blank=True, default="")
    child_name = serializers.CharField(required=False, allow_blank=True, default="")
    spouse_name = serializers.CharField(required=False, allow_blank=True, default="")


# ----------------------------
# Records
# ----------------------------
class TreeScopedRelatedField(serializers.PrimaryKeyRelatedField):
    """Primary-key relation restricted to records of `context["tree"]`."""

    def get_queryset(self):
        queryset = super().get_queryset()
        tree = self.context.get("tree")
        if tree is None:
            return queryset.none()
        return queryset.filter(tree=tree)


class TreeRecordSerializer(serializers.ModelSerializer):
    """Common fields of every record; `tree` comes from the URL, never the body."""

    tree = serializers.SlugRelatedField(slug_field="name", read_only=True)

    record_fields = ["id", "tree", "xref", "gedcom", "created_at", "updated_at"]
    record_read_only = ["id", "tree", "xref", "gedcom", "created_at", "updated_at"]


class IndividualSerializer(TreeRecordSerializer):
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = Individual
        fields = TreeRecordSerializer.record_fields + [
            "name",
            "display_name",
            "sex",
            "given_names",
            "surname_prefix",
            "surname",
            "married_name",
            "birth_date",
            "birth_place",
            "death_date",
            "death_place",
            "notes",
        ]
        read_only_fields = TreeRecordSerializer.record_read_only + [
            "display_name",
            "given_names",
            "surname_prefix",
            "surname",
        ]


class FamilySerializer(TreeRecordSerializer):
    """
    A family. `husband`, `wife` and `children` are individual ids of the same tree.

    Validation:
        - husband and wife must differ
        - a spouse cannot also be listed as a child
    """

    husband = TreeScopedRelatedField(queryset=Individual.objects.all(), required=False, allow_null=True)
    wife = TreeScopedRelatedField(queryset=Individual.objects.all(), required=False, allow_null=True)
    children = TreeScopedRelatedField(queryset=Individual.objects.all(), many=True, required=False)
    husband_display = serializers.StringRelatedField(source="husband", read_only=True)
    wife_display = serializers.StringRelatedField(source="wife", read_only=True)

    class Meta:
        model = Family
        fields = TreeRecordSerializer.record_fields + [
            "husband",
            "husband_display",
            "wife",
            "wife_display",
            "children",
            "marriage_date",
            "marriage_place",
        ]
        read_only_fields = TreeRecordSerializer.record_read_only + ["husband_display", "wife_display"]

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        husband = attrs["husband"] if "husband" in attrs else getattr(self.instance, "husband", None)
        wife = attrs["wife"] if "wife" in attrs else getattr(self.instance, "wife", None)
        if husband is not None and husband == wife:
            raise serializers.ValidationError("Husband and wife must be different individuals.")
        if "children" in attrs:
            children = attrs["children"]
        elif self.instance is not None:
            children = list(self.instance.children.all())
        else:
            children = []
        spouses = {p.pk for p in (husband, wife) if p is not None}
        if any(child.pk in spouses for child in children):
            raise serializers.ValidationError("A spouse cannot also be a child of the same family.")
        return attrs


class SourceSerializer(TreeRecordSerializer):
    class Meta:
        model = Source
        fields = TreeRecordSerializer.record_fields + ["title", "author", "publication", "text"]
        read_only_fields = TreeRecordSerializer.record_read_only


class MediaObjectSerializer(TreeRecordSerializer):
    """Media object: an uploaded `file` or an external `file_reference`."""

    individuals = TreeScopedRelatedField(queryset=Individual.objects.all(), many=True, required=False)

    class Meta:
        model = MediaObject
        fields = TreeRecordSerializer.record_fields + [
            "file",
            "file_reference",
            "title",
            "mime_type",
            "individuals",
        ]
        read_only_fields = TreeRecordSerializer.record_read_only

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        upload = attrs.get("file") or getattr(self.instance, "file", None)
        reference = attrs.get("file_reference", getattr(self.instance, "file_reference", ""))
        if not upload and not reference:
            raise serializers.ValidationError("Provide either 'file' or 'file_reference'.")
        uploaded = attrs.get("file")
        if uploaded is not None and not attrs.get("mime_type"):
            attrs["mime_type"] = getattr(uploaded, "content_type", "") or ""
        return attrs


# ----------------------------
# Moderation
# ----------------------------
class PendingChangeSerializer(serializers.ModelSerializer):
    user = serializers.SlugRelatedField(slug_field="username", read_only=True)
    reviewed_by = serializers.SlugRelatedField(slug_field="username", read_only=True)

    class Meta:
        model = PendingChange
        fields = [
            "id",
            "record_type",
            "object_id",
            "xref",
            "action",
            "old_data",
            "new_data",
            "status",
            "user",
            "reviewed_by",
            "created_at",
            "reviewed_at",
        ]
        read_only_fields = fields


# ----------------------------
# Blocks, messages, site log
# ----------------------------
class BlockSerializer(serializers.ModelSerializer):
    class Meta:
        model = Block
        fields = ["id", "location", "block_order", "module_name"]
        read_only_fields = ["id", "module_name"]


class BlockReorderSerializer(serializers.Serializer):
    """New layout: block ids per location, in display order."""

    main = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    side = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        ids = attrs["main"] + attrs["side"]
        if len(ids) != len(set(ids)):
            raise serializers.ValidationError("A block can appear only once.")
        return attrs

    def layout(self):
        """Yield (block_id, location, order) for every listed block."""
        for location in (BlockLocation.MAIN, BlockLocation.SIDE):
            for order, block_id in enumerate(self.validated_data[location.value]):
                yield block_id, location, order


class MessageSerializer(serializers.ModelSerializer):
    """Received message. On create, `to` names the recipient by username."""

    to = serializers.SlugRelatedField(
        slug_field="username", queryset=User.objects.filter(is_active=True), write_only=True
    )

    class Meta:
        model = Message
        fields = ["id", "to", "sender", "subject", "body", "created_at"]
        read_only_fields = ["id", "sender", "created_at"]


class SiteLogSerializer(serializers.ModelSerializer):
    user = serializers.SlugRelatedField(slug_field="username", read_only=True)
    tree = serializers.SlugRelatedField(slug_field="name", read_only=True)

    class Meta:
        model = SiteLog
        fields = ["id", "log_type", "message", "ip_address", "request_id", "user", "tree", "created_at"]
        read_only_fields = fields
