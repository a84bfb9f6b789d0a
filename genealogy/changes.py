"""
Pending-change workflow.

Every record edit goes through this module:

- `can_auto_accept(tree, user)` decides whether an edit is applied at once:
  moderators and managers (`accept`+) always, editors only with their
  `auto_accept` preference set to "1".
- `record_applied()` stores an immediately applied edit as an *accepted*
  change and writes an `edit` site-log row.
- `propose()` stores an edit for later review (status `pending`).
- `accept()` re-validates the stored payload with the record's serializer and
  applies it; `reject()` just closes the change.

Concurrency
-----------
`accept()`/`reject()` lock the change row (`select_for_update`) so two
moderators cannot both review it; the second gets 409 `change_conflict`.
"""

from __future__ import annotations

import logging
from typing import Optional

from django.http import QueryDict
from django.db import transaction
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError

from .models import (
    ChangeAction,
    ChangeStatus,
    Family,
    Individual,
    LogType,
    MediaObject,
    PendingChange,
    RecordType,
    Source,
    TreeRole,
    role_at_least,
)
from .serializers import (
    FamilySerializer,
    IndividualSerializer,
    MediaObjectSerializer,
    SourceSerializer,
)
from .sitelog import write_log

logger = logging.getLogger(__name__)

# record type -> (model, serializer)
RECORD_TYPES = {
    RecordType.INDIVIDUAL: (Individual, IndividualSerializer),
    RecordType.FAMILY: (Family, FamilySerializer),
    RecordType.SOURCE: (Source, SourceSerializer),
    RecordType.MEDIA: (MediaObject, MediaObjectSerializer),
}


class ChangeConflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This change can no longer be applied."
    default_code = "change_conflict"

    def __init__(self, detail=None):
        super().__init__({"detail": detail or self.default_detail, "code": self.default_code})


def can_auto_accept(tree, user) -> bool:
    """True when `user`'s edits on `tree` skip moderation."""
    role = tree.role_for(user)
    if role_at_least(role, TreeRole.ACCEPT):
        return True
    return role == TreeRole.EDIT and user.get_preference("auto_accept") == "1"


def json_safe(data) -> dict:
    """
    Plain-JSON copy of request data for storage in a pending change.

    QueryDict lists become lists only when repeated (`children=1&children=2`).
    Uploaded files cannot be stored and are rejected.
    """
    if isinstance(data, QueryDict):
        plain = {}
        for key in data.keys():
            values = data.getlist(key)
            plain[key] = values if len(values) > 1 else values[0]
    else:
        plain = dict(data)
    for key, value in plain.items():
        if hasattr(value, "read"):
            raise ValidationError({key: "File uploads cannot wait for review; ask a moderator to upload the file."})
    return plain


def snapshot(record_type: str, instance, tree) -> dict:
    """Serializer representation of `instance` as plain JSON data."""
    _, serializer_class = RECORD_TYPES[record_type]
    data = serializer_class(instance, context={"tree": tree}).data
    data.pop("file", None)
    return dict(data)


def _log_applied(change: PendingChange, request=None) -> None:
    write_log(
        LogType.EDIT,
        f"{change.action} {change.record_type} {change.xref} ({change.tree.name})",
        request=request,
        user=change.user if request is None else None,
        tree=change.tree,
    )


def propose(tree, user, record_type: str, action: str, *, instance=None, data=None) -> PendingChange:
    """Queue an edit for review."""
    change = PendingChange.objects.create(
        tree=tree,
        record_type=record_type,
        object_id=getattr(instance, "pk", None),
        xref=getattr(instance, "xref", "") or "",
        action=action,
        old_data=snapshot(record_type, instance, tree) if instance is not None else None,
        new_data=data,
        user=user,
    )
    logger.info("Pending %s %s %s on %s by user %s", action, record_type, change.xref or "-", tree.name, user.pk)
    return change


def record_applied(tree, user, record_type: str, action: str, *, instance, old_data=None,
                   new_data=None, request=None) -> PendingChange:
    """Store an edit that was applied immediately as an accepted change."""
    now = timezone.now()
    change = PendingChange.objects.create(
        tree=tree,
        record_type=record_type,
        object_id=instance.pk,
        xref=instance.xref,
        action=action,
        old_data=old_data,
        new_data=new_data,
        status=ChangeStatus.ACCEPTED,
        user=user,
        reviewed_by=user,
        reviewed_at=now,
    )
    _log_applied(change, request=request)
    return change


def _lock_pending(change: PendingChange) -> PendingChange:
    locked = PendingChange.objects.select_for_update().select_related("tree").get(pk=change.pk)
    if locked.status != ChangeStatus.PENDING:
        raise ChangeConflict(f"This change was already {locked.status}.")
    return locked


def accept(change: PendingChange, reviewer, request=None) -> Optional[object]:
    """
    Apply a pending change. Returns the created/updated record (None for deletes).

    Raises:
        ChangeConflict: the change was already reviewed, or the record it
            updates/deletes no longer exists.
        ValidationError: the stored data is no longer valid (for example a
            family member was deleted meanwhile). Nothing is applied.
    """
    with transaction.atomic():
        change = _lock_pending(change)
        tree = change.tree
        model, serializer_class = RECORD_TYPES[change.record_type]
        context = {"tree": tree, "request": request}

        instance = None
        if change.action != ChangeAction.CREATE:
            instance = model.objects.filter(tree=tree, pk=change.object_id).first()
            if instance is None:
                raise ChangeConflict("The record this change refers to no longer exists.")

        if change.action == ChangeAction.CREATE:
            serializer = serializer_class(data=change.new_data or {}, context=context)
            serializer.is_valid(raise_exception=True)
            instance = serializer.save(tree=tree)
        elif change.action == ChangeAction.UPDATE:
            serializer = serializer_class(instance, data=change.new_data or {}, partial=True, context=context)
            serializer.is_valid(raise_exception=True)
            instance = serializer.save()
        else:
            instance.delete()

        change.object_id = instance.pk if change.action != ChangeAction.DELETE else change.object_id
        change.xref = instance.xref
        change.status = ChangeStatus.ACCEPTED
        change.reviewed_by = reviewer
        change.reviewed_at = timezone.now()
        change.save(update_fields=["object_id", "xref", "status", "reviewed_by", "reviewed_at"])
        _log_applied(change, request=request)

    logger.info("Accepted change %s by user %s", change.pk, reviewer.pk)
    return None if change.action == ChangeAction.DELETE else instance


def reject(change: PendingChange, reviewer) -> PendingChange:
    """Close a pending change without applying it."""
    with transaction.atomic():
        change = _lock_pending(change)
        change.status = ChangeStatus.REJECTED
        change.reviewed_by = reviewer
        change.reviewed_at = timezone.now()
        change.save(update_fields=["status", "reviewed_by", "reviewed_at"])
    logger.info("Rejected change %s by user %s", change.pk, reviewer.pk)
    return change
