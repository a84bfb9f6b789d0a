"""
Account services that span several apps.

`delete_account()` removes a user and everything that only makes sense with
them, while keeping the history other people rely on:

- site log rows stay, with `user` set to NULL;
- the user's *rejected* pending changes are deleted; every other change
  (pending or accepted) is reassigned to the acting administrator so the
  moderation queue and edit history stay intact;
- blocks (and their settings), per-tree settings, tree contact/webmaster
  settings naming the user, preferences and received messages are deleted.

Runs in one transaction.
"""

from __future__ import annotations

import logging

from django.db import transaction

from genealogy.models import (
    Block,
    ChangeStatus,
    LogType,
    Message,
    PendingChange,
    SiteLog,
    TreeSetting,
    UserTreeSetting,
)
from genealogy.sitelog import write_log

from .models import UserSetting

logger = logging.getLogger(__name__)

# Tree settings whose value is a user id.
USER_ID_TREE_SETTINGS = ("CONTACT_USER_ID", "WEBMASTER_USER_ID")


@transaction.atomic
def delete_account(user, *, actor, request=None) -> None:
    """Delete `user`; `actor` (the administrator) inherits their pending changes."""
    user_id = user.pk
    username = user.username

    SiteLog.objects.filter(user=user).update(user=None)
    PendingChange.objects.filter(user=user, status=ChangeStatus.REJECTED).delete()
    PendingChange.objects.filter(user=user).update(user=actor)
    PendingChange.objects.filter(reviewed_by=user).update(reviewed_by=actor)
    Block.objects.filter(user=user).delete()
    UserTreeSetting.objects.filter(user=user).delete()
    TreeSetting.objects.filter(setting_name__in=USER_ID_TREE_SETTINGS, setting_value=str(user_id)).delete()
    UserSetting.objects.filter(user=user).delete()
    Message.objects.filter(user=user).delete()
    user.delete()

    write_log(LogType.AUTH, f"User deleted: {username} (#{user_id})", request=request, user=actor)
    logger.info("Deleted user %s by user %s", user_id, getattr(actor, "pk", None))
