"""Domain signals: new-user setup and user links to deleted individuals.

New users
---------
- On creation of a user, copy the site default home-page blocks (blocks with
  neither user nor tree) to the user and record `reg_timestamp` (Unix seconds).
  Block settings are not copied; new blocks start with module defaults.

Individuals
-----------
- On deletion of an individual, remove the per-tree `gedcomid`/`rootid` user
  settings that point at its xref so no account stays linked to a missing
  person.

Receivers use `dispatch_uid` so repeated imports from `ready()` are harmless.
"""

from __future__ import annotations

import time

from django.conf import settings
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import Block, Individual, UserTreeSetting


def copy_default_blocks(user) -> list[Block]:
    """Give `user` a private copy of every site default block."""
    defaults = Block.objects.filter(user__isnull=True, tree__isnull=True).order_by("location", "block_order", "id")
    return Block.objects.bulk_create(
        Block(user=user, location=b.location, block_order=b.block_order, module_name=b.module_name)
        for b in defaults
    )


@receiver(post_save, sender=settings.AUTH_USER_MODEL, dispatch_uid="genealogy_user_created")
def on_user_created(sender, instance, created: bool, raw: bool = False, **kwargs):
    if not created or raw:
        return
    copy_default_blocks(instance)
    instance.set_preference("reg_timestamp", int(time.time()))


@receiver(post_delete, sender=Individual, dispatch_uid="genealogy_individual_unlink_users")
def on_individual_deleted(sender, instance: Individual, **kwargs):
    UserTreeSetting.objects.filter(
        tree_id=instance.tree_id,
        setting_name__in=("gedcomid", "rootid"),
        setting_value=instance.xref,
    ).delete()
