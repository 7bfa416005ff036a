"""Validator-cache decision table."""

from __future__ import annotations

from .models import SyncAction


def decide_action(
    *,
    local_present: bool,
    has_token: bool,
    recheck: bool,
    force: bool = False,
) -> SyncAction:
    """Choose the network action for a tag.

    ===========  =====  =======  ============
    local asset  token  recheck  action
    ===========  =====  =======  ============
    no           any    any      DOWNLOAD
    yes          no     any      SEED
    yes          yes    no       SKIP
    yes          yes    yes      REVALIDATE
    ===========  =====  =======  ============

    ``force`` treats the tag as if no local asset existed.
    """
    if force or not local_present:
        return SyncAction.DOWNLOAD
    if not has_token:
        return SyncAction.SEED
    if recheck:
        return SyncAction.REVALIDATE
    return SyncAction.SKIP


__all__ = ["decide_action"]
