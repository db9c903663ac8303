"""Access checks for owned records."""

from __future__ import annotations

from typing import Any

ACTION_VIEW = "view"
ACTION_ANNOTATE = "annotate"
ACTION_MODIFY = "modify"


class OwnershipGuard:
    """Decide whether an identity may act on a record.

    - `view`: owner, an identity in `shared_with`, or any identity when the
      record is public.
    - `annotate`: owner or an identity in `shared_with`.
    - `modify`: owner only.

    Records without sharing fields (e.g. chat sessions) fall back to owner-only.
    """

    def verify(self, identity: str, record: Any, action: str = ACTION_VIEW) -> bool:
        if record is None or not identity:
            return False
        owner = getattr(record, "owner", None)
        if owner == identity:
            return True
        if action == ACTION_MODIFY:
            return False

        shared_with = getattr(record, "shared_with", None) or ()
        if identity in shared_with:
            return True
        if action == ACTION_VIEW:
            return bool(getattr(record, "is_public", False))
        return False
