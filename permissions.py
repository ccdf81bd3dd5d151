"""Admin authorization: platform roles plus per-conference permissions."""
from collections.abc import Callable, Mapping

from fastapi import Depends, Header
from supabase import Client

import store
from errors import NotAuthenticated, PermissionDenied

SUPER_ADMIN = "super_admin"
CONFERENCE_ADMIN = "conference_admin"

CAN_VIEW_REGISTRATIONS = "can_view_registrations"
CAN_MANAGE_PAYMENTS = "can_manage_payments"
CAN_EDIT_CONFERENCE = "can_edit_conference"
CAN_DELETE_DATA = "can_delete_data"

# never granted through a conference_permissions row
SUPER_ADMIN_ONLY = frozenset({CAN_EDIT_CONFERENCE, CAN_DELETE_DATA})


def _describe(permission: str) -> str:
    return permission.removeprefix("can_").replace("_", " ")


def check_conference_permission(
    profile: Mapping,
    permission_row: Mapping | None,
    permission: str | None = None,
    allow_super_admin: bool = True,
) -> None:
    """Raise :class:`PermissionDenied` unless ``profile`` may act on the conference.

    Super admins pass. Anyone else needs a permissions row for the conference;
    holding the row grants every permission except the super-admin-only ones.
    """
    if not profile.get("active", True):
        raise PermissionDenied("Your account is deactivated")

    if allow_super_admin and profile.get("role") == SUPER_ADMIN:
        return

    if not permission_row:
        raise PermissionDenied("You do not have access to this conference")

    if permission is None:
        return

    if permission in SUPER_ADMIN_ONLY and profile.get("role") != SUPER_ADMIN:
        raise PermissionDenied(
            f"You do not have permission to {_describe(permission)} for this conference"
        )


def get_current_profile(
    authorization: str | None = Header(default=None),
    client: Client = Depends(store.get_supabase),
) -> dict:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise NotAuthenticated("Authentication required")
    token = authorization.split(" ", 1)[1].strip()

    try:
        res = client.auth.get_user(token)
    except Exception as exc:
        raise NotAuthenticated("Authentication required") from exc
    user = getattr(res, "user", None)
    if user is None:
        raise NotAuthenticated("Authentication required")

    profile = store.get_user_profile(client, user.id)
    if not profile:
        raise PermissionDenied("User profile not found")
    return profile


def require_conference_permission(permission: str | None = None) -> Callable:
    """Dependency factory guarding routes with an ``{conference_id}`` path parameter."""

    def dependency(
        conference_id: str,
        profile: dict = Depends(get_current_profile),
        client: Client = Depends(store.get_supabase),
    ) -> dict:
        row = None
        if profile.get("role") != SUPER_ADMIN:
            row = store.get_conference_permission(client, profile["id"], conference_id)
        check_conference_permission(profile, row, permission)
        return profile

    return dependency


require_can_edit_conference = require_conference_permission(CAN_EDIT_CONFERENCE)
