"""Supabase access for conferences, registration fees and registrations."""
from functools import lru_cache

from postgrest.exceptions import APIError
from supabase import Client, create_client

import settings
from charges import Conference
from errors import ConferenceNotFound, RegistrationNotFound
from fees import (
    COUNTED_STATUSES,
    CustomRegistrationFee,
    count_by_fee_type,
    count_sold_by_fee,
)
from observability import get_logger

logger = get_logger(__name__)

CONFERENCE_COLUMNS = "id, name, slug, start_date, pricing"
UNDEFINED_COLUMN = "42703"


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


@lru_cache(maxsize=1)
def get_supabase_admin() -> Client:
    """Service-role client; reads fee tables regardless of row-level security."""
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


def _first(res) -> dict | None:
    rows = res.data or []
    return rows[0] if rows else None


def get_conference(client: Client, conference_id: str) -> Conference:
    row = _first(
        client.table("conferences")
        .select(CONFERENCE_COLUMNS)
        .eq("id", conference_id)
        .limit(1)
        .execute()
    )
    if not row:
        raise ConferenceNotFound(conference_id)
    return Conference(**row)


def get_conference_by_slug(client: Client, slug: str) -> Conference:
    row = _first(
        client.table("conferences")
        .select(CONFERENCE_COLUMNS)
        .eq("slug", slug)
        .limit(1)
        .execute()
    )
    if not row:
        raise ConferenceNotFound(slug)
    return Conference(**row)


def get_custom_fees(client: Client, conference_id: str) -> list[CustomRegistrationFee]:
    res = (
        client.table("custom_registration_fees")
        .select("*")
        .eq("conference_id", conference_id)
        .order("display_order")
        .execute()
    )
    return [CustomRegistrationFee(**row) for row in res.data or []]


def with_custom_fees(client: Client, conference: Conference) -> Conference:
    return conference.model_copy(
        update={"custom_fees": get_custom_fees(client, conference.id)}
    )


def _is_missing_status_column(exc: APIError) -> bool:
    message = exc.message or ""
    return exc.code == UNDEFINED_COLUMN or "status" in message or "column" in message


def get_sold_counts_by_fee_id(client: Client, conference_id: str) -> dict[str, int]:
    """Seats taken per custom fee, counting confirmed and paid registrations.

    Databases without ``registrations.status`` fall back to counting every
    registration that references a fee.
    """
    try:
        res = (
            client.table("registrations")
            .select("registration_fee_id, status")
            .eq("conference_id", conference_id)
            .not_.is_("registration_fee_id", "null")
            .in_("status", list(COUNTED_STATUSES))
            .execute()
        )
        return count_sold_by_fee(res.data or [])
    except APIError as exc:
        if not _is_missing_status_column(exc):
            raise
        logger.warning(
            "sold_counts_status_column_missing",
            conference_id=conference_id,
            error=exc.message,
        )

    res = (
        client.table("registrations")
        .select("registration_fee_id")
        .eq("conference_id", conference_id)
        .not_.is_("registration_fee_id", "null")
        .execute()
    )
    return count_sold_by_fee(res.data or [], statuses=None)


def get_fee_type_usage(client: Client, conference_id: str) -> dict[str, int]:
    res = (
        client.table("registrations")
        .select("registration_fee_type")
        .eq("conference_id", conference_id)
        .not_.is_("registration_fee_type", "null")
        .execute()
    )
    return count_by_fee_type(res.data or [])


def next_display_order(client: Client, conference_id: str) -> int:
    row = _first(
        client.table("custom_registration_fees")
        .select("display_order")
        .eq("conference_id", conference_id)
        .order("display_order", desc=True)
        .limit(1)
        .execute()
    )
    if not row or row.get("display_order") is None:
        return 0
    return row["display_order"] + 1


def insert_fee(client: Client, row: dict) -> CustomRegistrationFee:
    res = client.table("custom_registration_fees").insert(row).execute()
    inserted = _first(res)
    if not inserted:
        raise RuntimeError("Failed to create fee (no data returned)")
    logger.info(
        "registration_fee_created",
        fee_id=inserted["id"],
        conference_id=row["conference_id"],
    )
    return CustomRegistrationFee(**inserted)


def fee_exists(client: Client, conference_id: str, fee_id: str) -> bool:
    row = _first(
        client.table("custom_registration_fees")
        .select("id")
        .eq("id", fee_id)
        .eq("conference_id", conference_id)
        .limit(1)
        .execute()
    )
    return row is not None


def get_fee(client: Client, conference_id: str, fee_id: str) -> CustomRegistrationFee | None:
    row = _first(
        client.table("custom_registration_fees")
        .select("*")
        .eq("id", fee_id)
        .eq("conference_id", conference_id)
        .limit(1)
        .execute()
    )
    return CustomRegistrationFee(**row) if row else None


def update_fee(
    client: Client, conference_id: str, fee_id: str, updates: dict
) -> CustomRegistrationFee | None:
    res = (
        client.table("custom_registration_fees")
        .update(updates)
        .eq("id", fee_id)
        .eq("conference_id", conference_id)
        .execute()
    )
    row = _first(res)
    if row:
        logger.info("registration_fee_updated", fee_id=fee_id, conference_id=conference_id)
    return CustomRegistrationFee(**row) if row else None


def delete_fee(client: Client, conference_id: str, fee_id: str) -> None:
    (
        client.table("custom_registration_fees")
        .delete()
        .eq("id", fee_id)
        .eq("conference_id", conference_id)
        .execute()
    )
    logger.info("registration_fee_deleted", fee_id=fee_id, conference_id=conference_id)


def reorder_fees(client: Client, conference_id: str, fee_ids: list[str]) -> None:
    for position, fee_id in enumerate(fee_ids):
        (
            client.table("custom_registration_fees")
            .update({"display_order": position})
            .eq("id", fee_id)
            .eq("conference_id", conference_id)
            .execute()
        )
    logger.info("registration_fees_reordered", conference_id=conference_id, count=len(fee_ids))


def get_registration(client: Client, registration_id: str) -> dict:
    row = _first(
        client.table("registrations")
        .select("*")
        .eq("id", registration_id)
        .limit(1)
        .execute()
    )
    if not row:
        raise RegistrationNotFound(registration_id)
    return row


def update_registration(client: Client, registration_id: str, values: dict) -> None:
    client.table("registrations").update(values).eq("id", registration_id).execute()


def get_user_profile(client: Client, user_id: str) -> dict | None:
    return _first(
        client.table("user_profiles").select("*").eq("id", user_id).limit(1).execute()
    )


def get_conference_permission(client: Client, user_id: str, conference_id: str) -> dict | None:
    return _first(
        client.table("conference_permissions")
        .select("*")
        .eq("user_id", user_id)
        .eq("conference_id", conference_id)
        .limit(1)
        .execute()
    )
