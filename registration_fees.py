from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel
from supabase import Client

import settings
import store
from errors import ConferenceNotFound
from fees import FeeInput, FeeUpdate, build_fee_row, build_fee_updates, list_available_fees, list_fees_for_admin
from observability import get_logger
from permissions import CAN_VIEW_REGISTRATIONS, require_can_edit_conference, require_conference_permission
from pricing import resolve_pricing, tier_display_name
from vat import price_breakdown

logger = get_logger(__name__)

router = APIRouter()
admin_router = APIRouter()

NO_STORE = {"Cache-Control": "no-store, max-age=0"}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReorderRequest(BaseModel):
    fee_ids: list[str]


# --- public ---------------------------------------------------------------

@router.get("/{slug}/registration-fees")
def public_registration_fees(
    slug: str,
    client: Client = Depends(store.get_supabase),
    admin_client: Client = Depends(store.get_supabase_admin),
    now: datetime = Depends(utc_now),
):
    conference = store.get_conference_by_slug(client, slug)
    fees = store.get_custom_fees(admin_client, conference.id)
    counts = store.get_sold_counts_by_fee_id(admin_client, conference.id)
    options = list_available_fees(fees, counts, now)
    return {
        "fees": [option.as_payload() for option in options],
        "currency": options[0].currency if options else settings.DEFAULT_CURRENCY,
    }


@router.get("/{slug}/fee-type-usage")
def public_fee_type_usage(slug: str, client: Client = Depends(store.get_supabase)):
    conference = store.get_conference_by_slug(client, slug)
    return {"usage": store.get_fee_type_usage(client, conference.id)}


@router.get("/{slug}/pricing")
def current_pricing(
    slug: str,
    client: Client = Depends(store.get_supabase),
    now: datetime = Depends(utc_now),
):
    conference = store.get_conference_by_slug(client, slug)
    current = resolve_pricing(
        conference.pricing, now, conference.start_date, settings.LATE_REGISTRATION_DAYS
    )
    vat = conference.pricing.vat_percentage
    return {
        **current.model_dump(),
        "tier_name": tier_display_name(current.tier),
        "participant_breakdown": price_breakdown(current.participant_price, vat).model_dump(),
    }


# --- admin ----------------------------------------------------------------

@admin_router.get(
    "/{conference_id}/registration-fees",
    dependencies=[Depends(require_can_edit_conference)],
)
def admin_list_fees(
    conference_id: str,
    response: Response,
    client: Client = Depends(store.get_supabase_admin),
):
    response.headers.update(NO_STORE)
    fees = store.get_custom_fees(client, conference_id)
    try:
        counts = store.get_sold_counts_by_fee_id(client, conference_id)
    except Exception as e:
        logger.warning("sold_counts_unavailable", conference_id=conference_id, error=str(e))
        counts = {}
    views = list_fees_for_admin(fees, counts)
    return {"fees": [view.model_dump() for view in views]}


@admin_router.post(
    "/{conference_id}/registration-fees",
    dependencies=[Depends(require_can_edit_conference)],
)
def admin_create_fee(
    conference_id: str, body: FeeInput, client: Client = Depends(store.get_supabase_admin)
):
    conference = store.get_conference(client, conference_id)
    row = build_fee_row(
        conference_id,
        body,
        conference.pricing,
        store.next_display_order(client, conference_id),
        settings.DEFAULT_CURRENCY,
    )
    fee = store.insert_fee(client, row)
    return {"fee": fee.model_dump()}


@admin_router.patch(
    "/{conference_id}/registration-fees/{fee_id}",
    dependencies=[Depends(require_can_edit_conference)],
)
def admin_update_fee(
    conference_id: str,
    fee_id: str,
    body: FeeUpdate,
    client: Client = Depends(store.get_supabase_admin),
):
    if not store.fee_exists(client, conference_id, fee_id):
        raise HTTPException(status_code=404, detail="Fee not found")

    pricing = None
    stored = None
    if body.changes_price or body.changes_vat:
        try:
            pricing = store.get_conference(client, conference_id).pricing
        except ConferenceNotFound:
            pricing = None
    if body.changes_vat and not body.changes_price:
        stored = store.get_fee(client, conference_id, fee_id)

    updates = build_fee_updates(body, pricing, stored)
    if not updates:
        raise HTTPException(status_code=400, detail="Nothing to update")

    fee = store.update_fee(client, conference_id, fee_id, updates)
    if fee is None:
        raise HTTPException(status_code=404, detail="Fee not found")
    return {"fee": fee.model_dump()}


@admin_router.delete(
    "/{conference_id}/registration-fees/{fee_id}",
    dependencies=[Depends(require_can_edit_conference)],
)
def admin_delete_fee(
    conference_id: str, fee_id: str, client: Client = Depends(store.get_supabase_admin)
):
    store.delete_fee(client, conference_id, fee_id)
    return {"success": True}


@admin_router.post(
    "/{conference_id}/registration-fees/reorder",
    dependencies=[Depends(require_can_edit_conference)],
)
def admin_reorder_fees(
    conference_id: str, body: ReorderRequest, client: Client = Depends(store.get_supabase_admin)
):
    if not body.fee_ids:
        raise HTTPException(status_code=400, detail="fee_ids array is required")
    store.reorder_fees(client, conference_id, body.fee_ids)
    return {"success": True}


@admin_router.get(
    "/{conference_id}/fee-type-usage",
    dependencies=[Depends(require_conference_permission(CAN_VIEW_REGISTRATIONS))],
)
def admin_fee_type_usage(conference_id: str, client: Client = Depends(store.get_supabase_admin)):
    return {"usage": store.get_fee_type_usage(client, conference_id)}
