from datetime import datetime
from functools import lru_cache

import razorpay
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel
from supabase import Client

import settings
import store
from acknowledgement import send_ack_email
from charges import ChargeAmount, resolve_charge_amount
from currency import format_price_with_symbol
from observability import get_logger
from registration_fees import utc_now

logger = get_logger(__name__)

router = APIRouter()


@lru_cache(maxsize=1)
def get_razorpay() -> razorpay.Client:
    return razorpay.Client(auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_SECRET))


class QuoteRequest(BaseModel):
    conference_slug: str
    registration_fee_type: str | None = None


class CreateOrderRequest(BaseModel):
    registration_id: str


class VerifyPayload(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


def load_charge(client: Client, conference, registration, now: datetime):
    conference = store.with_custom_fees(client, conference)
    usage = store.get_fee_type_usage(client, conference.id)
    charge = resolve_charge_amount(
        registration, conference, usage, now, settings.LATE_REGISTRATION_DAYS
    )
    return conference, charge


@router.post("/quote")
def quote(
    body: QuoteRequest,
    client: Client = Depends(store.get_supabase_admin),
    now: datetime = Depends(utc_now),
):
    conference = store.get_conference_by_slug(client, body.conference_slug)
    _, charge = load_charge(
        client, conference, {"registration_fee_type": body.registration_fee_type}, now
    )
    return {
        **charge.model_dump(),
        "display": format_price_with_symbol(charge.amount, charge.currency),
    }


@router.post("/create-order")
def create_order(
    body: CreateOrderRequest,
    client: Client = Depends(store.get_supabase_admin),
    rzp: razorpay.Client = Depends(get_razorpay),
    now: datetime = Depends(utc_now),
):
    registration = store.get_registration(client, body.registration_id)
    conference = store.get_conference(client, registration["conference_id"])
    conference, charge = load_charge(client, conference, registration, now)

    if charge.amount <= 0:
        logger.warning(
            "nothing_to_charge",
            registration_id=body.registration_id,
            fee_type=charge.fee_type,
        )
        raise HTTPException(status_code=400, detail="Nothing to charge for this registration")

    amount_minor = to_minor_units(charge.amount)
    try:
        order = rzp.order.create({
            "amount": amount_minor,
            "currency": charge.currency.upper(),
            "payment_capture": 1,
            "notes": {
                "registration_id": body.registration_id,
                "conference_id": conference.id,
                "fee_type": charge.fee_type or "",
                "email": registration.get("email") or "",
            },
        })
    except Exception as e:
        logger.error("order_create_failed", registration_id=body.registration_id, error=str(e))
        raise HTTPException(status_code=400, detail=str(e))

    store.update_registration(client, body.registration_id, {"payment_order_id": order["id"]})
    logger.info(
        "order_created",
        registration_id=body.registration_id,
        order_id=order["id"],
        amount=amount_minor,
        currency=charge.currency,
    )
    return {
        "key": settings.RAZORPAY_KEY_ID,
        "order": order,
        "amount": amount_minor,
        "display": {
            "fee_type": charge.fee_type,
            "amount": charge.amount,
            "currency": charge.currency,
            "formatted": format_price_with_symbol(charge.amount, charge.currency),
        },
    }


@router.post("/verify-payment")
def verify_payment(
    payload: VerifyPayload,
    background_tasks: BackgroundTasks,
    client: Client = Depends(store.get_supabase_admin),
    rzp: razorpay.Client = Depends(get_razorpay),
):
    try:
        rzp.utility.verify_payment_signature({
            "razorpay_order_id": payload.razorpay_order_id,
            "razorpay_payment_id": payload.razorpay_payment_id,
            "razorpay_signature": payload.razorpay_signature,
        })
        order = rzp.order.fetch(payload.razorpay_order_id)
    except Exception as e:
        logger.warning("payment_verification_failed", order_id=payload.razorpay_order_id, error=str(e))
        raise HTTPException(status_code=400, detail=f"Verification failed: {e}")

    notes = order.get("notes") or {}
    registration_id = notes.get("registration_id")
    if not registration_id:
        raise HTTPException(status_code=400, detail="Order is not linked to a registration")

    registration = store.get_registration(client, registration_id)
    conference = store.get_conference(client, registration["conference_id"])
    charge = ChargeAmount(
        amount=order["amount"] / 100,
        currency=order.get("currency") or conference.pricing.currency,
        fee_type=notes.get("fee_type") or None,
    )

    store.update_registration(client, registration_id, {
        "status": "paid",
        "payment_status": "paid",
        "payment_id": payload.razorpay_payment_id,
    })
    logger.info(
        "payment_verified",
        registration_id=registration_id,
        order_id=payload.razorpay_order_id,
    )

    if registration.get("email"):
        background_tasks.add_task(send_ack_email, registration, conference, charge)

    return {
        "status": "success",
        "order_id": payload.razorpay_order_id,
        "registration_id": registration_id,
    }
