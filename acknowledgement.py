import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

import settings
from charges import ChargeAmount, Conference, CustomFeeSelection, FeeTypeSelection, parse_fee_type
from currency import format_price_with_symbol
from errors import InvalidPricingInput
from observability import get_logger
from pricing import tier_display_name

logger = get_logger(__name__)

EXTRA_FEE_LABELS = {
    "student": "Student",
    "accompanying_person": "Accompanying Person",
}


def fee_label(fee_type: str | None, conference: Conference) -> str:
    """Human readable name of a fee-type token."""
    try:
        selection = parse_fee_type(fee_type)
    except InvalidPricingInput:
        return fee_type or ""
    if isinstance(selection, CustomFeeSelection):
        for fee in conference.custom_fees:
            if fee.id == selection.fee_id:
                return fee.name
        return "Registration fee"
    if isinstance(selection, FeeTypeSelection):
        category = conference.pricing.fee_type(selection.fee_type_id)
        return category.name if category and category.name else f"Fee type: {selection.fee_type_id}"
    if selection.tier in EXTRA_FEE_LABELS:
        return EXTRA_FEE_LABELS[selection.tier]
    return tier_display_name(selection.tier)


def participant_name(registration: dict) -> str:
    name = " ".join(
        part.strip()
        for part in (registration.get("first_name") or "", registration.get("last_name") or "")
        if part and part.strip()
    )
    return name or "Participant"


def build_ack_email(registration: dict, conference: Conference, charge: ChargeAmount) -> MIMEMultipart:
    subject = f"{conference.name} - Registration Confirmation" if conference.name else "Registration Confirmation"
    amount = format_price_with_symbol(charge.amount, charge.currency)

    body = f"""
    <html>
      <body style="font-family: Arial, sans-serif; color: #333; line-height: 1.6; padding:20px;">
        <h2 style="color:#2E86C1;">Hello {escape(participant_name(registration))},</h2>

        <p>Thank you for registering for <b>{escape(conference.name)}</b>. Your payment has been received.</p>

        <table style="border-collapse: collapse; width: 100%; margin-bottom:20px;">
          <tr>
            <td style="border:1px solid #ddd; padding:8px;"><b>Registration fee</b></td>
            <td style="border:1px solid #ddd; padding:8px;">{escape(fee_label(charge.fee_type, conference))}</td>
          </tr>
          <tr>
            <td style="border:1px solid #ddd; padding:8px;"><b>Amount Paid</b></td>
            <td style="border:1px solid #ddd; padding:8px;">{escape(amount)}</td>
          </tr>
          <tr>
            <td style="border:1px solid #ddd; padding:8px;"><b>Conference Date</b></td>
            <td style="border:1px solid #ddd; padding:8px;">{escape(conference.start_date or "TBA")}</td>
          </tr>
        </table>

        <p style="margin-top:20px;">We look forward to welcoming you to the conference.</p>
      </body>
    </html>
    """

    msg = MIMEMultipart("alternative")
    msg["From"] = settings.EMAIL_FROM or settings.SMTP_USER
    msg["To"] = registration["email"]
    msg["Subject"] = subject
    if settings.EMAIL_BCC:
        msg["Bcc"] = settings.EMAIL_BCC
    msg.attach(MIMEText(body, "html"))
    return msg


def send_ack_email(registration: dict, conference: Conference, charge: ChargeAmount) -> bool:
    if not settings.SMTP_USER or not settings.SMTP_PASS:
        logger.warning("smtp_not_configured", registration_id=registration.get("id"))
        return False

    msg = build_ack_email(registration, conference, charge)
    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
            server.starttls()
            server.login(settings.SMTP_USER, settings.SMTP_PASS)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("ack_email_failed", registration_id=registration.get("id"), error=str(e))
        return False

    logger.info("ack_email_sent", registration_id=registration.get("id"))
    return True
