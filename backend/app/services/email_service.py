# services/email_service.py
import html
import requests
from pydantic import BaseModel
from typing import Optional
from app.core.config import settings
import logging

logger = logging.getLogger("airrands.email")
RESEND_URL = "https://api.resend.com/emails"

# ==========================
# AIRRANDS BRAND CONSTANTS
# ==========================
BRAND = "#E89C31"
APPROVED_BG, APPROVED_FG = "#d4edda", "#155724"
REJECTED_BG, REJECTED_FG = "#f8d7da", "#721c24"
NOTES_BG, NOTES_FG = "#fff3cd", "#856404"


class EmailData(BaseModel):
    to: str
    subject: str
    html_content: str
    text_content: Optional[str] = None
    from_email: str = settings.EMAIL_FROM


def send_email(data: EmailData) -> bool:
    if not settings.RESEND_API_KEY:
        logger.info(f"RESEND_API_KEY not set; e-mail to {data.to} skipped")
        return False
    try:
        headers = {
            "Authorization": f"Bearer {settings.RESEND_API_KEY}",
            "Content-Type": "application/json"
        }
        payload = {
            "from": data.from_email,
            "to": [data.to],
            "subject": data.subject,
            "html": data.html_content,
        }
        if data.text_content:
            payload["text"] = data.text_content
        resp = requests.post(RESEND_URL, json=payload, headers=headers, timeout=10)
        resp.raise_for_status()
        return True
    except Exception as e:
        logger.error(f"Email failed: {e}")
        raise


# ========================================
# VERIFICATION STATUS EMAIL
# ========================================
def build_verification_email(email: str, status: str, role: str, notes: Optional[str] = None) -> EmailData:
    label = status.capitalize()
    if status == "approved":
        banner = (
            f'<div style="background:{APPROVED_BG}; padding:15px; border-radius:5px; margin:20px 0;">'
            f'<p style="color:{APPROVED_FG}; margin:0;">Congratulations! You can now start using the platform as a {role}.</p></div>'
        )
        text = f"Your NIN verification for the {role} role has been approved."
    else:
        banner = (
            f'<div style="background:{REJECTED_BG}; padding:15px; border-radius:5px; margin:20px 0;">'
            f'<p style="color:{REJECTED_FG}; margin:0;">Your verification was not approved. '
            f'Please review the requirements and submit again.</p></div>'
        )
        text = f"Your NIN verification for the {role} role has been rejected. Please review the requirements and submit again."

    notes_block = ""
    if notes:
        notes_block = (
            f'<div style="background:{NOTES_BG}; padding:15px; border-radius:5px; margin:20px 0;">'
            f'<h4 style="color:{NOTES_FG}; margin:0 0 10px 0;">Review Notes:</h4>'
            f'<p style="color:{NOTES_FG}; margin:0;">{html.escape(notes)}</p></div>'
        )
        text = f"{text}\n\nReview notes: {notes}"

    html_content = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <div style="background-color: {BRAND}; padding: 20px; text-align: center;">
            <h1 style="color: white; margin: 0;">Airrands</h1>
        </div>
        <div style="padding: 20px; background-color: #f9f9f9;">
            <h2 style="color: #333;">NIN Verification {label}</h2>
            <p style="color: #666; line-height: 1.6;">Dear User,</p>
            <p style="color: #666; line-height: 1.6;">
                Your NIN verification for the {role} role has been <strong>{status}</strong>.
            </p>
            {banner}
            {notes_block}
            <p style="color: #666; line-height: 1.6;">If you have any questions, please contact our support team.</p>
        </div>
    </div>
    """

    return EmailData(
        to=email,
        subject=f"NIN Verification {label} - Airrands",
        html_content=html_content,
        text_content=text,
    )


def send_verification_status_email(email: str, status: str, role: str, notes: Optional[str] = None) -> bool:
    return send_email(build_verification_email(email, status, role, notes))
