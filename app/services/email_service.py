"""Email service using Resend."""
import logging
from datetime import datetime
from typing import Optional, List

import resend

from app.core.config import settings

logger = logging.getLogger(__name__)


async def send_email(
    to: str | List[str],
    subject: str,
    html: str,
    attachments: Optional[List[dict]] = None,
) -> bool:
    """
    Send an email using Resend.

    Args:
        to: Recipient email(s)
        subject: Email subject
        html: HTML content of the email
        attachments: Optional list of attachments with format:
            [{"filename": "file.pdf", "content": base64_string}]

    Returns:
        True if email was sent successfully
    """
    if not settings.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not configured, email not sent")
        return False

    resend.api_key = settings.RESEND_API_KEY
    try:
        params = {
            "from": settings.FROM_EMAIL,
            "to": [to] if isinstance(to, str) else to,
            "subject": subject,
            "html": html,
        }

        if attachments:
            params["attachments"] = attachments

        resend.Emails.send(params)
        return True
    except Exception as e:
        logger.error(f"Error sending email: {e}")
        return False


async def send_contract_signed_email(
    contract_title: str,
    work_title: str,
    collaborator_name: str,
    signer_email: Optional[str],
    signed_at: Optional[datetime],
    contract_id: str,
) -> bool:
    """
    Tell the contracts inbox that a collaborator signed.

    Returns:
        True if email was sent successfully
    """
    if not settings.CONTRACTS_NOTIFY_EMAIL:
        logger.warning("CONTRACTS_NOTIFY_EMAIL not configured, signed notification not sent")
        return False

    signed_label = signed_at.strftime("%Y-%m-%d %H:%M UTC") if signed_at else "just now"

    html = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
    </head>
    <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
        <div style="background: #16a34a; padding: 20px; border-radius: 8px 8px 0 0;">
            <h1 style="color: white; margin: 0;">Contract signed</h1>
        </div>

        <div style="background: #f9f9f9; padding: 20px; border: 1px solid #ddd; border-top: none; border-radius: 0 0 8px 8px;">
            <p style="font-size: 16px; color: #333;">
                <strong>{collaborator_name}</strong> signed the <strong>{contract_title}</strong>
                for <strong>"{work_title}"</strong>.
            </p>

            <table style="border-collapse: collapse; width: 100%;">
                <tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>Signer:</strong></td><td style="padding: 8px; border-bottom: 1px solid #eee;">{signer_email or 'Unknown'}</td></tr>
                <tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>Signed:</strong></td><td style="padding: 8px; border-bottom: 1px solid #eee;">{signed_label}</td></tr>
                <tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>Contract:</strong></td><td style="padding: 8px; border-bottom: 1px solid #eee;">{contract_id}</td></tr>
            </table>

            <hr style="border: none; border-top: 1px solid #ddd; margin: 30px 0;">

            <p style="font-size: 12px; color: #999; text-align: center;">
                This email was sent automatically when the e-signature provider reported completion.
            </p>
        </div>
    </body>
    </html>
    """

    return await send_email(
        to=settings.CONTRACTS_NOTIFY_EMAIL,
        subject=f"Contract signed - {collaborator_name} - {work_title}",
        html=html,
    )
