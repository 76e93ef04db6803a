"""
Email Service using Resend
Templates are MJML, compiled to HTML before sending
"""

import logging
from io import StringIO
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, FRONTEND_URL, RESEND_API_KEY
from .email_templates import service_approval_required_template

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailNotConfiguredError(Exception):
    """RESEND_API_KEY missing"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    result = mjml_to_html(StringIO(mjml_content))
    # mjml_to_html returns a dict with 'html' and 'errors' keys
    if result.get("errors"):
        logger.warning(f"MJML compilation warnings: {result['errors']}")
    return result.get("html", "")


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Resend response dict
    """
    if not RESEND_API_KEY:
        logger.error("No email service configured - RESEND_API_KEY missing")
        raise EmailNotConfiguredError("Email service not configured")

    recipients = [to] if isinstance(to, str) else to
    email_data = {
        "from": from_address or EMAIL_FROM_ADDRESS,
        "to": recipients,
        "subject": subject,
        "html": compile_mjml_to_html(mjml_content),
    }

    logger.info(f"Sending email via Resend to: {recipients}")
    response = resend.Emails.send(email_data)
    logger.info(f"Email sent successfully via Resend: {response}")
    return response


async def send_service_approval_email(
    to: str,
    business_name: str,
    service_name: str,
    platform: str,
    original_price: float,
    discounted_price: float,
    discount_percentage: float,
) -> dict:
    """Ask a provider to approve a newly synced service"""
    mjml_content = service_approval_required_template(
        business_name=business_name,
        service_name=service_name,
        platform=platform,
        original_price=original_price,
        discounted_price=discounted_price,
        discount_percentage=discount_percentage,
        dashboard_url=f"{FRONTEND_URL}/provider-dashboard",
    )
    return await send_email(
        to=to,
        subject=f"New Service Approval Required - {service_name}",
        mjml_content=mjml_content,
    )
