import os
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

import requests
from jinja2 import Environment, FileSystemLoader, select_autoescape

from identity_service.platform.config import settings
from identity_service.platform.logger import get_logger

logger = get_logger("email_service")

current_dir = os.path.dirname(os.path.abspath(__file__))
template_dir = os.path.join(current_dir, "../../features/auth/template")

env = Environment(loader=FileSystemLoader(template_dir), autoescape=select_autoescape(["html"]))


class EmailDeliveryError(Exception):
    pass


def render_template(name: str, **context) -> str:
    return env.get_template(name).render(app_name=settings.APP_NAME, **context)


def send_email(to_email: str, subject: str, body: str):
    """
    Send email via HTTP relay service
    Falls back to direct SMTP if relay is not configured.
    Raises EmailDeliveryError when every channel fails.
    """
    if not settings.MAIL_ENABLED:
        logger.info(f"Mail disabled, dropping '{subject}' for {to_email}")
        return

    if settings.EMAIL_RELAY_URL and settings.EMAIL_RELAY_API_KEY:
        try:
            send_email_via_relay(to_email, subject, body)
            return
        except EmailDeliveryError as e:
            logger.error(f"Email relay failed: {str(e)}")
            logger.info("Attempting direct SMTP as fallback...")
    else:
        logger.warning("Email relay not configured, attempting direct SMTP")

    send_email_direct_smtp(to_email, subject, body)


def send_email_via_relay(to_email: str, subject: str, body: str):
    """Send email via HTTP relay service"""
    payload = {
        "to_email": to_email,
        "subject": subject,
        "body": body,
        "from_address": settings.MAIL_FROM_ADDRESS,
    }

    headers = {
        "X-API-Key": settings.EMAIL_RELAY_API_KEY,
        "Content-Type": "application/json",
    }

    try:
        response = requests.post(
            settings.EMAIL_RELAY_URL,
            json=payload,
            headers=headers,
            timeout=settings.EMAIL_RELAY_TIMEOUT,
        )
        response.raise_for_status()
    except requests.exceptions.Timeout as e:
        raise EmailDeliveryError("Email relay service timeout") from e
    except requests.exceptions.RequestException as e:
        if e.response is not None:
            logger.error(f"Relay responded {e.response.status_code}: {e.response.text}")
        raise EmailDeliveryError(f"Email relay service error: {str(e)}") from e

    logger.info(f"Email sent via relay to {to_email}")


def send_email_direct_smtp(to_email: str, subject: str, body: str):
    """Send email via SMTP"""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = formataddr((settings.MAIL_FROM_NAME, settings.MAIL_FROM_ADDRESS))
    msg["To"] = to_email

    msg.attach(MIMEText(body, "html"))

    port = settings.MAIL_PORT
    try:
        if port == 465:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(settings.MAIL_HOST, port, context=context, timeout=settings.MAIL_TIMEOUT) as server:
                server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
                server.sendmail(settings.MAIL_FROM_ADDRESS, to_email, msg.as_string())
        else:
            with smtplib.SMTP(settings.MAIL_HOST, port, timeout=settings.MAIL_TIMEOUT) as server:
                server.ehlo()

                if str(settings.MAIL_ENCRYPTION).upper() in ["TLS", "TRUE"]:
                    server.starttls()
                    server.ehlo()

                server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
                server.sendmail(settings.MAIL_FROM_ADDRESS, to_email, msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        raise EmailDeliveryError(f"SMTP delivery failed: {str(e)}") from e

    logger.info(f"Email sent via SMTP to {to_email}")
