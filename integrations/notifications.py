"""Email notifications via SMTP."""
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import pytz

from config import settings
from utils.errors import NotificationFailure
from utils.logging import get_logger

logger = get_logger(__name__)


def _to_local_iso(utc_ts: int, tz_name: str) -> str:
    try:
        tz = pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        tz = pytz.UTC
    dt = datetime.fromtimestamp(utc_ts, tz=pytz.UTC)
    return dt.astimezone(tz).strftime("%Y-%m-%d %H:%M %Z")


def send_email(to: str, subject: str, body_text: str, body_html: Optional[str] = None) -> bool:
    """Send email via SMTP. Returns False when SMTP is not configured or the send fails."""
    if not settings.SMTP_HOST or not settings.SMTP_USER:
        logger.warning("SMTP not configured; skipping send to %s", to)
        return False
    if not to:
        logger.warning("No recipient for email")
        return False
    sender = settings.NOTIFICATION_FROM or settings.SMTP_USER
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to
    msg.attach(MIMEText(body_text, "plain"))
    if body_html:
        msg.attach(MIMEText(body_html, "html"))
    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.CF_REQUEST_TIMEOUT) as server:
            server.starttls()
            if settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(sender, to, msg.as_string())
        logger.info("Email sent to %s: %s", to, subject[:50])
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.exception("Failed to send email: %s", e)
        return False


def inactivity_message(profile: dict) -> tuple[str, str]:
    name = profile.get("name") or profile.get("codeforces_handle", "")
    last = profile.get("last_activity_at")
    last_str = _to_local_iso(last, settings.USER_TIMEZONE) if last else "unknown"
    subject = "Reminder: Get Back to Problem Solving!"
    body = (
        f"Hello {name},\n\n"
        f"We noticed that you haven't made any submissions on Codeforces in the last {settings.INACTIVITY_DAYS} days.\n"
        f"Your last submission: {last_str}\n"
        f"Your current rating: {profile.get('current_rating', 0)}\n"
        f"Your max rating: {profile.get('max_rating', 0)}\n\n"
        "Consistent practice is key to improving. Try a few problems from your current rating range "
        "or join the next Codeforces round: https://codeforces.com\n\n"
        "Keep coding!"
    )
    return subject, body


def notify_inactivity(profile: dict) -> None:
    """Send the inactivity reminder. Raises NotificationFailure when it could not be delivered."""
    subject, body = inactivity_message(profile)
    if not send_email(profile.get("email") or "", subject, body):
        raise NotificationFailure(f"Inactivity reminder to {profile.get('codeforces_handle')} was not sent")
