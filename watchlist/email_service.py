import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from watchlist import config

logger = logging.getLogger(__name__)

_TEMPLATES = {
    "registration": {
        "subject": "Watchlist --> Confirm your registration",
        "text": "Your registration verification code is: {code}\n\nThis code expires in {ttl} minutes.",
        "heading": "Welcome!",
        "intro": "Your registration verification code is:",
    },
    "login": {
        "subject": "Watchlist --> Your login code",
        "text": "Your login code is: {code}\n\nThis code expires in {ttl} minutes.",
        "heading": "Login code",
        "intro": "Your login code is:",
    },
}


def _ttl_minutes(purpose: str) -> int:
    if purpose == "registration":
        return config.VERIFICATION_CODE_TTL_MINUTES
    return config.LOGIN_CODE_TTL_MINUTES


def build_code_message(to_email: str, code: str, purpose: str) -> MIMEMultipart:
    template = _TEMPLATES[purpose]
    ttl = _ttl_minutes(purpose)

    msg = MIMEMultipart("alternative")
    msg["From"] = config.FROM_EMAIL
    msg["To"] = to_email
    msg["Subject"] = template["subject"]
    msg.attach(MIMEText(template["text"].format(code=code, ttl=ttl), "plain"))
    msg.attach(MIMEText(
        f"""
        <h1>{template["heading"]}</h1>
        <p>{template["intro"]}</p>
        <h2 style="font-family: monospace; font-size: 24px; color: #333;">{code}</h2>
        <p>This code expires in {ttl} minutes.</p>
        """,
        "html",
    ))
    return msg


def send_code_email(to_email: str, code: str, purpose: str) -> bool:
    """Mail a one-time code. Returns False instead of raising on failure.

    The code is already persisted when this runs, so in development it is
    also written to the log as a fallback channel.
    """
    if not config.SMTP_HOST:
        logger.warning("SMTP_HOST not configured; %s code for %s not sent", purpose, to_email)
        _log_code_for_development(to_email, code, purpose)
        return False

    msg = build_code_message(to_email, code, purpose)
    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT) as server:
            server.starttls()
            if config.SMTP_USERNAME:
                server.login(config.SMTP_USERNAME, config.SMTP_PASSWORD or "")
            server.sendmail(config.FROM_EMAIL, to_email, msg.as_string())
    except (smtplib.SMTPException, OSError):
        logger.exception("SMTP send of %s code to %s failed", purpose, to_email)
        _log_code_for_development(to_email, code, purpose)
        return False

    logger.info("Sent %s code to %s", purpose, to_email)
    return True


def _log_code_for_development(to_email: str, code: str, purpose: str) -> None:
    if config.is_development():
        logger.info("%s CODE FOR %s: %s", purpose.upper(), to_email, code)
