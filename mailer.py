"""
mailer.py
Outgoing e-mail over SMTP (invites, convocation notices).
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

import config

logger = logging.getLogger("easyaso.mailer")


def is_enabled() -> bool:
    return bool(config.SMTP_CONFIG["host"])


def send_email(to: str, subject: str, body: str) -> bool:
    """
    Send a plain-text message. Returns False when mail is not configured.
    SMTP errors propagate to the caller.
    """
    smtp = config.SMTP_CONFIG
    if not is_enabled():
        logger.info("Mail disabled, not sending '%s' to %s", subject, to)
        return False

    msg = EmailMessage()
    msg["From"] = smtp["sender"]
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(body)

    with smtplib.SMTP(smtp["host"], smtp["port"], timeout=30) as server:
        server.starttls()
        if smtp["user"]:
            server.login(smtp["user"], smtp["password"])
        server.send_message(msg)
    logger.info("Sent '%s' to %s", subject, to)
    return True
