from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .models import UpdateOutcome, VersionSource
from .settings import Settings


def send_email(subject: str, body: str, cfg: Settings) -> bool:
    """Send an email if SMTP settings are configured.

    Environment variables:
      - ITR_ENABLE_EMAIL=true
      - ITR_SMTP_HOST / ITR_SMTP_PORT
      - ITR_SMTP_USER / ITR_SMTP_PASSWORD
      - ITR_EMAIL_FROM / ITR_EMAIL_TO
    """
    if not cfg.enable_email:
        return False
    if not all(
        [
            cfg.smtp_host,
            cfg.smtp_port,
            cfg.smtp_user,
            cfg.smtp_password,
            cfg.email_from,
            cfg.email_to,
        ]
    ):
        return False

    try:
        msg = MIMEMultipart()
        msg["From"] = cfg.email_from
        msg["To"] = cfg.email_to
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain"))

        server = smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=10)
        server.starttls()
        server.login(cfg.smtp_user, cfg.smtp_password)
        server.sendmail(cfg.email_from, [cfg.email_to], msg.as_string())
        server.quit()
        return True
    except (smtplib.SMTPException, OSError):
        return False


def outcome_message(outcome: UpdateOutcome) -> tuple[str, str] | None:
    """Subject and body for runs worth telling an operator about, else None."""
    fell_back = outcome.source is VersionSource.FALLBACK
    if not outcome.changed and not fell_back:
        return None

    if outcome.changed:
        subject = f"UPDATED: {outcome.repository} {outcome.patch.old_version} -> {outcome.patch.new_version}"
    else:
        subject = f"FALLBACK: {outcome.repository} pinned to {outcome.selected_version}"
    body = (
        f"Repository: {outcome.repository}\n"
        f"Manifest: {outcome.manifest_path}\n"
        f"Selected: {outcome.selected_version} ({outcome.source.value})\n"
        f"Patch: {outcome.patch.status.value}\n"
    )
    if fell_back:
        body += f"Fallback reason: {outcome.fallback_reason}\n"
    return subject, body


class EmailNotifier:
    def __init__(self, cfg: Settings):
        self.cfg = cfg

    def __call__(self, outcome: UpdateOutcome) -> bool:
        msg = outcome_message(outcome)
        if msg is None:
            return False
        return send_email(msg[0], msg[1], self.cfg)
