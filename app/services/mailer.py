"""
Outbound mail. SMTP when configured, nothing otherwise.
"""
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Sequence

from ..config import Settings, settings as default_settings


@dataclass
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


class Mailer:
    def send(self, to: str, subject: str, body: str, attachments: Optional[Sequence[Attachment]] = None) -> None:
        raise NotImplementedError


class SmtpMailer(Mailer):
    def __init__(self, cfg: Settings):
        self.cfg = cfg

    def build_message(self, to: str, subject: str, body: str, attachments: Optional[Sequence[Attachment]] = None) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.cfg.mail_from
        msg["To"] = to
        msg.set_content(body)
        for att in attachments or []:
            maintype, _, subtype = att.content_type.partition("/")
            msg.add_attachment(att.content, maintype=maintype, subtype=subtype or "octet-stream", filename=att.filename)
        return msg

    def send(self, to: str, subject: str, body: str, attachments: Optional[Sequence[Attachment]] = None) -> None:
        msg = self.build_message(to, subject, body, attachments)
        with smtplib.SMTP(self.cfg.smtp_host, self.cfg.smtp_port) as s:
            if self.cfg.smtp_tls:
                s.starttls()
            if self.cfg.smtp_username and self.cfg.smtp_password:
                s.login(self.cfg.smtp_username, self.cfg.smtp_password)
            s.send_message(msg)


def mailer_from_settings(cfg: Optional[Settings] = None) -> Optional[Mailer]:
    """Mail transport for the current configuration, or None when SMTP is not set up."""
    cfg = cfg or default_settings
    if not cfg.smtp_host:
        return None
    return SmtpMailer(cfg)


def get_mailer() -> Optional[Mailer]:
    return mailer_from_settings()
