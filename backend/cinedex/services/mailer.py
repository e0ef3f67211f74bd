"""
Cinedex Backend: Outbound Email
=================================

What:  Renders and sends transactional emails (welcome, activation resend).
How:   Each template in `cinedex/templates/` defines three Jinja2 blocks:
       `subject`, `plain_body` and `html_body`. The rendered parts become a
       multipart/alternative message which smtplib delivers from a worker
       thread. Delivery is retried with tenacity:

           attempt 1 ──fail──▶ wait 0.5s ──▶ attempt 2 ──fail──▶ wait 0.5s ──▶ attempt 3

       A failure after the last attempt raises MailerError.
Who:   Called only from background tasks; a slow or failing SMTP server
       never delays an HTTP response.
"""

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from cinedex.config import settings
from cinedex.exceptions import MailerError

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

SMTP_TIMEOUT = 5.0
SEND_ATTEMPTS = 3
RETRY_WAIT = 0.5


class Mailer(ABC):
    """Anything that can deliver a templated email to one recipient."""

    @abstractmethod
    async def send(self, recipient: str, template_name: str, data: Dict[str, Any]) -> None:
        ...


class TemplateRenderer:
    def __init__(self, templates_dir: Path = TEMPLATES_DIR):
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            # Templates switch escaping on inside html_body only
            autoescape=False,
            undefined=StrictUndefined,
        )

    def render(self, template_name: str, data: Dict[str, Any]) -> Dict[str, str]:
        """Returns {"subject": ..., "plain_body": ..., "html_body": ...}."""
        template = self.env.get_template(template_name)
        context = template.new_context(dict(data))
        return {
            block: "".join(template.blocks[block](context)).strip()
            for block in ("subject", "plain_body", "html_body")
        }


class SmtpMailer(Mailer):
    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        renderer: Optional[TemplateRenderer] = None,
    ):
        self.host = host or settings.smtp_host
        self.port = port or settings.smtp_port
        self.username = username if username is not None else settings.smtp_username
        self.password = password if password is not None else settings.smtp_password
        self.sender = sender or settings.smtp_sender
        self.renderer = renderer or TemplateRenderer()

    def build_message(self, recipient: str, template_name: str, data: Dict[str, Any]) -> EmailMessage:
        parts = self.renderer.render(template_name, data)
        msg = EmailMessage()
        msg["Subject"] = parts["subject"]
        msg["From"] = self.sender
        msg["To"] = recipient
        msg.set_content(parts["plain_body"])
        msg.add_alternative(parts["html_body"], subtype="html")
        return msg

    async def send(self, recipient: str, template_name: str, data: Dict[str, Any]) -> None:
        msg = self.build_message(recipient, template_name, data)
        try:
            await self._deliver(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailerError(
                context={"template": template_name, "attempts": SEND_ATTEMPTS, "error": str(exc)}
            ) from exc
        logger.info("Sent %s email", template_name)

    @retry(
        retry=retry_if_exception_type((smtplib.SMTPException, OSError)),
        stop=stop_after_attempt(SEND_ATTEMPTS),
        wait=wait_fixed(RETRY_WAIT),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _deliver(self, msg: EmailMessage) -> None:
        await asyncio.to_thread(self._send_sync, msg)

    def _send_sync(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT) as server:
            if self.username:
                server.starttls()
                server.login(self.username, self.password)
            server.send_message(msg)
