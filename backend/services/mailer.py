"""
Outbound mail over SMTP (implicit TLS on 465, STARTTLS otherwise).

smtplib is blocking, so sends run in a worker thread via asyncio.to_thread.
Failures surface as ExternalServiceError for the route to turn into a 502.
"""

import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.text import MIMEText
from email.utils import make_msgid, formatdate

from errors import ExternalServiceError

logger = logging.getLogger(__name__)

SMTPS_PORT = 465


@dataclass
class Mailer:
    host: str
    port: int
    user: str = ""
    password: str = ""
    sender: str = ""
    timeout_s: float = 20.0

    @property
    def from_address(self) -> str:
        return self.sender or self.user

    def _send_sync(self, to_address: str, subject: str, body: str) -> str:
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self.from_address
        msg["To"] = to_address
        msg["Date"] = formatdate(localtime=False)
        message_id = make_msgid(domain=self.from_address.split("@")[-1] or None)
        msg["Message-ID"] = message_id

        with self._connect() as server:
            if self.user:
                server.login(self.user, self.password)
            server.sendmail(self.from_address, [to_address], msg.as_string())
        return message_id

    def _connect(self) -> smtplib.SMTP:
        """Implicit TLS on port 465, STARTTLS on any other port."""
        if self.port == SMTPS_PORT:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout_s)
        server = smtplib.SMTP(self.host, self.port, timeout=self.timeout_s)
        try:
            server.starttls(context=ssl.create_default_context())
        except Exception:
            server.close()
            raise
        return server

    async def send(self, to_address: str, subject: str, body: str) -> str:
        """Send a plain-text email. Returns the Message-ID header value."""
        if not self.from_address:
            raise ExternalServiceError(
                "Email is not configured",
                details="Set EMAIL_USER or EMAIL_FROM",
                service="smtp",
            )
        try:
            message_id = await asyncio.to_thread(self._send_sync, to_address, subject, body)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP send to {to_address} failed: {e}")
            raise ExternalServiceError("Failed to send email", details=str(e), service="smtp") from e
        logger.info(f"Email sent to {to_address}: {subject}")
        return message_id


def build_mailer() -> Mailer:
    """Create a Mailer from runtime config."""
    from config import runtime_config

    return Mailer(
        host=runtime_config.email_host,
        port=runtime_config.email_port,
        user=runtime_config.email_user,
        password=runtime_config.email_password,
        sender=runtime_config.email_from,
    )
