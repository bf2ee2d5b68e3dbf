"""
Email service
Sends report attachments over SMTP
"""
import asyncio
import os
import smtplib
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

from pydantic import BaseModel

from .errors import EmailDispatchError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class SMTPConfig(BaseModel):
    """SMTP settings"""
    host: str = "localhost"
    port: int = 587
    username: str = ""
    password: str = ""
    use_tls: bool = True
    from_address: str = "reports@example.com"
    from_name: str = "QueryDesk"
    timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "SMTPConfig":
        return cls(
            host=os.getenv("SMTP_HOST", "localhost"),
            port=int(os.getenv("SMTP_PORT", "587")),
            username=os.getenv("SMTP_USER", ""),
            password=os.getenv("SMTP_PASSWORD", ""),
            use_tls=os.getenv("SMTP_USE_TLS", "true").lower() == "true",
            from_address=os.getenv("SMTP_FROM_EMAIL", "reports@example.com"),
            from_name=os.getenv("SMTP_FROM_NAME", "QueryDesk"),
            timeout=float(os.getenv("SMTP_TIMEOUT_SECONDS", "30")),
        )


class EmailService:
    """SMTP email sender"""

    def __init__(self, config: Optional[SMTPConfig] = None):
        self.config = config or SMTPConfig.from_env()

    def _build_message(
        self,
        to: str,
        subject: str,
        body: str,
        attachment: Optional[bytes],
        attachment_name: Optional[str],
        mime_type: Optional[str]
    ) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["From"] = formataddr((self.config.from_name, self.config.from_address))
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "html"))

        if attachment is not None and attachment_name and mime_type:
            maintype, _, subtype = mime_type.partition("/")
            part = MIMEBase(maintype, subtype or "octet-stream")
            part.set_payload(attachment)
            encoders.encode_base64(part)
            part.add_header("Content-Disposition", "attachment", filename=attachment_name)
            msg.attach(part)

        return msg

    def _send_sync(self, msg: MIMEMultipart, recipients) -> None:
        with smtplib.SMTP(self.config.host, self.config.port, timeout=self.config.timeout) as server:
            if self.config.use_tls:
                server.starttls()
            if self.config.username and self.config.password:
                server.login(self.config.username, self.config.password)
            server.sendmail(self.config.from_address, recipients, msg.as_string())

    async def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        attachment: Optional[bytes] = None,
        attachment_name: Optional[str] = None,
        mime_type: Optional[str] = None
    ) -> None:
        """
        Send an email, optionally with one attachment

        Args:
            to: recipient address; several may be separated by commas
            subject: subject line
            body: HTML body
            attachment: attachment bytes
            attachment_name: attachment filename
            mime_type: attachment MIME type

        Raises:
            EmailDispatchError: the SMTP server could not be reached or refused the message
        """
        recipients = [addr.strip() for addr in to.split(",") if addr.strip()]
        if not recipients:
            raise EmailDispatchError("No recipient address given")

        msg = self._build_message(to, subject, body, attachment, attachment_name, mime_type)

        try:
            await asyncio.to_thread(self._send_sync, msg, recipients)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to}: {e}", exc_info=True)
            raise EmailDispatchError(f"Failed to send email: {e}") from e

        logger.info(f"Email sent to {to}: subject='{subject}', attachment={attachment_name}")
