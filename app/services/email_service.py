import smtplib
from email.message import EmailMessage
from typing import Optional

from app.logging_config import get_logger

logger = get_logger("email_service")


class EmailService:
    """Plain-text email with optional attachments over SMTP (SSL or STARTTLS)."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        user: Optional[str] = None,
        password: Optional[str] = None,
        use_ssl: bool = False,
        timeout: float = 20.0,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.user = user
        self.password = password
        self.use_ssl = use_ssl
        self.timeout = timeout

    def send(
        self,
        recipients: list[str],
        subject: str,
        body: str,
        attachments: Optional[list[tuple[str, bytes, str]]] = None,
    ) -> bool:
        """Send a plain-text message. Attachments are (filename, content, mime type) triples."""
        if not recipients:
            logger.warning("Email not sent: no recipients")
            return False

        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        msg.set_content(body)
        for filename, content, mime_type in attachments or []:
            maintype, _, subtype = mime_type.partition("/")
            msg.add_attachment(content, maintype=maintype, subtype=subtype, filename=filename)

        try:
            if self.use_ssl:
                with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as smtp:
                    if self.user:
                        smtp.login(self.user, self.password or "")
                    smtp.send_message(msg)
            else:
                with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                    smtp.starttls()
                    if self.user:
                        smtp.login(self.user, self.password or "")
                    smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP error: {e}")
            return False

        logger.info(f"Email dispatched: subject={subject}, recipients={len(recipients)}")
        return True
