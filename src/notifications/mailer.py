"""SMTP delivery for transactional email."""

import asyncio
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import TYPE_CHECKING

from src.core.logging import get_logger
from src.notifications.templates import RenderedEmail

if TYPE_CHECKING:
    from src.payments.circuit_breaker import CircuitBreaker

logger = get_logger(__name__)


class SmtpMailer:
    """Sends rendered emails through one authenticated SMTP account.

    Port 465 uses implicit SSL; any other port upgrades with STARTTLS when
    ``secure`` is set. Each send opens its own connection from a worker
    thread so the event loop is never blocked.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str | None,
        password: str | None,
        from_name: str,
        secure: bool = True,
        timeout: int = 30,
        breaker: "CircuitBreaker | None" = None,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_name = from_name
        self.secure = secure
        self.timeout = timeout
        self.breaker = breaker

    @property
    def enabled(self) -> bool:
        """Whether credentials are configured."""
        return bool(self.username and self.password)

    @property
    def sender(self) -> str:
        # Must match the authenticated account or an approved alias.
        return formataddr((self.from_name, self.username or ""))

    def build_message(self, to: str, email: RenderedEmail) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = email.subject
        message["From"] = self.sender
        message["To"] = to
        message["Reply-To"] = self.username or ""
        message["Message-ID"] = make_msgid()
        message.attach(MIMEText(email.text, "plain", "utf-8"))
        message.attach(MIMEText(email.html, "html", "utf-8"))
        return message

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.port == 465:
            server: smtplib.SMTP = smtplib.SMTP_SSL(
                self.host, self.port, context=context, timeout=self.timeout
            )
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            if self.secure:
                server.starttls(context=context)
        return server

    def _send_sync(self, to: str, email: RenderedEmail) -> None:
        message = self.build_message(to, email)
        with self._connect() as server:
            server.login(self.username, self.password)
            server.sendmail(self.username, [to], message.as_string())

    async def send(self, to: str, email: RenderedEmail) -> None:
        """Deliver ``email`` to ``to``.

        Raises:
            RuntimeError: If SMTP credentials are missing.
            smtplib.SMTPException: On delivery failure.
            CircuitBreakerError: When the smtp circuit is open.
        """
        if not self.enabled:
            raise RuntimeError("SMTP credentials are not configured")

        if self.breaker is not None:
            await self.breaker.call(asyncio.to_thread, self._send_sync, to, email)
        else:
            await asyncio.to_thread(self._send_sync, to, email)
        logger.info("email_sent", to=to, subject=email.subject)

    def _verify_sync(self) -> None:
        with self._connect() as server:
            server.login(self.username, self.password)
            server.noop()

    async def verify(self) -> bool:
        """Check that the server accepts our credentials. Used at startup."""
        if not self.enabled:
            logger.warning("smtp_not_configured", host=self.host)
            return False
        try:
            await asyncio.to_thread(self._verify_sync)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("smtp_verify_failed", host=self.host, error=str(e))
            return False
        logger.info("smtp_ready", host=self.host, port=self.port)
        return True
