"""
Outbound mail transports

Two interchangeable transports share one contract, ``send(raw, from, to)``.
Which one is used is decided once, at startup, from configuration.
"""
import asyncio
import logging
import smtplib
from typing import Optional, Union

import httpx

from .config import Settings
from .errors import DeliveryError

logger = logging.getLogger(__name__)


class SMTPTransport:
    """Primary transport: plain SMTP submission, optionally with STARTTLS and login"""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        starttls: bool = True,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.starttls = starttls
        self.timeout = timeout

    def _send_sync(self, raw: bytes, from_address: str, to_address: str) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.starttls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.sendmail(from_address, [to_address], raw)

    async def send(self, raw: bytes, from_address: str, to_address: str) -> None:
        """
        Send a fully formed message

        Raises:
            DeliveryError: If the SMTP server refused or could not be reached
        """
        try:
            await asyncio.to_thread(self._send_sync, raw, from_address, to_address)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP delivery to {to_address} failed: {e}")
            raise DeliveryError(self.name, str(e)) from e

        logger.info(f"Sent reply to {to_address} via SMTP {self.host}:{self.port}")


class MailgunTransport:
    """Fallback transport: Mailgun raw MIME endpoint"""

    name = "mailgun"

    def __init__(
        self,
        api_key: str,
        domain: str,
        api_base: str = "https://api.mailgun.net",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Mailgun transport.

        Args:
            api_key: Mailgun private API key
            domain: Sending domain configured in Mailgun
            api_base: API base URL (EU accounts use https://api.eu.mailgun.net)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.url = f"{api_base.rstrip('/')}/v3/{domain}/messages.mime"
        self.auth = ("api", api_key)
        self.timeout = timeout
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, auth=self.auth, transport=self.transport)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def send(self, raw: bytes, from_address: str, to_address: str) -> None:
        """
        Send a fully formed message

        The envelope sender comes from the message's From header.

        Raises:
            DeliveryError: On any HTTP failure
        """
        client = await self._get_client()

        try:
            response = await client.post(
                self.url,
                data={"to": to_address},
                files={"message": ("message.mime", raw, "message/rfc822")},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            error_msg = f"HTTP error {e.response.status_code}: {e.response.text}"
            logger.error(f"Mailgun delivery to {to_address} failed: {error_msg}")
            raise DeliveryError(self.name, error_msg) from e
        except httpx.RequestError as e:
            logger.error(f"Mailgun delivery to {to_address} failed: {e}")
            raise DeliveryError(self.name, f"Request failed: {e}") from e

        logger.info(f"Sent reply to {to_address} via Mailgun (from {from_address})")


Transport = Union[SMTPTransport, MailgunTransport]


def build_transport(settings: Settings) -> Transport:
    """Mailgun when its credentials are configured, SMTP otherwise"""
    if settings.mailgun_configured:
        logger.info(f"Using Mailgun transport for domain {settings.mailgun_domain}")
        return MailgunTransport(
            api_key=settings.mailgun_api_key,
            domain=settings.mailgun_domain,
            api_base=settings.mailgun_api_base,
        )

    logger.info(f"Using SMTP transport {settings.smtp_host}:{settings.smtp_port}")
    return SMTPTransport(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        starttls=settings.smtp_starttls,
    )
