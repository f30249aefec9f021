"""
Inbound RFC 822 message parsing
"""
import email
import logging
from datetime import datetime, timezone
from email import policy
from email.message import Message
from email.utils import parsedate_to_datetime
from typing import List, Optional, Tuple

from pydantic import ValidationError

from .errors import MissingSenderError, ParseError
from .models import Attachment, InboundEmail

logger = logging.getLogger(__name__)


def _header(message: Message, name: str) -> str:
    """Header value, already decoded and unfolded by the default policy"""
    value = message.get(name)
    if value is None:
        return ""
    return " ".join(str(value).split())


def _sender(message: Message) -> Tuple[str, str]:
    """(display name, address) of the first From mailbox"""
    header = message.get("From")
    if header is None:
        return "", ""
    try:
        address = header.addresses[0]
    except (AttributeError, IndexError, ValueError):
        return "", ""
    return address.display_name or "", address.addr_spec or ""


def _is_attachment(part: Message) -> bool:
    if part.is_multipart():
        return False
    disposition = str(part.get("Content-Disposition", "")).lower()
    return "attachment" in disposition or part.get_filename() is not None


def _extract_body(message: Message) -> Tuple[Optional[str], Optional[str]]:
    """
    Extract text and HTML body from email

    Returns:
        Tuple of (text_body, html_body)
    """
    body_text = None
    body_html = None

    for part in message.walk():
        if part.is_multipart() or _is_attachment(part):
            continue

        content_type = part.get_content_type()
        if content_type not in ("text/plain", "text/html"):
            continue

        try:
            payload = part.get_payload(decode=True)
        except Exception as e:
            logger.warning(f"Error decoding email part: {e}")
            continue

        if not payload:
            continue

        charset = part.get_content_charset() or "utf-8"
        try:
            decoded_payload = payload.decode(charset, errors="replace")
        except LookupError:
            decoded_payload = payload.decode("utf-8", errors="replace")

        if content_type == "text/plain" and body_text is None:
            body_text = decoded_payload
        elif content_type == "text/html" and body_html is None:
            body_html = decoded_payload

    return body_text, body_html


def _extract_attachments(message: Message) -> List[Attachment]:
    attachments = []
    for part in message.walk():
        if not _is_attachment(part):
            continue

        filename = " ".join((part.get_filename() or "").split()) or "unknown"
        payload = part.get_payload(decode=True) or b""
        description = _header(part, "Content-Description") or None

        attachments.append(Attachment(
            filename=filename,
            mime_type=part.get_content_type(),
            description=description,
            content=payload,
        ))
    return attachments


def _parse_date(message: Message) -> datetime:
    try:
        date_header = message.get("Date")
        if date_header:
            return parsedate_to_datetime(str(date_header))
    except (TypeError, ValueError):
        logger.warning("Unparsable Date header, using current time")
    return datetime.now(timezone.utc)


def parse_email(raw: bytes) -> InboundEmail:
    """
    Parse a raw inbound message

    Args:
        raw: RFC 822 message bytes

    Returns:
        InboundEmail with the HTML body preferred over plain text

    Raises:
        ParseError: If the bytes are not a usable message
        MissingSenderError: If there is no valid From address
    """
    if not raw or not raw.strip():
        raise ParseError("Empty message")

    try:
        message = email.message_from_bytes(raw, policy=policy.default)
    except Exception as e:
        raise ParseError(f"Could not parse message: {e}") from e

    if not message.keys():
        raise ParseError("Message has no headers")

    from_name, from_address = _sender(message)
    if not from_address or "@" not in from_address:
        raise MissingSenderError("fromAddress is missing")

    body_text, body_html = _extract_body(message)

    try:
        return InboundEmail(
            from_address=from_address,
            from_name=from_name,
            subject=_header(message, "Subject"),
            body=body_html if body_html is not None else (body_text or ""),
            body_is_html=body_html is not None,
            date=_parse_date(message),
            message_id=_header(message, "Message-ID") or None,
            references=_header(message, "References") or None,
            attachments=_extract_attachments(message),
        )
    except ValidationError as e:
        if any(error["loc"] and error["loc"][0] == "from_address" for error in e.errors()):
            raise MissingSenderError(f"Invalid sender address {from_address!r}") from e
        raise ParseError(str(e)) from e
