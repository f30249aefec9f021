"""
Reply rendering and MIME composition
"""
import html
import logging
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid
from typing import Optional

import markdown

from .models import InboundEmail, ModelResponse

logger = logging.getLogger(__name__)

REPLY_SEPARATOR = "<hr>"


class ReplyFormatter:
    """Handles reply formatting and composition"""

    @staticmethod
    def render_markdown(text: str) -> str:
        """
        Render the model's markdown answer to HTML

        Args:
            text: Markdown text

        Returns:
            HTML fragment
        """
        return markdown.markdown(text, extensions=["extra", "sane_lists"])

    @staticmethod
    def reply_subject(subject: str) -> str:
        return f"RE: {subject}"

    @classmethod
    def build_response(cls, text: str, subject: str, **flags) -> ModelResponse:
        """Bundle answer text, subject and rendered HTML"""
        return ModelResponse(response=text, subject=subject, html=cls.render_markdown(text), **flags)

    @staticmethod
    def quote_original(email: InboundEmail) -> str:
        """Original body as a blockquote, escaped when it was plain text"""
        body = email.body if email.body_is_html else html.escape(email.body).replace("\n", "<br>\n")
        return f"<blockquote>{body}</blockquote>"

    @staticmethod
    def build_references(email: InboundEmail) -> Optional[str]:
        """References header for the reply: original References plus its Message-ID"""
        parts = [p for p in (email.references, email.message_id) if p]
        return " ".join(parts) if parts else None

    @classmethod
    def compose_reply(
        cls,
        email: InboundEmail,
        response: ModelResponse,
        from_address: str,
        from_name: str = "AskEmail",
    ) -> EmailMessage:
        """
        Build the reply message threaded to the original

        Args:
            email: The inbound email being answered
            response: Model (or rate-limit) response
            from_address: Address the reply is sent from
            from_name: Display name for the From header

        Returns:
            EmailMessage with an HTML body: rendered answer, separator, quoted original
        """
        message = EmailMessage()
        message["From"] = formataddr((from_name, from_address))
        message["To"] = email.from_address
        message["Subject"] = response.subject
        message["Date"] = formatdate(usegmt=True)
        message["Message-ID"] = make_msgid(domain=from_address.rpartition("@")[2] or None)

        if email.message_id:
            message["In-Reply-To"] = email.message_id
        references = cls.build_references(email)
        if references:
            message["References"] = references

        body = f"{response.html}\n{REPLY_SEPARATOR}\n{cls.quote_original(email)}"
        message.set_content(body, subtype="html")

        logger.debug(f"Composed reply to {email.from_address}: {response.subject}")
        return message
