"""
Attachment admission control

Decides, in attachment order, which attachments are handed to the model.
An attachment must have a supported MIME type and fit in what remains of the
per-email byte budget. Rejected attachments never consume budget, so a
smaller attachment later in the message can still be admitted.
"""
import base64
import logging
from typing import AbstractSet, Iterable, List, Optional

from .models import (
    AdmissionResult,
    AdmissionStatus,
    Attachment,
    AttachmentDecision,
    RejectionReason,
)

logger = logging.getLogger(__name__)

NO_ATTACHMENTS_TEXT = "No attachments received in this email"


def normalize_mime_type(mime_type: str) -> str:
    """Strip parameters and lower-case, e.g. 'Text/Plain; charset=utf-8' -> 'text/plain'"""
    return mime_type.split(";", 1)[0].strip().lower()


def to_content_block(attachment: Attachment, mime_type: str) -> dict:
    """
    Format an admitted attachment as a Claude message content block

    Images become image blocks, PDFs base64 document blocks and any text
    type a plain-text document block.
    """
    if mime_type.startswith("image/"):
        return {
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": mime_type,
                "data": base64.b64encode(attachment.content_bytes).decode("ascii"),
            },
        }

    if mime_type.startswith("text/"):
        if isinstance(attachment.content, str):
            data = attachment.content
        else:
            data = attachment.content.decode("utf-8", errors="replace")
        return {
            "type": "document",
            "source": {"type": "text", "media_type": "text/plain", "data": data},
            "title": attachment.filename,
        }

    return {
        "type": "document",
        "source": {
            "type": "base64",
            "media_type": mime_type,
            "data": base64.b64encode(attachment.content_bytes).decode("ascii"),
        },
        "title": attachment.filename,
    }


def _describe(attachment: Attachment, mime_type: str) -> str:
    line = f'name="{attachment.filename}" type="{mime_type}"'
    if attachment.description:
        line += f' description="{attachment.description}"'
    return line


def admit_attachments(
    attachments: Iterable[Attachment],
    max_total_bytes: int,
    supported_mime_types: AbstractSet[str],
) -> AdmissionResult:
    """
    Run admission control over the attachments of one email

    Args:
        attachments: Attachments in message order
        max_total_bytes: Byte budget shared by all admitted attachments
        supported_mime_types: Lower-case MIME types the model accepts

    Returns:
        AdmissionResult with the manifest, one decision per attachment and
        the content blocks of the admitted attachments, in order
    """
    attachments = list(attachments)
    if not attachments:
        return AdmissionResult(manifest=NO_ATTACHMENTS_TEXT)

    supported = {normalize_mime_type(t) for t in supported_mime_types}
    running_total = 0
    lines: List[str] = []
    decisions: List[AttachmentDecision] = []
    blocks: List[dict] = []

    for position, attachment in enumerate(attachments, start=1):
        mime_type = normalize_mime_type(attachment.mime_type)
        size = attachment.size
        reason: Optional[RejectionReason] = None

        if mime_type not in supported:
            reason = RejectionReason.UNSUPPORTED_TYPE
            note = f"NOT included: mimetype {mime_type} is not supported"
        elif running_total + size > max_total_bytes:
            reason = RejectionReason.TOO_LARGE
            note = (
                f"NOT included: file is {size} bytes but only "
                f"{max_total_bytes - running_total} of the {max_total_bytes} byte attachment limit is left"
            )
        else:
            running_total += size
            note = "included below"
            blocks.append(to_content_block(attachment, mime_type))

        if reason:
            logger.info(f"Rejected attachment {attachment.filename} ({mime_type}, {size} bytes): {reason.value}")

        decisions.append(AttachmentDecision(
            filename=attachment.filename,
            mime_type=mime_type,
            status=AdmissionStatus.REJECTED if reason else AdmissionStatus.ACCEPTED,
            reason=reason,
            size=size,
            budget_used=0 if reason else size,
        ))
        lines.append(f"{position}. {_describe(attachment, mime_type)} -> {note}")

    manifest = "Attachments received in this email:\n" + "\n".join(lines)
    return AdmissionResult(manifest=manifest, decisions=decisions, content_blocks=blocks)
