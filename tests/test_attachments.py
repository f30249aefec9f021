"""
Tests for attachment admission control
"""
import base64

import pytest

from askemail.attachments import NO_ATTACHMENTS_TEXT, admit_attachments, normalize_mime_type
from askemail.models import AdmissionStatus, Attachment, RejectionReason

SUPPORTED = {"application/pdf", "image/png", "text/plain"}


def make_attachment(size: int, mime_type: str = "application/pdf", filename: str = "file.pdf") -> Attachment:
    return Attachment(filename=filename, mime_type=mime_type, content=b"x" * size)


class TestAdmission:
    """Test admit_attachments"""

    def test_no_attachments(self):
        result = admit_attachments([], max_total_bytes=100, supported_mime_types=SUPPORTED)
        assert result.manifest == NO_ATTACHMENTS_TEXT
        assert result.decisions == []
        assert result.content_blocks == []

    def test_order_dependent_budget(self):
        """Budget B with sizes [B-1, 2]: the second is rejected even though 2 <= B"""
        budget = 100
        result = admit_attachments(
            [make_attachment(budget - 1, filename="a.pdf"), make_attachment(2, filename="b.pdf")],
            max_total_bytes=budget,
            supported_mime_types=SUPPORTED,
        )
        first, second = result.decisions
        assert first.status == AdmissionStatus.ACCEPTED
        assert second.status == AdmissionStatus.REJECTED
        assert second.reason == RejectionReason.TOO_LARGE
        assert result.accepted_bytes == budget - 1
        assert len(result.content_blocks) == 1

    def test_rejected_attachment_does_not_consume_budget(self):
        result = admit_attachments(
            [make_attachment(150), make_attachment(60), make_attachment(40)],
            max_total_bytes=100,
            supported_mime_types=SUPPORTED,
        )
        statuses = [d.status for d in result.decisions]
        assert statuses == [AdmissionStatus.REJECTED, AdmissionStatus.ACCEPTED, AdmissionStatus.ACCEPTED]
        assert result.accepted_bytes == 100

    def test_exact_budget_is_accepted(self):
        result = admit_attachments([make_attachment(100)], max_total_bytes=100, supported_mime_types=SUPPORTED)
        assert result.decisions[0].status == AdmissionStatus.ACCEPTED

    def test_unsupported_type_rejected_regardless_of_size(self):
        result = admit_attachments(
            [make_attachment(1, mime_type="video/x-matroska", filename="clip.mkv")],
            max_total_bytes=100,
            supported_mime_types=SUPPORTED,
        )
        decision = result.decisions[0]
        assert decision.status == AdmissionStatus.REJECTED
        assert decision.reason == RejectionReason.UNSUPPORTED_TYPE
        assert decision.budget_used == 0
        assert "video/x-matroska" in result.manifest
        assert "not supported" in result.manifest

    def test_mime_type_parameters_and_case_ignored(self):
        attachment = Attachment(filename="notes.txt", mime_type="Text/Plain; charset=utf-8", content="hello")
        result = admit_attachments([attachment], max_total_bytes=100, supported_mime_types=SUPPORTED)
        assert result.decisions[0].status == AdmissionStatus.ACCEPTED
        assert result.decisions[0].mime_type == "text/plain"

    def test_text_content_measured_as_utf8(self):
        attachment = Attachment(filename="notes.txt", mime_type="text/plain", content="é" * 30)
        result = admit_attachments([attachment], max_total_bytes=59, supported_mime_types=SUPPORTED)
        assert result.decisions[0].size == 60
        assert result.decisions[0].reason == RejectionReason.TOO_LARGE

    def test_manifest_lists_accepted_details(self):
        attachment = Attachment(
            filename="report.pdf",
            mime_type="application/pdf",
            description="Quarterly report",
            content=b"%PDF-1.4",
        )
        result = admit_attachments([attachment], max_total_bytes=100, supported_mime_types=SUPPORTED)
        assert 'name="report.pdf"' in result.manifest
        assert 'type="application/pdf"' in result.manifest
        assert 'description="Quarterly report"' in result.manifest
        assert "included below" in result.manifest

    def test_too_large_manifest_mentions_size(self):
        result = admit_attachments([make_attachment(500)], max_total_bytes=100, supported_mime_types=SUPPORTED)
        assert "500 bytes" in result.manifest
        assert "NOT included" in result.manifest


class TestContentBlocks:
    """Test conversion of admitted attachments to model content blocks"""

    def test_image_block(self):
        attachment = Attachment(filename="pic.png", mime_type="image/png", content=b"\x89PNG")
        block = admit_attachments([attachment], 100, SUPPORTED).content_blocks[0]
        assert block["type"] == "image"
        assert block["source"]["media_type"] == "image/png"
        assert base64.b64decode(block["source"]["data"]) == b"\x89PNG"

    def test_pdf_document_block(self):
        block = admit_attachments([make_attachment(4)], 100, SUPPORTED).content_blocks[0]
        assert block["type"] == "document"
        assert block["source"]["type"] == "base64"
        assert block["title"] == "file.pdf"

    def test_text_document_block(self):
        attachment = Attachment(filename="notes.txt", mime_type="text/plain", content=b"line one")
        block = admit_attachments([attachment], 100, SUPPORTED).content_blocks[0]
        assert block["source"] == {"type": "text", "media_type": "text/plain", "data": "line one"}


@pytest.mark.parametrize("raw, expected", [
    ("image/PNG", "image/png"),
    (" text/plain ; charset=utf-8", "text/plain"),
    ("application/pdf", "application/pdf"),
])
def test_normalize_mime_type(raw, expected):
    assert normalize_mime_type(raw) == expected
