"""
Tests for reply formatter module
"""
from datetime import datetime, timezone

from askemail.models import InboundEmail, ModelResponse
from askemail.reply_formatter import REPLY_SEPARATOR, ReplyFormatter


def create_test_email(**overrides) -> InboundEmail:
    """Helper to create test email"""
    values = dict(
        from_address="a@x.com",
        from_name="Alice",
        subject="Question",
        body="What is <my> flight?",
        date=datetime(2026, 10, 19, tzinfo=timezone.utc),
        message_id="<orig-1@x.com>",
    )
    values.update(overrides)
    return InboundEmail(**values)


class TestReplyFormatter:
    """Test ReplyFormatter class"""

    def test_render_markdown(self):
        html = ReplyFormatter.render_markdown("## Title\n\nSome **bold** text")
        assert "<h2>Title</h2>" in html
        assert "<strong>bold</strong>" in html

    def test_reply_subject(self):
        assert ReplyFormatter.reply_subject("Question") == "RE: Question"

    def test_build_response(self):
        response = ReplyFormatter.build_response("Hi *there*", "RE: Question")
        assert response.response == "Hi *there*"
        assert "<em>there</em>" in response.html
        assert response.rate_limited is False

    def test_compose_reply_headers(self):
        email = create_test_email(references="<older@x.com>")
        response = ReplyFormatter.build_response("Your flight is AB123", "RE: Question")

        message = ReplyFormatter.compose_reply(email, response, from_address="anything@askemail.com")

        assert message["From"] == "AskEmail <anything@askemail.com>"
        assert message["To"] == "a@x.com"
        assert message["Subject"] == "RE: Question"
        assert message["In-Reply-To"] == "<orig-1@x.com>"
        assert message["References"] == "<older@x.com> <orig-1@x.com>"
        assert message["Message-ID"].endswith("@askemail.com>")
        assert message.get_content_type() == "text/html"

    def test_compose_reply_without_message_id(self):
        email = create_test_email(message_id=None)
        response = ReplyFormatter.build_response("ok", "RE: Question")

        message = ReplyFormatter.compose_reply(email, response, from_address="anything@askemail.com")

        assert message["In-Reply-To"] is None
        assert message["References"] is None

    def test_body_quotes_plain_text_original(self):
        email = create_test_email()
        response = ModelResponse(response="AB123", subject="RE: Question", html="<p>AB123</p>")

        body = ReplyFormatter.compose_reply(email, response, from_address="anything@askemail.com").get_content()

        answer, _, quoted = body.partition(REPLY_SEPARATOR)
        assert "<p>AB123</p>" in answer
        assert "<blockquote>What is &lt;my&gt; flight?</blockquote>" in quoted

    def test_body_keeps_html_original(self):
        email = create_test_email(body="<p>Hello</p>", body_is_html=True)
        response = ModelResponse(response="Hi", subject="RE: Question", html="<p>Hi</p>")

        body = ReplyFormatter.compose_reply(email, response, from_address="anything@askemail.com").get_content()

        assert "<blockquote><p>Hello</p></blockquote>" in body
