"""
Email-to-agent pipeline

parse -> rate limit -> attachment admission -> agent -> compose -> deliver -> count
"""
import json
import logging
import traceback

from .agent import AgentOrchestrator
from .attachments import admit_attachments
from .config import Settings
from .models import InboundEmail, ModelResponse, PipelineResult, PipelineStatus
from .parser import parse_email
from .rate_limiter import LIMIT_MESSAGE, LIMIT_SUBJECT, RateLimiter
from .reply_formatter import ReplyFormatter
from .transports import Transport

logger = logging.getLogger(__name__)

REJECT_MESSAGE = "Internal Error, try again soon!"


class EmailPipeline:
    """Processes one inbound message at a time; holds no per-message state"""

    def __init__(
        self,
        settings: Settings,
        rate_limiter: RateLimiter,
        agent: AgentOrchestrator,
        transport: Transport,
    ):
        self.settings = settings
        self.rate_limiter = rate_limiter
        self.agent = agent
        self.transport = transport
        self.reply_formatter = ReplyFormatter()

    async def handle(self, raw: bytes) -> PipelineResult:
        """
        Process a raw inbound message and either reply or reject

        Every failure ends here: it is logged as one JSON record and the
        message is rejected with a generic reason. No partial reply is sent.
        """
        try:
            return await self.process(raw)
        except Exception as e:
            logger.error(json.dumps({
                "name": type(e).__name__,
                "message": str(e),
                "stack": "".join(traceback.format_exception(type(e), e, e.__traceback__)),
            }))
            return PipelineResult(status=PipelineStatus.REJECTED, reason=REJECT_MESSAGE)

    async def process(self, raw: bytes) -> PipelineResult:
        email = parse_email(raw)
        logger.info(f"Received email from {email.from_address}, with subject: {email.subject}")

        rate_limited = self.rate_limiter.check(email.from_address)
        if rate_limited:
            response = self.reply_formatter.build_response(LIMIT_MESSAGE, LIMIT_SUBJECT, rate_limited=True)
        else:
            logger.info("No rate limit, starting inference")
            response = await self.generate_response(email)

        await self.deliver(email, response)

        if not rate_limited:
            try:
                self.rate_limiter.record_reply(email.from_address)
            except Exception:
                # Reply already delivered, the message must not be rejected now
                logger.exception(f"Failed to record reply for {email.from_address}")

        return PipelineResult(
            status=PipelineStatus.REPLIED,
            subject=response.subject,
            rate_limited=rate_limited,
        )

    async def generate_response(self, email: InboundEmail) -> ModelResponse:
        """Admit attachments and run the agent"""
        admission = admit_attachments(
            email.attachments,
            max_total_bytes=self.settings.max_attachment_size_bytes,
            supported_mime_types=self.settings.supported_mime_types,
        )

        result = await self.agent.run(email, admission.manifest, admission.content_blocks)

        return self.reply_formatter.build_response(
            result.text,
            self.reply_formatter.reply_subject(email.subject),
            step_limit_reached=result.step_limit_reached,
        )

    async def deliver(self, email: InboundEmail, response: ModelResponse) -> None:
        message = self.reply_formatter.compose_reply(
            email,
            response,
            from_address=self.settings.from_address,
            from_name=self.settings.from_name,
        )
        await self.transport.send(message.as_bytes(), self.settings.from_address, email.from_address)
