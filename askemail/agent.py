"""
Claude tool-calling agent using the Anthropic SDK
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from anthropic import AsyncAnthropic

from .errors import EmbeddingError
from .memory_store import MemoryStore
from .models import AgentResult, InboundEmail, ToolOutcome
from .prompt_templates import PromptTemplates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolContext:
    """Per-email values the memory tools are bound to"""
    from_address: str
    user_request: str


class AgentOrchestrator:
    """Runs a bounded Claude conversation with the memory tools attached"""

    def __init__(
        self,
        memory_store: MemoryStore,
        api_key: Optional[str] = None,
        model: str = "claude-sonnet-4-5",
        max_tokens: int = 8192,
        top_k: int = 40,
        top_p: float = 0.95,
        max_steps: int = 5,
        client: Optional[AsyncAnthropic] = None,
    ):
        """
        Initialize the agent

        Args:
            memory_store: Store backing the save/retrieve tools
            api_key: Anthropic API key (unused when ``client`` is given)
            model: Claude model name
            max_tokens: Output length ceiling per step
            top_k: Top-k sampling
            top_p: Nucleus sampling
            max_steps: Maximum number of model calls per email
            client: Preconfigured Anthropic client
        """
        if client is None:
            if not api_key:
                raise ValueError("ANTHROPIC_API_KEY must be provided or set in environment")
            client = AsyncAnthropic(api_key=api_key)

        self.client = client
        self.memory_store = memory_store
        self.model = model
        self.max_tokens = max_tokens
        self.top_k = top_k
        self.top_p = top_p
        self.max_steps = max_steps
        self.prompt_templates = PromptTemplates()

    @staticmethod
    def _text_of(message: Any) -> str:
        return "".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        ).strip()

    async def run(self, email: InboundEmail, manifest: str, attachment_blocks: List[dict]) -> AgentResult:
        """
        Answer an email

        Args:
            email: The inbound email
            manifest: Attachment manifest text
            attachment_blocks: Content blocks of the admitted attachments

        Returns:
            AgentResult with the final text. ``step_limit_reached`` is set when
            the model was still calling tools after ``max_steps`` calls.

        Raises:
            anthropic.APIError: On inference failures
        """
        user_request = self.prompt_templates.build_user_request(email)
        context = ToolContext(from_address=email.from_address, user_request=user_request)

        messages: List[dict] = [
            {"role": "user", "content": [{"type": "text", "text": manifest}, *attachment_blocks]},
            {"role": "user", "content": [{"type": "text", "text": user_request}]},
        ]

        last_text = ""
        for step in range(1, self.max_steps + 1):
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                top_k=self.top_k,
                top_p=self.top_p,
                system=self.prompt_templates.SYSTEM_PROMPT,
                messages=messages,
                tools=self.prompt_templates.TOOLS,
            )

            text = self._text_of(message)
            if text:
                last_text = text

            if message.stop_reason != "tool_use":
                logger.info(f"Agent finished for {email.from_address} after {step} step(s)")
                return AgentResult(text=last_text, steps=step)

            messages.append({"role": "assistant", "content": message.content})
            messages.append({"role": "user", "content": await self._run_tools(message, context)})

        logger.warning(
            f"Agent hit the {self.max_steps} step limit for {email.from_address}, "
            f"returning partial text ({len(last_text)} chars)"
        )
        return AgentResult(text=last_text, steps=self.max_steps, step_limit_reached=True)

    async def _run_tools(self, message: Any, context: ToolContext) -> List[dict]:
        results = []
        for block in message.content:
            if getattr(block, "type", None) != "tool_use":
                continue

            outcome = await self.execute_tool(block.name, block.input or {}, context)
            results.append({
                "type": "tool_result",
                "tool_use_id": block.id,
                "content": json.dumps(outcome.payload),
                "is_error": outcome.is_error,
            })
        return results

    async def execute_tool(self, name: str, arguments: dict, context: ToolContext) -> ToolOutcome:
        """
        Execute one tool call

        Embedding failures become error results so the model can react;
        any other exception propagates.
        """
        text = str(arguments.get("text", ""))

        try:
            if name == "save_in_memory":
                logger.info(f"model called save_in_memory for {context.from_address}")
                await self.memory_store.save(context.from_address, context.user_request, text)
                return ToolOutcome(payload={"success": True})

            if name == "get_from_memory":
                logger.info(f"model called get_from_memory for {context.from_address}")
                lookup = await self.memory_store.retrieve(context.from_address, text)
                return ToolOutcome(payload=lookup.model_dump(exclude_none=True))

        except EmbeddingError as e:
            logger.warning(f"{name} failed for {context.from_address}: {e}")
            return ToolOutcome(payload={"success": False, "error": str(e)}, is_error=True)

        logger.warning(f"Model requested unknown tool {name!r}")
        return ToolOutcome(payload={"success": False, "error": f"Unknown tool {name}"}, is_error=True)
