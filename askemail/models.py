"""
Data models for the AskEmail service
"""
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# ============================================================================
# Inbound email
# ============================================================================

class Attachment(BaseModel):
    """A single attachment as found in the inbound message"""
    model_config = ConfigDict(frozen=True)

    filename: str = "unknown"
    mime_type: str
    description: Optional[str] = None
    content: Union[bytes, str]

    @property
    def size(self) -> int:
        """Byte length of the content, UTF-8 encoded when textual"""
        if isinstance(self.content, str):
            return len(self.content.encode("utf-8"))
        return len(self.content)

    @property
    def content_bytes(self) -> bytes:
        if isinstance(self.content, str):
            return self.content.encode("utf-8")
        return self.content


class InboundEmail(BaseModel):
    """Parsed inbound email, immutable for the lifetime of one pipeline run"""
    model_config = ConfigDict(frozen=True)

    from_address: EmailStr
    from_name: str = ""
    subject: str = ""
    body: str = ""
    body_is_html: bool = False
    date: datetime
    message_id: Optional[str] = None
    references: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)


# ============================================================================
# Attachment admission
# ============================================================================

class AdmissionStatus(str, Enum):
    """Outcome of admission control for one attachment"""
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class RejectionReason(str, Enum):
    """Why an attachment was not passed to the model"""
    UNSUPPORTED_TYPE = "unsupported-type"
    TOO_LARGE = "too-large"


class AttachmentDecision(BaseModel):
    """Admission decision for a single attachment"""
    filename: str
    mime_type: str
    status: AdmissionStatus
    reason: Optional[RejectionReason] = None
    size: int
    budget_used: int = 0


class AdmissionResult(BaseModel):
    """Manifest text, decisions and the content blocks handed to the model"""
    manifest: str
    decisions: List[AttachmentDecision] = Field(default_factory=list)
    content_blocks: List[dict] = Field(default_factory=list)

    @property
    def accepted_bytes(self) -> int:
        return sum(d.budget_used for d in self.decisions)


# ============================================================================
# Memories
# ============================================================================

class MemoryRecord(BaseModel):
    """A remembered fact, owned by one sender"""
    id: int
    email: str
    request: str
    content: str
    created_at: datetime
    indexed_at: Optional[datetime] = None


class VectorMatch(BaseModel):
    """One neighbour returned by the similarity index"""
    id: str
    score: float


class RecalledMemory(BaseModel):
    """Agent-facing view of a memory"""
    remembered_at: str
    original_request: str
    remembered_content: str


class MemoryLookup(BaseModel):
    """Structured outcome of a memory retrieval"""
    success: bool
    memories: List[RecalledMemory] = Field(default_factory=list)
    error: Optional[str] = None


class ToolOutcome(BaseModel):
    """Result of executing one tool call for the agent"""
    payload: dict[str, Any]
    is_error: bool = False


# ============================================================================
# Agent + reply
# ============================================================================

class AgentResult(BaseModel):
    """Final text of an agent run"""
    text: str
    steps: int
    step_limit_reached: bool = False


class ModelResponse(BaseModel):
    """What gets sent back to the sender"""
    response: str
    subject: str
    html: str
    rate_limited: bool = False
    step_limit_reached: bool = False


class PipelineStatus(str, Enum):
    """Outcome of processing one inbound message"""
    REPLIED = "replied"
    REJECTED = "rejected"


class PipelineResult(BaseModel):
    """Exactly one of reply/reject per inbound message"""
    status: PipelineStatus
    reason: Optional[str] = None
    subject: Optional[str] = None
    rate_limited: bool = False


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str = "askemail"
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool = False
    transport: Optional[str] = None


class ReconcileResponse(BaseModel):
    """Result of re-indexing unindexed memories"""
    indexed: int
    pending: int
