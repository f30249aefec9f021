"""
Shared fixtures: SQLite database, in-memory embedding/index doubles, fake Claude client
"""
import math
import re
from email.message import EmailMessage
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from askemail.config import Settings
from askemail.database import DatabaseManager
from askemail.errors import EmbeddingError
from askemail.memory_store import MemoryStore
from askemail.models import VectorMatch

# Words the fake embedder knows about; every other token is ignored
VOCABULARY = ["flight", "ab123", "hotel", "dentist", "tuesday", "passport", "cat", "name"]


class FakeEmbeddingClient:
    """Bag-of-words embedder over a tiny vocabulary"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    async def embed_one(self, text):
        self.calls.append(text)
        if self.fail:
            raise EmbeddingError("Failed to generate embedding")
        tokens = re.findall(r"[a-z0-9]+", text.lower())
        return [float(tokens.count(word)) for word in VOCABULARY]


class FakeVectorIndex:
    """Cosine-similarity index keyed by (namespace, id)"""

    def __init__(self):
        self.vectors = {}
        self.queries = []

    async def upsert(self, vector_id, values, namespace):
        self.vectors[(namespace, vector_id)] = list(values)

    async def query(self, values, top_k, namespace):
        self.queries.append((namespace, top_k))
        matches = [
            VectorMatch(id=vector_id, score=_cosine(values, stored))
            for (ns, vector_id), stored in self.vectors.items()
            if ns == namespace
        ]
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:top_k]


def _cosine(a, b):
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


def text_message(text):
    """Claude response that ends the turn"""
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)], stop_reason="end_turn")


def tool_message(name, text, tool_id="toolu_1", preamble=None):
    """Claude response requesting one tool call"""
    content = []
    if preamble:
        content.append(SimpleNamespace(type="text", text=preamble))
    content.append(SimpleNamespace(type="tool_use", id=tool_id, name=name, input={"text": text}))
    return SimpleNamespace(content=content, stop_reason="tool_use")


def fake_anthropic(*responses):
    """Client whose messages.create returns the given responses in order"""
    return SimpleNamespace(messages=SimpleNamespace(create=AsyncMock(side_effect=list(responses))))


def build_raw_email(
    from_header="Alice <a@x.com>",
    subject="Hello",
    body="Hi there",
    html=None,
    message_id="<orig-1@x.com>",
    references=None,
    attachments=(),
):
    """Raw RFC 822 bytes; attachments are (filename, mime_type, bytes) tuples"""
    message = EmailMessage()
    if from_header:
        message["From"] = from_header
    message["To"] = "anything@askemail.com"
    message["Subject"] = subject
    message["Date"] = "Mon, 19 Oct 2026 10:00:00 +0000"
    if message_id:
        message["Message-ID"] = message_id
    if references:
        message["References"] = references

    message.set_content(body)
    if html:
        message.add_alternative(html, subtype="html")

    for filename, mime_type, content in attachments:
        maintype, subtype = mime_type.split("/", 1)
        message.add_attachment(content, maintype=maintype, subtype=subtype, filename=filename)

    return message.as_bytes()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        anthropic_api_key="test-key",
        max_emails_per_day=10,
        max_attachment_size_bytes=1024,
    )


@pytest.fixture
def db(tmp_path):
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'askemail.db'}")
    manager.init_tables()
    yield manager
    manager.close()


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddingClient()


@pytest.fixture
def fake_index():
    return FakeVectorIndex()


@pytest.fixture
def memory_store(db, fake_embeddings, fake_index):
    return MemoryStore(db, fake_embeddings, fake_index)
