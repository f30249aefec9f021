"""
AskEmail FastAPI application
"""
import logging
import secrets
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse

from .agent import AgentOrchestrator
from .config import Settings
from .database import DatabaseManager
from .embeddings import EmbeddingClient
from .memory_store import MemoryStore
from .models import HealthResponse, PipelineResult, PipelineStatus, ReconcileResponse
from .pipeline import EmailPipeline
from .rate_limiter import RateLimiter
from .transports import MailgunTransport, Transport, build_transport
from .vector_index import VectorIndexClient

settings = Settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global instances
db_manager: Optional[DatabaseManager] = None
memory_store: Optional[MemoryStore] = None
transport: Optional[Transport] = None
pipeline: Optional[EmailPipeline] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown"""
    global db_manager, memory_store, transport, pipeline

    # Startup
    logger.info("Starting AskEmail service...")

    db_manager = DatabaseManager(settings.sqlalchemy_url)
    db_manager.init_tables()
    logger.info("Database initialized")

    embeddings = EmbeddingClient(
        account_id=settings.cloudflare_account_id,
        api_token=settings.cloudflare_api_token,
        model=settings.embedding_model,
        api_base=settings.cloudflare_api_base,
    )
    index = VectorIndexClient(
        account_id=settings.cloudflare_account_id,
        api_token=settings.cloudflare_api_token,
        index_name=settings.vectorize_index,
        api_base=settings.cloudflare_api_base,
    )
    memory_store = MemoryStore(db_manager, embeddings, index)

    try:
        agent = AgentOrchestrator(
            memory_store,
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            max_tokens=settings.max_output_tokens,
            top_k=settings.top_k,
            top_p=settings.top_p,
            max_steps=settings.max_agent_steps,
        )
        logger.info("Claude API client initialized")
    except Exception as e:
        logger.error(f"Failed to initialize Claude client: {e}")
        raise

    transport = build_transport(settings)
    pipeline = EmailPipeline(settings, RateLimiter(db_manager, settings.max_emails_per_day), agent, transport)

    logger.info(f"AskEmail service started on port {settings.service_port}")

    yield

    # Shutdown
    logger.info("Shutting down AskEmail service...")
    await embeddings.close()
    await index.close()
    if isinstance(transport, MailgunTransport):
        await transport.close()
    if db_manager:
        db_manager.close()
    logger.info("Service shutdown complete")


app = FastAPI(
    title="AskEmail",
    description="Answers inbound emails with a memory-backed Claude agent",
    version="0.1.0",
    lifespan=lifespan
)


def _verify_webhook_secret(x_webhook_secret: Optional[str]) -> None:
    """Enforce the shared webhook secret when one is configured"""
    expected = settings.inbound_webhook_secret
    if not expected:
        return
    if not x_webhook_secret or not secrets.compare_digest(x_webhook_secret.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret")


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint"""
    db_connected = False

    try:
        if db_manager:
            db_connected = db_manager.check_connection()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")

    return HealthResponse(
        status="healthy" if (db_connected and pipeline) else "degraded",
        database_connected=db_connected,
        transport=transport.name if transport else None,
    )


@app.post("/inbound", response_model=PipelineResult)
async def inbound_email(request: Request, x_webhook_secret: Optional[str] = Header(None)):
    """
    Receive a raw RFC 822 message and answer it

    Returns 200 when a reply was sent and 422 when the message was rejected.
    """
    _verify_webhook_secret(x_webhook_secret)

    if pipeline is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not ready")

    raw = await request.body()
    result = await pipeline.handle(raw)

    if result.status == PipelineStatus.REJECTED:
        return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=result.model_dump(mode="json"))
    return result


@app.post("/memories/reconcile", response_model=ReconcileResponse)
async def reconcile_memories(limit: int = 100, x_webhook_secret: Optional[str] = Header(None)):
    """Index memories whose vector upsert never completed"""
    _verify_webhook_secret(x_webhook_secret)

    if memory_store is None or db_manager is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not ready")

    try:
        indexed = await memory_store.reconcile(limit=limit)
    except Exception as e:
        logger.error(f"Error reconciling memories: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to reconcile memories: {str(e)}"
        )

    return ReconcileResponse(indexed=indexed, pending=db_manager.count_unindexed_memories())


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.service_port)
