"""
Application settings loaded from environment
"""
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

DEFAULT_SUPPORTED_MIME_TYPES = frozenset({
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
    "text/plain",
})


class Settings(BaseSettings):
    """Immutable configuration threaded through the pipeline."""

    log_level: str = "INFO"
    service_port: int = 8000

    # Database
    database_url: Optional[str] = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "askemail"
    db_user: str = "askemail"
    db_password: str = ""

    # Inference
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5"
    max_output_tokens: int = 8192
    top_k: int = 40
    top_p: float = 0.95
    max_agent_steps: int = 5

    # Embeddings + vector index
    cloudflare_account_id: str = ""
    cloudflare_api_token: str = ""
    cloudflare_api_base: str = "https://api.cloudflare.com/client/v4"
    embedding_model: str = "@cf/baai/bge-large-en-v1.5"
    vectorize_index: str = "askemail-memories"

    # Limits
    max_attachment_size_bytes: int = 524288  # 0.5MB
    max_emails_per_day: int = 10
    supported_mime_types: frozenset[str] = DEFAULT_SUPPORTED_MIME_TYPES

    # Reply identity
    from_address: str = "anything@askemail.com"
    from_name: str = "AskEmail"

    # Primary transport (SMTP)
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_starttls: bool = True

    # Fallback transport (Mailgun), used whenever its credentials are set
    mailgun_api_key: str = ""
    mailgun_domain: str = ""
    mailgun_api_base: str = "https://api.mailgun.net"

    inbound_webhook_secret: str = ""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    @property
    def sqlalchemy_url(self) -> str:
        """DATABASE_URL if set, otherwise a PostgreSQL URL built from the DB_* values"""
        if self.database_url:
            return self.database_url
        return f"postgresql+psycopg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def mailgun_configured(self) -> bool:
        return bool(self.mailgun_api_key and self.mailgun_domain)
