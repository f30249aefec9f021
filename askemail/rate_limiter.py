"""
Per-sender daily reply limit
"""
import logging
from datetime import datetime
from typing import Optional

from .database import DatabaseManager

logger = logging.getLogger(__name__)

LIMIT_SUBJECT = "You just reached today's limit for AskEmail :("
LIMIT_MESSAGE = """## You just reached today's limit for AskEmail :(
But don't worry, this will reset today at midnight UTC"""


class RateLimiter:
    """
    Soft daily ceiling on replies per sender.

    The count is read before the agent runs and only incremented after a
    reply has been delivered, so two messages arriving together from the
    same sender can both pass the check.
    """

    def __init__(self, db: DatabaseManager, max_per_day: int):
        self.db = db
        self.max_per_day = max_per_day

    def replies_today(self, from_address: str, now: Optional[datetime] = None) -> int:
        """Number of replies already delivered to this sender today (UTC)"""
        return self.db.count_emails_today(from_address, now=now)

    def is_limited(self, count: int) -> bool:
        """A limit of 0 disables rate limiting"""
        return bool(self.max_per_day) and count > self.max_per_day

    def check(self, from_address: str, now: Optional[datetime] = None) -> bool:
        """Return True when the sender is over today's limit"""
        count = self.replies_today(from_address, now=now)
        limited = self.is_limited(count)
        if limited:
            logger.info(f"Rate limited {from_address} for today for using {count} emails")
        return limited

    def record_reply(self, from_address: str) -> None:
        """Count one delivered, non-limited reply"""
        self.db.record_email(from_address)
        logger.debug(f"Recorded reply for {from_address}")
