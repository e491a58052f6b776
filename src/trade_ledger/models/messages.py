"""Redis Stream message schemas for trade change notifications."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

# TradeChangeMessage.payload["event"] values
EVENT_INSERT = "insert"
EVENT_UPDATE = "update"
EVENT_DELETE = "delete"


class StreamMessage(BaseModel):
    """Base message for all Redis Stream communications."""

    msg_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = ""
    type: str = ""
    payload: dict = {}
    metadata: dict = {}

    def to_redis(self) -> dict[str, str]:
        """Serialize to flat dict for XADD."""
        return {"data": self.model_dump_json()}

    @classmethod
    def from_redis(cls, data: dict[bytes | str, bytes | str]) -> StreamMessage:
        """Deserialize from Redis XREAD result."""
        raw = data.get(b"data") or data.get("data")
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return cls.model_validate_json(raw)


class TradeChangeMessage(StreamMessage):
    """Published by the trade store to trades:changes after every mutation.

    Carries no guarantee beyond "something changed, re-read".
    """

    source: str = "trade_store"
    type: str = "trade_change"


class ResyncMessage(StreamMessage):
    """Delivered locally by a subscription after it lost its stream position."""

    source: str = "subscription"
    type: str = "resync"
