from datetime import datetime, timezone
import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Text, UniqueConstraint
from pos_terminals.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class TerminalConnection(Base):
    """A merchant's stored authorization to act on a payment provider."""

    __tablename__ = "terminal_connections"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_terminal_connections_user_provider"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    provider = Column(String, nullable=False)       # mercadopago | clip
    mp_user_id = Column(String)                     # provider-side merchant id
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text)
    public_key = Column(String)
    token_expires_at = Column(DateTime(timezone=True))
    live_mode = Column(Boolean, default=False)
    status = Column(String, default="connected")
    selected_device_id = Column(String)
    selected_device_name = Column(String)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
