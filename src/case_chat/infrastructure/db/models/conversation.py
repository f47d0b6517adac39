from __future__ import annotations

from datetime import datetime

from sqlalchemy import Index, String, text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from case_chat.infrastructure.db.base import Base


class ConversationModel(Base):
    __tablename__ = "conversations"

    # The case/application id; one conversation per case.
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    initiator_id: Mapped[str] = mapped_column(String(64), nullable=False)
    counterpart_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
        onupdate=text("now()"),
    )

    messages = relationship("MessageModel", back_populates="conversation", lazy="noload")

    __table_args__ = (
        Index("ix_conversations_initiator", "initiator_id"),
        Index("ix_conversations_counterpart", "counterpart_id"),
    )
