"""Change Block — administrative vetoes on environment mutations."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import Uuid

from envkeys.db import Base


class BlockType(str, enum.Enum):
    destroy = "destroy"
    remove = "remove"
    change = "change"


class ChangeBlock(Base):
    __tablename__ = "change_blocks"

    block_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    block_type: Mapped[BlockType] = mapped_column(Enum(BlockType), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_by: Mapped[str | None] = mapped_column(String(120))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
