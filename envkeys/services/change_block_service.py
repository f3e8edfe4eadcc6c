"""Change Block Service — manage and check environment change blocks."""

from __future__ import annotations

import enum
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from envkeys.errors import BlockedError
from envkeys.models.change_block import BlockType, ChangeBlock

logger = logging.getLogger(__name__)


class KeyOperation(str, enum.Enum):
    add = "add"
    delete = "delete"
    import_ = "import"


# Block types that veto each mutating key operation.
_BLOCKING_TYPES: dict[KeyOperation, tuple[BlockType, ...]] = {
    KeyOperation.add: (BlockType.change,),
    KeyOperation.import_: (BlockType.change,),
    KeyOperation.delete: (BlockType.remove, BlockType.change),
}

_BLOCK_MESSAGES: dict[BlockType, str] = {
    BlockType.destroy: "destroy-environment operation has been blocked",
    BlockType.remove: "all operations that remove things from the environment have been blocked",
    BlockType.change: "all operations that change the environment have been blocked",
}


class ChangeBlockService:
    def __init__(self, db: Session):
        self.db = db

    def list_blocks(self) -> list[ChangeBlock]:
        stmt = (
            select(ChangeBlock)
            .where(ChangeBlock.is_active.is_(True))
            .order_by(ChangeBlock.created_at)
        )
        return list(self.db.scalars(stmt).all())

    def get_block(self, block_type: BlockType) -> ChangeBlock | None:
        stmt = select(ChangeBlock).where(
            ChangeBlock.block_type == block_type,
            ChangeBlock.is_active.is_(True),
        )
        return self.db.scalar(stmt)

    def block(self, block_type: BlockType | str, reason: str = "", created_by: str | None = None) -> ChangeBlock:
        block_type = BlockType(block_type)
        existing = self.get_block(block_type)
        if existing:
            existing.reason = reason
            self.db.flush()
            return existing
        block = ChangeBlock(block_type=block_type, reason=reason, created_by=created_by)
        self.db.add(block)
        self.db.flush()
        logger.info("Enabled %s block: %s", block_type.value, reason)
        return block

    def unblock(self, block_type: BlockType | str) -> None:
        block_type = BlockType(block_type)
        block = self.get_block(block_type)
        if not block:
            raise ValueError(f"No active {block_type.value} block")
        block.is_active = False
        self.db.flush()
        logger.info("Disabled %s block", block_type.value)

    def check_allowed(self, operation: KeyOperation) -> None:
        """Raise BlockedError if an active block vetoes ``operation``."""
        for block_type in _BLOCKING_TYPES[operation]:
            block = self.get_block(block_type)
            if block:
                message = _BLOCK_MESSAGES[block_type]
                if block.reason:
                    message = f"{message}: {block.reason}"
                logger.warning("Blocked %s of authorized keys (%s block)", operation.value, block_type.value)
                raise BlockedError(message)
