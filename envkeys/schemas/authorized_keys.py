from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from envkeys.models.change_block import BlockType


class AuthorizedKeyRead(BaseModel):
    fingerprint: str | None = None
    key_type: str | None = None
    comment: str = ""
    line: str
    valid: bool = True


class AuthorizedKeyList(BaseModel):
    user: str
    keys: list[AuthorizedKeyRead]
    display: list[str]


class KeysRequest(BaseModel):
    keys: list[str] = Field(min_length=1)


class KeyIdsRequest(BaseModel):
    ids: list[str] = Field(min_length=1)


class KeyOperationResponse(BaseModel):
    applied: int
    errors: list[str] = []
    warnings: list[str] = []


class ChangeBlockCreate(BaseModel):
    block_type: BlockType
    reason: str = ""


class ChangeBlockRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    block_id: UUID
    block_type: BlockType
    reason: str
    created_by: str | None = None
    created_at: datetime | None = None
