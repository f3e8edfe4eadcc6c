"""Authorized Keys API — list and reconcile the environment's SSH keys."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from envkeys.api.deps import get_db
from envkeys.config import settings
from envkeys.errors import PersistError
from envkeys.models.change_block import BlockType
from envkeys.schemas.authorized_keys import (
    AuthorizedKeyList,
    AuthorizedKeyRead,
    ChangeBlockCreate,
    ChangeBlockRead,
    KeyIdsRequest,
    KeyOperationResponse,
    KeysRequest,
)
from envkeys.services.authorized_keys_service import AuthorizedKeysService, KeyOperationResult
from envkeys.services.change_block_service import ChangeBlockService
from envkeys.services.key_presenter import ListMode, format_keys
from envkeys.services.ssh_keys import SSHPublicKey

router = APIRouter(prefix="/authorized-keys", tags=["authorized-keys"])


def _operation_response(result: KeyOperationResult) -> dict:
    return {
        "applied": result.applied,
        "errors": [e.message for e in result.errors],
        "warnings": list(result.warnings),
    }


def _commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistError(f"cannot update {settings.authorized_keys_config_key}: {exc}") from exc


@router.get("", response_model=AuthorizedKeyList)
def list_keys(
    full: bool = False,
    user: str | None = None,
    db: Session = Depends(get_db),
):
    keyset = AuthorizedKeysService(db).list_keys()
    keys = []
    for entry in keyset:
        if isinstance(entry, SSHPublicKey):
            keys.append(
                AuthorizedKeyRead(
                    fingerprint=entry.fingerprint,
                    key_type=entry.key_type,
                    comment=entry.comment,
                    line=entry.line,
                )
            )
        else:
            keys.append(AuthorizedKeyRead(line=entry.line, valid=False))
    mode = ListMode.full if full else ListMode.short
    return AuthorizedKeyList(
        user=user or settings.default_key_user,
        keys=keys,
        display=format_keys(keyset, mode),
    )


@router.post("", response_model=KeyOperationResponse)
def add_keys(payload: KeysRequest, db: Session = Depends(get_db)):
    result = AuthorizedKeysService(db).add_keys(payload.keys)
    _commit(db)
    return _operation_response(result)


@router.post("/delete", response_model=KeyOperationResponse)
def delete_keys(payload: KeyIdsRequest, db: Session = Depends(get_db)):
    result = AuthorizedKeysService(db).delete_keys(payload.ids)
    _commit(db)
    return _operation_response(result)


@router.post("/import", response_model=KeyOperationResponse)
def import_keys(payload: KeyIdsRequest, db: Session = Depends(get_db)):
    result = AuthorizedKeysService(db).import_keys(payload.ids)
    _commit(db)
    return _operation_response(result)


@router.get("/blocks", response_model=list[ChangeBlockRead])
def list_blocks(db: Session = Depends(get_db)):
    return ChangeBlockService(db).list_blocks()


@router.post("/blocks", response_model=ChangeBlockRead, status_code=status.HTTP_201_CREATED)
def create_block(payload: ChangeBlockCreate, db: Session = Depends(get_db)):
    block = ChangeBlockService(db).block(payload.block_type, payload.reason)
    db.commit()
    return block


@router.delete("/blocks/{block_type}")
def remove_block(block_type: BlockType, db: Session = Depends(get_db)):
    try:
        ChangeBlockService(db).unblock(block_type)
        db.commit()
        return {"unblocked": block_type.value}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
