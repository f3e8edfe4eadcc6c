"""Authorized Keys Service — add, delete and import environment SSH keys."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from envkeys.errors import ImportLookupFailed, InvalidKeyFormat, KeyManagerError, KeyNotFound
from envkeys.services.change_block_service import ChangeBlockService, KeyOperation
from envkeys.services.identity_import import IdentityResolver
from envkeys.services.key_store import ConfigKeySetStore, KeySet, KeySetStore
from envkeys.services.ssh_keys import parse_public_key

logger = logging.getLogger(__name__)

LOCKOUT_WARNING = "deleting all keys would lock out access to the environment"


@dataclass(frozen=True)
class KeyEntryError:
    """A rejected entry and why."""

    entry: str
    message: str
    error: KeyManagerError

    def __str__(self) -> str:
        return self.message


@dataclass
class KeyOperationResult:
    applied: int = 0
    errors: list[KeyEntryError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class AuthorizedKeysService:
    def __init__(
        self,
        db: Session,
        store: KeySetStore | None = None,
        guard: ChangeBlockService | None = None,
        resolver: IdentityResolver | None = None,
    ):
        self.db = db
        self.store = store or ConfigKeySetStore(db)
        self.guard = guard or ChangeBlockService(db)
        self.resolver = resolver or IdentityResolver()

    def list_keys(self) -> KeySet:
        return self.store.load()

    def add_keys(self, raw_entries: list[str]) -> KeyOperationResult:
        self.guard.check_allowed(KeyOperation.add)
        keyset = self.store.load()
        result = KeyOperationResult()

        for raw in raw_entries:
            try:
                if self._merge(keyset, raw):
                    result.applied += 1
            except InvalidKeyFormat as exc:
                result.errors.append(_entry_error(f'cannot add key "{raw}"', raw, exc))

        self._save_if_changed(keyset, result)
        return result

    def delete_keys(self, identifiers: list[str]) -> KeyOperationResult:
        self.guard.check_allowed(KeyOperation.delete)
        keyset = self.store.load()
        result = KeyOperationResult()
        had_keys = bool(keyset.keys())

        for ident in identifiers:
            matches = keyset.match(ident)
            if not matches:
                exc = KeyNotFound("not found")
                result.errors.append(_entry_error(f'cannot delete key id "{ident}"', ident, exc))
                continue
            result.applied += keyset.remove(matches)

        if had_keys and not keyset.keys():
            logger.warning("Removing the last authorized key: %s", LOCKOUT_WARNING)
            result.warnings.append(LOCKOUT_WARNING)

        self._save_if_changed(keyset, result)
        return result

    def import_keys(self, identities: list[str]) -> KeyOperationResult:
        self.guard.check_allowed(KeyOperation.import_)
        keyset = self.store.load()
        result = KeyOperationResult()

        for identity in identities:
            prefix = f'cannot import key id "{identity}"'
            try:
                lines = self.resolver.resolve(identity)
            except ImportLookupFailed as exc:
                result.errors.append(_entry_error(prefix, identity, exc))
                continue
            for line in lines:
                try:
                    if self._merge(keyset, line):
                        result.applied += 1
                except InvalidKeyFormat as exc:
                    result.errors.append(_entry_error(prefix, identity, exc))

        self._save_if_changed(keyset, result)
        return result

    def _merge(self, keyset: KeySet, raw: str) -> bool:
        key = parse_public_key(raw)
        if not keyset.add(key):
            logger.debug("Key %s already authorized", key.fingerprint)
            return False
        logger.info("Authorized key %s (%s)", key.fingerprint, key.comment or "no comment")
        return True

    def _save_if_changed(self, keyset: KeySet, result: KeyOperationResult) -> None:
        for err in result.errors:
            logger.warning("%s", err.message)
        if result.applied:
            self.store.save(keyset)


def _entry_error(prefix: str, entry: str, exc: KeyManagerError) -> KeyEntryError:
    return KeyEntryError(entry=entry, message=f"{prefix}: {exc}", error=exc)
