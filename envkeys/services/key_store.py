"""Key set storage — the ordered authorized key list and its persistence."""

from __future__ import annotations

import abc
import logging
from collections.abc import Iterable, Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from envkeys.config import settings
from envkeys.errors import InvalidKeyFormat, PersistError
from envkeys.services.environment_config import EnvironmentConfigService
from envkeys.services.ssh_keys import (
    OpaqueKeyEntry,
    SSHPublicKey,
    looks_like_key_text,
    normalize_fingerprint,
    parse_public_key,
)

logger = logging.getLogger(__name__)

KeyEntry = SSHPublicKey | OpaqueKeyEntry


class KeySet:
    """Ordered authorized keys, unique by fingerprint."""

    def __init__(self, entries: Iterable[KeyEntry] = ()):
        self._entries: list[KeyEntry] = []
        for entry in entries:
            self.add(entry)

    def __iter__(self) -> Iterator[KeyEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[SSHPublicKey]:
        return [e for e in self._entries if isinstance(e, SSHPublicKey)]

    def fingerprints(self) -> list[str]:
        return [k.fingerprint for k in self.keys()]

    def contains(self, fingerprint: str) -> bool:
        return any(k.fingerprint == fingerprint for k in self.keys())

    def add(self, entry: KeyEntry) -> bool:
        """Append an entry; returns False if a key with the same fingerprint is present."""
        if isinstance(entry, SSHPublicKey) and self.contains(entry.fingerprint):
            return False
        self._entries.append(entry)
        return True

    def match(self, identifier: str) -> list[KeyEntry]:
        """Find entries named by a fingerprint, key text, comment or verbatim stored line."""
        ident = identifier.strip()
        fingerprint = None
        if looks_like_key_text(ident):
            try:
                fingerprint = parse_public_key(ident).fingerprint
            except InvalidKeyFormat:
                fingerprint = None
        else:
            fingerprint = normalize_fingerprint(ident)

        matches: list[KeyEntry] = []
        for entry in self._entries:
            if isinstance(entry, SSHPublicKey):
                if entry.fingerprint == fingerprint or (entry.comment and entry.comment == ident):
                    matches.append(entry)
            elif entry.raw == ident:
                matches.append(entry)
        return matches

    def remove(self, entries: Iterable[KeyEntry]) -> int:
        doomed = {id(e) for e in entries}
        before = len(self._entries)
        self._entries = [e for e in self._entries if id(e) not in doomed]
        return before - len(self._entries)

    def serialize(self) -> str:
        return "\n".join(e.line for e in self._entries)


def parse_key_lines(value: str) -> KeySet:
    """Build a KeySet from stored text, keeping unparsable lines verbatim."""
    keyset = KeySet()
    for line in value.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            key = parse_public_key(line)
        except InvalidKeyFormat as exc:
            logger.warning("Keeping unparsable authorized key entry as-is: %s", exc)
            keyset.add(OpaqueKeyEntry(raw=line, reason=str(exc)))
            continue
        if not keyset.add(key):
            logger.debug("Dropping duplicate stored key %s", key.fingerprint)
    return keyset


class KeySetStore(abc.ABC):
    """Loads and saves the whole authorized key list."""

    @abc.abstractmethod
    def load(self) -> KeySet: ...

    @abc.abstractmethod
    def save(self, keyset: KeySet) -> None: ...


class ConfigKeySetStore(KeySetStore):
    """Stores the key list as one newline-joined environment setting."""

    def __init__(
        self,
        db: Session,
        config: EnvironmentConfigService | None = None,
        config_key: str | None = None,
    ):
        self.db = db
        self.config = config or EnvironmentConfigService(db)
        self.config_key = config_key or settings.authorized_keys_config_key

    def load(self) -> KeySet:
        return parse_key_lines(self.config.get(self.config_key))

    def save(self, keyset: KeySet) -> None:
        value = keyset.serialize()
        try:
            self.config.set(self.config_key, value)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistError(f"cannot update {self.config_key}: {exc}") from exc
        logger.info("Saved %d authorized keys", len(keyset))
