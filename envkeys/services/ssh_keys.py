"""SSH public key parsing and fingerprinting."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

import paramiko
from paramiko.pkey import UnknownKeyType

from envkeys.errors import InvalidKeyFormat


@dataclass(frozen=True)
class SSHPublicKey:
    key_type: str
    key_material: str
    comment: str
    fingerprint: str

    @property
    def line(self) -> str:
        parts = [self.key_type, self.key_material]
        if self.comment:
            parts.append(self.comment)
        return " ".join(parts)


@dataclass(frozen=True)
class OpaqueKeyEntry:
    """A stored line that no longer parses; kept verbatim."""

    raw: str
    reason: str

    @property
    def line(self) -> str:
        return self.raw


def parse_public_key(raw: str) -> SSHPublicKey:
    """Parse a ``type base64material [comment]`` line.

    Raises InvalidKeyFormat when the text is not a single line holding a
    key type paramiko understands and a blob that decodes to that type.
    """
    text = (raw or "").strip()
    if not text:
        raise InvalidKeyFormat("empty key")
    if "\n" in text or "\r" in text:
        raise InvalidKeyFormat("key must be a single line")

    fields = text.split(None, 2)
    if len(fields) < 2:
        raise InvalidKeyFormat("expected key type and base64 key material")
    key_type, material = fields[0], fields[1]
    comment = fields[2].strip() if len(fields) == 3 else ""

    try:
        blob = base64.b64decode(material.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise InvalidKeyFormat("key material is not valid base64") from exc

    key = _load_public_key(key_type, blob)
    if key.get_name() != key_type:
        raise InvalidKeyFormat(f"key type {key_type} does not match key data ({key.get_name()})")

    return SSHPublicKey(
        key_type=key_type,
        key_material=material,
        comment=comment,
        fingerprint=_fingerprint(key),
    )


def key_fingerprint(raw: str) -> str:
    return parse_public_key(raw).fingerprint


def normalize_fingerprint(text: str) -> str:
    """Lower-case a fingerprint and drop an ``MD5:`` prefix as printed by ssh-keygen."""
    value = text.strip().lower()
    if value.startswith("md5:"):
        value = value[4:]
    return value


def looks_like_key_text(text: str) -> bool:
    return len(text.split()) >= 2


def _load_public_key(key_type: str, blob: bytes) -> paramiko.PKey:
    try:
        return paramiko.PKey.from_type_string(key_type, blob)
    except UnknownKeyType as exc:
        raise InvalidKeyFormat(f"unsupported key type: {key_type}") from exc
    except Exception as exc:
        raise InvalidKeyFormat(f"invalid {key_type} key data") from exc


def _fingerprint(key: paramiko.PKey) -> str:
    raw = key.get_fingerprint()
    return ":".join(f"{b:02x}" for b in raw)
