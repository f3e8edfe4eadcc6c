"""Render authorized key lists for display."""

from __future__ import annotations

import enum
from collections.abc import Iterable

from envkeys.services.ssh_keys import OpaqueKeyEntry, SSHPublicKey

NO_COMMENT = "no comment"


class ListMode(str, enum.Enum):
    short = "short"
    full = "full"


def format_key(entry: SSHPublicKey | OpaqueKeyEntry, mode: ListMode = ListMode.short) -> str:
    if isinstance(entry, OpaqueKeyEntry):
        return entry.raw if mode == ListMode.full else f"Invalid key: {entry.raw}"
    if mode == ListMode.full:
        return entry.line
    return f"{entry.fingerprint} ({entry.comment or NO_COMMENT})"


def format_keys(entries: Iterable[SSHPublicKey | OpaqueKeyEntry], mode: ListMode = ListMode.short) -> list[str]:
    return [format_key(entry, mode) for entry in entries]


def format_listing(
    entries: Iterable[SSHPublicKey | OpaqueKeyEntry],
    user: str,
    mode: ListMode = ListMode.short,
) -> str:
    lines = [f"Keys for user {user}:"]
    lines.extend(format_keys(entries, mode))
    return "\n".join(lines)
