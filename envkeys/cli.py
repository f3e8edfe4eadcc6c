"""
Command line management of the environment's authorized SSH keys.

Usage:
  envkeys list [--user NAME] [--full]
  envkeys add [--user NAME] <ssh key> [...]
  envkeys delete [--user NAME] <ssh key id> [...]
  envkeys import [--user NAME] <ssh key id> [...]
  envkeys block {destroy,remove,change} [reason]
  envkeys unblock {destroy,remove,change}

Per-key problems are reported on stderr without failing the command; the
exit status is 1 only when a change block or a failed write stops the
whole operation.
"""

from __future__ import annotations

import argparse
import sys

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from envkeys.config import settings
from envkeys.db import get_session, init_db
from envkeys.errors import BlockedError, PersistError
from envkeys.logging import configure_logging
from envkeys.models.change_block import BlockType
from envkeys.services.authorized_keys_service import AuthorizedKeysService, KeyOperationResult
from envkeys.services.change_block_service import ChangeBlockService
from envkeys.services.key_presenter import ListMode, format_listing


def _cmd_list(args: argparse.Namespace, db: Session) -> int:
    keyset = AuthorizedKeysService(db).list_keys()
    mode = ListMode.full if args.full else ListMode.short
    print(format_listing(keyset, args.user, mode))
    return 0


def _report(result: KeyOperationResult) -> None:
    for err in result.errors:
        print(err.message, file=sys.stderr)
    for warning in result.warnings:
        print(f"WARNING: {warning}", file=sys.stderr)


def _mutate(db: Session, operation) -> int:
    try:
        result = operation()
        db.commit()
    except (BlockedError, PersistError) as exc:
        db.rollback()
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except SQLAlchemyError as exc:
        db.rollback()
        print(f"ERROR: cannot update authorized keys: {exc}", file=sys.stderr)
        return 1
    _report(result)
    return 0


def _cmd_add(args: argparse.Namespace, db: Session) -> int:
    return _mutate(db, lambda: AuthorizedKeysService(db).add_keys(args.keys))


def _cmd_delete(args: argparse.Namespace, db: Session) -> int:
    return _mutate(db, lambda: AuthorizedKeysService(db).delete_keys(args.ids))


def _cmd_import(args: argparse.Namespace, db: Session) -> int:
    return _mutate(db, lambda: AuthorizedKeysService(db).import_keys(args.ids))


def _cmd_block(args: argparse.Namespace, db: Session) -> int:
    ChangeBlockService(db).block(args.block_type, " ".join(args.reason))
    db.commit()
    return 0


def _cmd_unblock(args: argparse.Namespace, db: Session) -> int:
    try:
        ChangeBlockService(db).unblock(args.block_type)
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    db.commit()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="envkeys", description="Manage authorized SSH keys for the environment")
    sub = parser.add_subparsers(dest="command", metavar="command", required=True)

    def _with_user(p: argparse.ArgumentParser) -> argparse.ArgumentParser:
        p.add_argument("--user", default=settings.default_key_user, help="user the keys are listed for")
        return p

    p = _with_user(sub.add_parser("list", help="list authorized ssh keys"))
    p.add_argument("--full", action="store_true", help="show full key instead of just the key fingerprint")
    p.set_defaults(func=_cmd_list)

    p = _with_user(sub.add_parser("add", help="add new authorized ssh keys"))
    p.add_argument("keys", nargs="+", metavar="<ssh key>")
    p.set_defaults(func=_cmd_add)

    p = _with_user(sub.add_parser("delete", help="delete authorized ssh keys"))
    p.add_argument("ids", nargs="+", metavar="<ssh key id>")
    p.set_defaults(func=_cmd_delete)

    p = _with_user(sub.add_parser("import", help="import authorized ssh keys"))
    p.add_argument("ids", nargs="+", metavar="<ssh key id>")
    p.set_defaults(func=_cmd_import)

    p = sub.add_parser("block", help="block changes to the environment")
    p.add_argument("block_type", choices=[t.value for t in BlockType])
    p.add_argument("reason", nargs="*")
    p.set_defaults(func=_cmd_block)

    p = sub.add_parser("unblock", help="lift a change block")
    p.add_argument("block_type", choices=[t.value for t in BlockType])
    p.set_defaults(func=_cmd_unblock)

    return parser


def main(argv: list[str] | None = None, db: Session | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    owns_session = db is None
    if owns_session:
        init_db()
        db = get_session()
    try:
        return args.func(args, db)
    finally:
        if owns_session:
            db.close()


if __name__ == "__main__":
    sys.exit(main())
