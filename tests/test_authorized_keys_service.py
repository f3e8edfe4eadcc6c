"""Tests for AuthorizedKeysService add/delete/import reconciliation."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from envkeys.config import settings
from envkeys.errors import BlockedError, ImportLookupFailed, InvalidKeyFormat, KeyNotFound, PersistError
from envkeys.models.change_block import BlockType
from envkeys.services.authorized_keys_service import LOCKOUT_WARNING, AuthorizedKeysService
from envkeys.services.change_block_service import ChangeBlockService
from envkeys.services.environment_config import EnvironmentConfigService
from envkeys.services.key_store import KeySetStore, parse_key_lines
from tests.conftest import (
    VALID_KEY_ONE,
    VALID_KEY_ONE_FINGERPRINT,
    VALID_KEY_THREE,
    VALID_KEY_TWO,
    VALID_KEY_TWO_FINGERPRINT,
)

KEY_ONE = VALID_KEY_ONE + " user@host"
KEY_TWO = VALID_KEY_TWO + " another@host"


def _set_keys(db_session, *keys: str) -> None:
    EnvironmentConfigService(db_session).set(settings.authorized_keys_config_key, "\n".join(keys))
    db_session.commit()


def _stored(db_session) -> str:
    return EnvironmentConfigService(db_session).get(settings.authorized_keys_config_key)


def _assert_keys(db_session, *expected: str) -> None:
    assert _stored(db_session) == "\n".join(expected)


@pytest.fixture()
def svc(db_session, resolver):
    return AuthorizedKeysService(db_session, resolver=resolver)


class TestAddKeys:
    def test_add_to_empty_keeps_arrival_order(self, db_session, svc):
        result = svc.add_keys([KEY_TWO, KEY_ONE])
        db_session.commit()

        assert result.applied == 2
        assert result.ok
        _assert_keys(db_session, KEY_TWO, KEY_ONE)

    def test_add_with_invalid_entry(self, db_session, svc):
        _set_keys(db_session, KEY_ONE)

        result = svc.add_keys([KEY_TWO, "invalid-key"])
        db_session.commit()

        assert result.applied == 1
        assert len(result.errors) == 1
        err = result.errors[0]
        assert err.entry == "invalid-key"
        assert err.message.startswith('cannot add key "invalid-key": ')
        assert isinstance(err.error, InvalidKeyFormat)
        _assert_keys(db_session, KEY_ONE, KEY_TWO)

    def test_readding_present_key_is_noop(self, db_session, svc):
        _set_keys(db_session, KEY_ONE)

        result = svc.add_keys([VALID_KEY_ONE + " other@comment", KEY_ONE])

        assert result.applied == 0
        assert result.ok
        _assert_keys(db_session, KEY_ONE)

    def test_duplicates_within_one_call(self, db_session, svc):
        result = svc.add_keys([KEY_ONE, VALID_KEY_ONE])
        assert result.applied == 1
        _assert_keys(db_session, KEY_ONE)

    def test_no_write_when_nothing_changes(self, db_session, resolver):
        store = MagicMock(spec=KeySetStore)
        store.load.return_value = parse_key_lines(KEY_ONE)
        result = AuthorizedKeysService(db_session, store=store, resolver=resolver).add_keys(
            [KEY_ONE, "invalid-key"]
        )

        assert result.applied == 0
        store.save.assert_not_called()

    def test_all_invalid(self, db_session, svc):
        result = svc.add_keys(["invalid-key", "ssh-rsa ###"])
        assert result.applied == 0
        assert [e.entry for e in result.errors] == ["invalid-key", "ssh-rsa ###"]
        _assert_keys(db_session)


class TestDeleteKeys:
    def test_delete_by_fingerprint(self, db_session, svc):
        _set_keys(db_session, KEY_ONE, KEY_TWO)

        result = svc.delete_keys([VALID_KEY_TWO_FINGERPRINT, "invalid-key"])
        db_session.commit()

        assert result.applied == 1
        assert [e.message for e in result.errors] == ['cannot delete key id "invalid-key": not found']
        assert isinstance(result.errors[0].error, KeyNotFound)
        _assert_keys(db_session, KEY_ONE)

    def test_delete_by_key_text_and_comment(self, db_session, svc):
        _set_keys(db_session, KEY_ONE, KEY_TWO, VALID_KEY_THREE)

        result = svc.delete_keys([VALID_KEY_ONE, "another@host"])

        assert result.applied == 2
        assert result.ok
        _assert_keys(db_session, VALID_KEY_THREE)

    def test_delete_preserves_order_of_remaining(self, db_session, svc):
        _set_keys(db_session, KEY_ONE, KEY_TWO, VALID_KEY_THREE)
        svc.delete_keys([VALID_KEY_TWO_FINGERPRINT])
        _assert_keys(db_session, KEY_ONE, VALID_KEY_THREE)

    def test_delete_unknown_leaves_set_untouched(self, db_session, resolver):
        _set_keys(db_session, KEY_ONE)
        store = MagicMock(wraps=AuthorizedKeysService(db_session).store)

        result = AuthorizedKeysService(db_session, store=store, resolver=resolver).delete_keys(
            ["00:11:22:33:44:55:66:77:88:99:aa:bb:cc:dd:ee:ff"]
        )

        assert result.applied == 0
        assert "not found" in result.errors[0].message
        store.save.assert_not_called()
        _assert_keys(db_session, KEY_ONE)

    def test_deleting_last_key_warns(self, db_session, svc):
        _set_keys(db_session, KEY_ONE)

        result = svc.delete_keys([VALID_KEY_ONE_FINGERPRINT])

        assert result.applied == 1
        assert result.ok
        assert result.warnings == [LOCKOUT_WARNING]
        _assert_keys(db_session)

    def test_delete_opaque_entry(self, db_session, svc):
        _set_keys(db_session, KEY_ONE, "ssh-dss legacy-entry")

        result = svc.delete_keys(["ssh-dss legacy-entry"])

        assert result.applied == 1
        assert result.warnings == []
        _assert_keys(db_session, KEY_ONE)

    def test_deleting_only_opaque_entries_does_not_warn(self, db_session, svc):
        _set_keys(db_session, "junk-one", "junk-two")

        result = svc.delete_keys(["junk-one"])

        assert result.applied == 1
        assert result.warnings == []
        _assert_keys(db_session, "junk-two")


class TestImportKeys:
    def test_import_resolved_keys(self, db_session, svc, fake_launchpad):
        _set_keys(db_session, KEY_ONE)

        result = svc.import_keys(["lp:validuser"])
        db_session.commit()

        assert result.applied == 1
        assert fake_launchpad.calls == ["validuser"]
        _assert_keys(db_session, KEY_ONE, VALID_KEY_THREE)

    def test_import_with_failed_lookup(self, db_session, svc):
        _set_keys(db_session, KEY_ONE)

        result = svc.import_keys(["lp:validuser", "invalid-key"])

        assert result.applied == 1
        assert len(result.errors) == 1
        assert result.errors[0].message.startswith('cannot import key id "invalid-key": ')
        assert isinstance(result.errors[0].error, ImportLookupFailed)
        _assert_keys(db_session, KEY_ONE, VALID_KEY_THREE)

    def test_import_already_present_key(self, db_session, svc):
        _set_keys(db_session, VALID_KEY_THREE)
        result = svc.import_keys(["lp:validuser"])
        assert result.applied == 0
        assert result.ok

    def test_import_invalid_key_from_provider(self, db_session, svc, fake_launchpad):
        fake_launchpad.keys["broken"] = ["not a key", KEY_TWO]

        result = svc.import_keys(["lp:broken"])

        assert result.applied == 1
        assert result.errors[0].message.startswith('cannot import key id "lp:broken": ')
        _assert_keys(db_session, KEY_TWO)

    def test_import_unknown_user(self, db_session, svc):
        result = svc.import_keys(["lp:nobody"])
        assert result.applied == 0
        assert "no such lp user" in result.errors[0].message


class TestChangeBlocks:
    @pytest.mark.parametrize(
        "operation, args",
        [
            ("add_keys", [KEY_TWO, "invalid-key"]),
            ("delete_keys", [VALID_KEY_TWO_FINGERPRINT, "invalid-key"]),
            ("import_keys", ["lp:validuser", "invalid-key"]),
        ],
    )
    def test_blocked_operation_leaves_value_unchanged(self, db_session, svc, operation, args):
        _set_keys(db_session, KEY_ONE, KEY_TWO)
        before = _stored(db_session)
        ChangeBlockService(db_session).block(BlockType.change, "TestBlockOperation")
        db_session.commit()

        with pytest.raises(BlockedError, match="TestBlockOperation"):
            getattr(svc, operation)(args)

        assert _stored(db_session) == before

    def test_blocked_operation_never_loads(self, db_session, resolver):
        ChangeBlockService(db_session).block(BlockType.change, "frozen")
        store = MagicMock(spec=KeySetStore)

        with pytest.raises(BlockedError):
            AuthorizedKeysService(db_session, store=store, resolver=resolver).add_keys([KEY_ONE])

        store.load.assert_not_called()

    def test_list_ignores_blocks(self, db_session, svc):
        _set_keys(db_session, KEY_ONE)
        ChangeBlockService(db_session).block(BlockType.change, "frozen")
        assert svc.list_keys().fingerprints() == [VALID_KEY_ONE_FINGERPRINT]


def test_persist_failure_propagates(db_session, svc):
    _set_keys(db_session, KEY_ONE)

    with patch.object(db_session, "flush", side_effect=SQLAlchemyError("read-only database")):
        with pytest.raises(PersistError):
            svc.add_keys([KEY_TWO])

    _assert_keys(db_session, KEY_ONE)
