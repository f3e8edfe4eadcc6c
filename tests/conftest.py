import os

# Configure before any envkeys imports so Settings and the engine pick these up.
os.environ["TESTING"] = "true"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///file:envkeys_test?mode=memory&cache=shared&uri=true"

import pytest
from sqlalchemy.orm import sessionmaker

from envkeys.db import Base, get_engine
from envkeys.errors import ImportLookupFailed
from envkeys.models.change_block import ChangeBlock
from envkeys.models.environment_setting import EnvironmentSetting
from envkeys.services.identity_import import IdentityProvider, IdentityResolver

_test_engine = get_engine()
Base.metadata.create_all(_test_engine)

# Real keys generated with ssh-keygen; fingerprints from `ssh-keygen -l -E md5`.
VALID_KEY_ONE = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIL9/QTtZDuGtMROEuAs6BwTw3Cs7B7hxhP8hO/DadzI7"
VALID_KEY_ONE_FINGERPRINT = "a1:48:07:7c:5d:31:8a:6a:db:9a:44:ce:26:0b:b5:30"

VALID_KEY_TWO = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAICwhwZ6JCUEa2IzyUgkAnK58VPaMcBJ77CcFTucK4Hxy"
VALID_KEY_TWO_FINGERPRINT = "f1:3e:6d:4e:b7:6a:16:1b:8a:eb:23:c3:9a:57:9a:d8"

VALID_KEY_THREE = (
    "ssh-rsa AAAAB3NzaC1yc2EAAAADAQABAAABAQCKMrhYF0It3HlLbUC/8FL+kVuUPlYV1jwkFgoEv1SwZEdS+275zOGQ5BGmWD95y"
    "kCCqGc2BLywDUIVcKaRxVyCpodd6hw7pYOrxL92KFUSa1xUtOP6gQUZUj3jTvcsanLeJDXRSP+ziK2R7pUfpr9ct1IUDlpoYM4ts7"
    "gQLfpnvkDhaaORPHjouiN5Lful89J2hunNJZOn351+65QWyx6lvQLQ6hqsPy7iESrHmZekh1SDayEds+Ndsid7ioilPOUY+E2KlSh"
    "FbKH/xW+o91oXLvoo/cEHjt2GlZoDXGEw89wE935k/7+2fij4pdjNZaIuuA+5D4fdfhnnl0wwUX9L"
)
VALID_KEY_THREE_FINGERPRINT = "48:aa:2b:cb:48:e3:7e:ca:25:3d:9e:a0:e3:16:89:d3"

VALID_KEY_FOUR = (
    "ecdsa-sha2-nistp256 AAAAE2VjZHNhLXNoYTItbmlzdHAyNTYAAAAIbmlzdHAyNTYAAABBBFnFXpODfM0/DZ+aWecOpDAhfb5xmxK"
    "vVk8juDiiMz6vy4ut7EMpRonRo9AmrtLEm+WG7KwO52AVb9VRC+5pQJs= ops@bastion"
)
VALID_KEY_FOUR_FINGERPRINT = "1b:1c:3f:f8:2a:32:55:36:91:34:4a:ae:44:60:81:fb"


class FakeLaunchpad(IdentityProvider):
    """Serves VALID_KEY_THREE for lp:validuser and fails for everyone else."""

    name = "lp"

    def __init__(self, keys: dict[str, list[str]] | None = None):
        self.keys = keys if keys is not None else {"validuser": [VALID_KEY_THREE]}
        self.calls: list[str] = []

    def fetch_keys(self, handle: str) -> list[str]:
        self.calls.append(handle)
        if handle not in self.keys:
            raise ImportLookupFailed(f"no such lp user {handle!r}")
        return list(self.keys[handle])


@pytest.fixture(scope="session")
def engine():
    return _test_engine


@pytest.fixture()
def db_session(engine):
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _clean_tables(db_session):
    db_session.query(EnvironmentSetting).delete()
    db_session.query(ChangeBlock).delete()
    db_session.commit()
    yield


@pytest.fixture()
def fake_launchpad():
    return FakeLaunchpad()


@pytest.fixture()
def resolver(fake_launchpad):
    return IdentityResolver([fake_launchpad])
