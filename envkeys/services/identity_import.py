"""Identity import — resolve ``<provider>:<handle>`` identities to public keys."""

from __future__ import annotations

import abc
import logging
import re

import httpx

from envkeys.config import settings
from envkeys.errors import ImportLookupFailed

logger = logging.getLogger(__name__)

_HANDLE_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")


class IdentityProvider(abc.ABC):
    """Looks up the public keys published for a handle."""

    name: str = ""

    @abc.abstractmethod
    def fetch_keys(self, handle: str) -> list[str]: ...


class HTTPKeysProvider(IdentityProvider):
    """Provider serving one public key per line from a plain-text URL."""

    url_template: str = ""

    def __init__(self, base_url: str, timeout: float | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.import_timeout_seconds

    def keys_url(self, handle: str) -> str:
        return self.base_url + self.url_template.format(handle=handle)

    def fetch_keys(self, handle: str) -> list[str]:
        if not _HANDLE_RE.match(handle):
            raise ImportLookupFailed(f"invalid {self.name} user name {handle!r}")
        url = self.keys_url(handle)
        try:
            with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                resp = client.get(url)
        except httpx.HTTPError as exc:
            raise ImportLookupFailed(f"cannot reach {self.name}: {exc}") from exc

        if resp.status_code == 404:
            raise ImportLookupFailed(f"no such {self.name} user {handle!r}")
        if resp.status_code != 200:
            raise ImportLookupFailed(f"{self.name} returned HTTP {resp.status_code}")
        return [ln.strip() for ln in resp.text.splitlines() if ln.strip()]


class LaunchpadProvider(HTTPKeysProvider):
    name = "lp"
    url_template = "/~{handle}/+sshkeys"


class GitHubProvider(HTTPKeysProvider):
    name = "gh"
    url_template = "/{handle}.keys"


class IdentityResolver:
    """Dispatches identities to the provider registered under their prefix."""

    def __init__(self, providers: list[IdentityProvider] | None = None):
        self._providers: dict[str, IdentityProvider] = {}
        for provider in providers if providers is not None else default_providers():
            self.register(provider)

    def register(self, provider: IdentityProvider) -> None:
        self._providers[provider.name] = provider

    @property
    def provider_names(self) -> list[str]:
        return sorted(self._providers)

    def resolve(self, identity: str) -> list[str]:
        provider_name, sep, handle = identity.strip().partition(":")
        if not sep or not handle:
            raise ImportLookupFailed(
                f"identity must look like <provider>:<user> (providers: {', '.join(self.provider_names)})"
            )
        provider = self._providers.get(provider_name)
        if provider is None:
            raise ImportLookupFailed(f"unknown identity provider {provider_name!r}")
        keys = provider.fetch_keys(handle)
        logger.info("Resolved %s to %d keys", identity, len(keys))
        return keys


def default_providers() -> list[IdentityProvider]:
    return [
        LaunchpadProvider(settings.launchpad_url),
        GitHubProvider(settings.github_url),
    ]
