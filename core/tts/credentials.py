"""Provider API key lookup.

Key storage itself is owned by the user's environment; this module only reads keys that
were put into the configuration file or environment.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from models.voice_models import Provider
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.config_models import ApiKeys


__all__: list[str] = ["ConfigCredentialStore", "CredentialStore", "StaticCredentialStore"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class CredentialStore(ABC):
    """Read access to provider API keys. Keys are opaque strings."""

    @abstractmethod
    def get_key(self, provider: Provider) -> str:
        """Return the key for ``provider``, or an empty string when none is stored."""
        raise NotImplementedError

    def has_key(self, provider: Provider) -> bool:
        """Empty and whitespace-only keys count as absent."""
        return bool(self.get_key(provider).strip())


class ConfigCredentialStore(CredentialStore):
    """Keys from the ``[API_KEYS]`` configuration section (already merged with the environment)."""

    def __init__(self, api_keys: ApiKeys) -> None:
        self._api_keys: ApiKeys = api_keys
        for provider in Provider:
            # Presence only; key values are never logged
            logger.debug("API key for %s configured: %s", provider.display_name, self.has_key(provider))

    def get_key(self, provider: Provider) -> str:
        return str(getattr(self._api_keys, provider.name, "") or "")


class StaticCredentialStore(CredentialStore):
    """Keys held in memory, for embedding callers and tests."""

    def __init__(self, keys: dict[Provider, str] | None = None) -> None:
        self._keys: dict[Provider, str] = dict(keys or {})

    def get_key(self, provider: Provider) -> str:
        return self._keys.get(provider, "")

    def set_key(self, provider: Provider, key: str) -> None:
        self._keys[provider] = key
