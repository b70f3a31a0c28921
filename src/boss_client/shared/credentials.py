"""
Credentials providers.

A provider hands out bearer tokens tagged with a generation. Callers that find
a token rejected pass it back as ``invalid_credentials``; the provider only
fetches a new token when the rejected one is still the newest it knows about.
"""

import logging
from abc import ABC, abstractmethod
from typing import Protocol

import anyio

from boss_client.shared.cancellation import UNCANCELABLE_TOKEN, CancellationToken, OperationCancelled, open_cancel_scope
from boss_client.types import BossToken, CredentialsWithGeneration

logger = logging.getLogger(__name__)


class CredentialsProvider(Protocol):
    """Protocol for credentials providers."""

    async def get(
        self,
        invalid_credentials: CredentialsWithGeneration | None = None,
        cancellation_token: CancellationToken = UNCANCELABLE_TOKEN,
    ) -> CredentialsWithGeneration:
        """
        Return valid credentials.

        Args:
            invalid_credentials: Credentials that were just rejected, or None
                when no credentials have been used yet.
            cancellation_token: Token that aborts a pending fetch.

        Returns:
            Credentials whose generation differs from ``invalid_credentials``
            once a refresh was possible.
        """
        ...


class StaticCredentialsProvider:
    """Provider for a fixed, pre-issued token."""

    def __init__(self, token: BossToken):
        self._credentials = CredentialsWithGeneration(credentials=token, generation=0)

    async def get(
        self,
        invalid_credentials: CredentialsWithGeneration | None = None,
        cancellation_token: CancellationToken = UNCANCELABLE_TOKEN,
    ) -> CredentialsWithGeneration:
        cancellation_token.raise_if_cancelled()
        return self._credentials


class CachedCredentialsProvider(ABC):
    """
    Provider that caches the latest credentials and refreshes them at most once
    per rejected generation.

    Concurrent callers reporting the same rejected generation share a single
    call to ``fetch_credentials``.
    """

    def __init__(self) -> None:
        self._credentials: CredentialsWithGeneration | None = None
        self._generation = 0
        self._lock = anyio.Lock()

    @property
    def credentials(self) -> CredentialsWithGeneration | None:
        return self._credentials

    @abstractmethod
    async def fetch_credentials(self) -> BossToken:
        """Obtain a new token, e.g. from an identity service or a login flow."""
        pass

    def _cached_for(self, invalid_credentials: CredentialsWithGeneration | None) -> CredentialsWithGeneration | None:
        """Return the cached credentials unless they are the ones being rejected."""
        credentials = self._credentials
        if credentials is None:
            return None
        if invalid_credentials is not None and invalid_credentials.generation == credentials.generation:
            return None
        return credentials

    async def get(
        self,
        invalid_credentials: CredentialsWithGeneration | None = None,
        cancellation_token: CancellationToken = UNCANCELABLE_TOKEN,
    ) -> CredentialsWithGeneration:
        cancellation_token.raise_if_cancelled()
        with open_cancel_scope(cancellation_token):
            async with self._lock:
                cached = self._cached_for(invalid_credentials)
                if cached is not None:
                    return cached

                logger.debug(f"Fetching credentials (rejected generation: {self._rejected(invalid_credentials)})")
                token = await self.fetch_credentials()
                self._generation += 1
                self._credentials = CredentialsWithGeneration(credentials=token, generation=self._generation)
                logger.debug(f"Credentials refreshed to generation {self._generation}")
                return self._credentials
        raise OperationCancelled()

    @staticmethod
    def _rejected(invalid_credentials: CredentialsWithGeneration | None) -> int | None:
        return invalid_credentials.generation if invalid_credentials is not None else None


class CredentialsManager:
    """Registry of credentials providers keyed by service name."""

    def __init__(self, providers: dict[str, CredentialsProvider] | None = None):
        self._providers: dict[str, CredentialsProvider] = dict(providers or {})

    def register(self, key: str, provider: CredentialsProvider) -> None:
        self._providers[key] = provider

    def get_credentials_provider(self, key: str) -> CredentialsProvider:
        try:
            return self._providers[key]
        except KeyError:
            raise KeyError(f"No credentials provider registered for {key!r}") from None
