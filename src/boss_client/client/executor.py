"""
Authenticated request execution against a set of equivalent mirrors.

One call to ``RequestExecutor.execute`` drives a single logical request:

    awaiting credentials -> sending -> succeeded
                                    -> failed
                                    -> awaiting refresh -> awaiting credentials

401 and 403 responses, as well as 504 gateway timeouts, ask the credentials
provider for fresh credentials and resend the same call. A cancellation token
may fire at any point before the outcome is known; the caller then sees
OperationCancelled and any in-flight transport call is aborted.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Protocol

import anyio
import httpx

from boss_client.errors import HttpError, RetryLimitExceededError, StatusClass, classify_status
from boss_client.settings import ExecutorSettings
from boss_client.shared.cancellation import UNCANCELABLE_TOKEN, CancellationToken, OperationCancelled
from boss_client.shared.credentials import CredentialsProvider
from boss_client.shared.http_request import create_boss_http_client, decode_response, sharded_url
from boss_client.types import CredentialsWithGeneration, HttpCall

logger = logging.getLogger(__name__)


class RequestCounter(Protocol):
    """Sink notified when a request starts and when it reaches its outcome."""

    def increment(self) -> None: ...

    def decrement(self) -> None: ...


class PendingRequestCounter:
    """Counts requests that have not yet produced an outcome."""

    def __init__(self) -> None:
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    def increment(self) -> None:
        self._count += 1

    def decrement(self) -> None:
        self._count -= 1


class TransportSlotState(Enum):
    NOT_STARTED = auto()
    ACTIVE = auto()
    CANCELLED = auto()


@dataclass
class TransportSlot:
    """
    The transport call owned by one request.

    NOT_STARTED means no call is in flight, ACTIVE holds the cancel scope of
    the call in flight, and CANCELLED is final: no call may be started once
    the slot has been cancelled.
    """

    state: TransportSlotState = TransportSlotState.NOT_STARTED
    scope: anyio.CancelScope | None = None

    @property
    def is_cancelled(self) -> bool:
        return self.state is TransportSlotState.CANCELLED

    def activate(self, scope: anyio.CancelScope) -> None:
        self.state = TransportSlotState.ACTIVE
        self.scope = scope

    def release(self) -> None:
        if self.state is TransportSlotState.ACTIVE:
            self.state = TransportSlotState.NOT_STARTED
            self.scope = None

    def cancel(self) -> anyio.CancelScope | None:
        """Mark the slot cancelled and return the scope of the call in flight, if any."""
        scope = self.scope
        self.state = TransportSlotState.CANCELLED
        self.scope = None
        return scope


class _Invocation:
    """State of one ``execute`` call. Never shared or reused."""

    def __init__(
        self,
        executor: "RequestExecutor",
        base_urls: str | Sequence[str],
        credentials_provider: CredentialsProvider,
        http_call: HttpCall,
        cancellation_token: CancellationToken,
    ):
        self.client = executor.client
        self.settings = executor.settings
        self.counter = executor.counter
        self.base_urls = base_urls
        self.credentials_provider = credentials_provider
        self.http_call = http_call
        self.cancellation_token = cancellation_token

        self.slot = TransportSlot()
        self.attempts = 0
        self._scope = anyio.CancelScope()
        self._settled = False

    def abort(self) -> None:
        active_scope = self.slot.cancel()
        if active_scope is not None:
            logger.debug(f"Aborting in-flight {self.http_call.method} {self.http_call.path}")
            active_scope.cancel()
        self._scope.cancel()

    def _settle(self) -> None:
        if self._settled:
            return
        self._settled = True
        self.cancellation_token.remove(self.abort)
        self.counter.decrement()

    async def run(self) -> Any:
        self.counter.increment()
        try:
            with self._scope:
                self.cancellation_token.add(self.abort)
                return await self._request_loop()
            # Only reached when abort() cancelled the scope
            logger.debug(f"{self.http_call.method} {self.http_call.path} cancelled")
            raise OperationCancelled()
        finally:
            self._settle()

    async def _request_loop(self) -> Any:
        credentials = await self.credentials_provider.get(None, self.cancellation_token)
        while True:
            if self.slot.is_cancelled:
                # Cancellation raced ahead of the credentials; never send the request
                raise OperationCancelled()

            response = await self._send(credentials)
            if response is None or self.slot.is_cancelled:
                raise OperationCancelled()

            status_class = classify_status(response.status_code)
            if status_class is StatusClass.SUCCESS:
                return decode_response(response, self.http_call.response_type)
            if status_class is StatusClass.FAILURE:
                raise HttpError.from_response(response)

            max_attempts = self.settings.max_attempts
            if max_attempts is not None and self.attempts >= max_attempts:
                logger.warning(
                    f"Giving up on {self.http_call.method} {response.request.url} after {self.attempts} attempts "
                    f"(last status {response.status_code})"
                )
                raise RetryLimitExceededError.from_response(response)

            if status_class is StatusClass.RETRY:
                logger.warning(f"Gateway timeout from {response.request.url}, refreshing credentials and retrying")
            else:
                logger.debug(
                    f"HTTP {response.status_code} from {response.request.url}, "
                    f"refreshing credentials generation {credentials.generation}"
                )
            credentials = await self.credentials_provider.get(credentials, self.cancellation_token)

    async def _send(self, credentials: CredentialsWithGeneration) -> httpx.Response | None:
        """Send one attempt. Returns None if the attempt was aborted."""
        http_call = self.http_call
        url = sharded_url(self.base_urls, http_call.path)
        headers = [("Authorization", f"Bearer {credentials.credentials}")]
        headers.extend((header.name, header.value) for header in http_call.headers)
        request = self.client.build_request(http_call.method, url, headers=headers, content=http_call.payload)

        self.attempts += 1
        logger.debug(f"Sending {http_call.method} {url} (attempt {self.attempts}, generation {credentials.generation})")
        with anyio.CancelScope() as scope:
            self.slot.activate(scope)
            try:
                return await self.client.send(request)
            finally:
                self.slot.release()
        return None


class RequestExecutor:
    """
    Executes authenticated requests against a set of mirrors.

    The executor holds the httpx client, the settings and the pending request
    counter shared by every request it runs; each request keeps its own state.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        settings: ExecutorSettings | None = None,
        counter: RequestCounter | None = None,
    ):
        """
        Initialize the executor.

        Args:
            client: httpx client used as transport. A client built from
                ``settings`` is created (and closed on exit) when omitted.
            settings: Executor settings.
            counter: Sink for the number of requests in flight.
        """
        self.settings = settings or ExecutorSettings()
        self._owns_client = client is None
        self.client = client if client is not None else create_boss_http_client(self.settings)
        self.counter: RequestCounter = counter if counter is not None else PendingRequestCounter()

    async def __aenter__(self) -> "RequestExecutor":
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def execute(
        self,
        base_urls: str | Sequence[str],
        credentials_provider: CredentialsProvider,
        http_call: HttpCall,
        cancellation_token: CancellationToken | None = None,
    ) -> Any:
        """
        Run ``http_call`` against one of ``base_urls``.

        Args:
            base_urls: One mirror or several equivalent mirrors.
            credentials_provider: Source of the bearer token.
            http_call: The operation to perform.
            cancellation_token: Optional token that aborts the request.

        Returns:
            The response body decoded according to ``http_call.response_type``.

        Raises:
            HttpError: The server answered with a non-recoverable status.
            OperationCancelled: The cancellation token fired first.
        """
        if cancellation_token is None:
            cancellation_token = UNCANCELABLE_TOKEN
        invocation = _Invocation(self, base_urls, credentials_provider, http_call, cancellation_token)
        return await invocation.run()


async def make_request(
    base_urls: str | Sequence[str],
    credentials_provider: CredentialsProvider,
    http_call: HttpCall,
    cancellation_token: CancellationToken | None = None,
    executor: RequestExecutor | None = None,
) -> Any:
    """Run a single request, on ``executor`` if given or on a temporary one."""
    if executor is not None:
        return await executor.execute(base_urls, credentials_provider, http_call, cancellation_token)
    async with RequestExecutor() as temporary:
        return await temporary.execute(base_urls, credentials_provider, http_call, cancellation_token)
