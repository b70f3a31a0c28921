from boss_client.client.executor import PendingRequestCounter, RequestCounter, RequestExecutor, make_request
from boss_client.errors import BossError, HttpError, RetryLimitExceededError, StatusClass, classify_status
from boss_client.settings import ExecutorSettings
from boss_client.shared.cancellation import (
    UNCANCELABLE_TOKEN,
    CancellationToken,
    CancellationTokenSource,
    OperationCancelled,
    open_cancel_scope,
)
from boss_client.shared.credentials import (
    CachedCredentialsProvider,
    CredentialsManager,
    CredentialsProvider,
    StaticCredentialsProvider,
)
from boss_client.shared.http_request import create_boss_http_client, pick_shard, sharded_url
from boss_client.types import (
    CREDENTIALS_KEY,
    BossToken,
    CredentialsWithGeneration,
    HttpCall,
    HttpHeader,
    HttpMethod,
    ResponseType,
)

__all__ = [
    "BossError",
    "BossToken",
    "CREDENTIALS_KEY",
    "CachedCredentialsProvider",
    "CancellationToken",
    "CancellationTokenSource",
    "CredentialsManager",
    "CredentialsProvider",
    "CredentialsWithGeneration",
    "ExecutorSettings",
    "HttpCall",
    "HttpError",
    "HttpHeader",
    "HttpMethod",
    "OperationCancelled",
    "PendingRequestCounter",
    "RequestCounter",
    "RequestExecutor",
    "ResponseType",
    "RetryLimitExceededError",
    "StaticCredentialsProvider",
    "StatusClass",
    "UNCANCELABLE_TOKEN",
    "classify_status",
    "create_boss_http_client",
    "make_request",
    "open_cancel_scope",
    "pick_shard",
    "sharded_url",
]
