from enum import Enum, auto

import httpx


class BossError(Exception):
    """Base exception for request failures."""

    pass


class HttpError(BossError):
    """
    Raised when the server answers with a status that is neither a success
    nor recoverable through a credentials refresh.
    """

    def __init__(self, url: str, status_code: int, reason: str = "", body: bytes = b""):
        message = f"Fetching {url!r} resulted in HTTP error {status_code}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.reason = reason
        self.body = body

    @classmethod
    def from_response(cls, response: httpx.Response) -> "HttpError":
        return cls(
            url=str(response.request.url),
            status_code=response.status_code,
            reason=response.reason_phrase,
            body=response.content,
        )


class RetryLimitExceededError(HttpError):
    """Raised when a configured attempt bound is used up by refreshable statuses."""

    pass


class StatusClass(Enum):
    """How the executor reacts to a response status."""

    SUCCESS = auto()
    REFRESH = auto()
    RETRY = auto()
    FAILURE = auto()


REFRESH_STATUS_CODES = frozenset({401, 403})
RETRY_STATUS_CODES = frozenset({504})


def classify_status(status_code: int) -> StatusClass:
    if 200 <= status_code < 300:
        return StatusClass.SUCCESS
    if status_code in REFRESH_STATUS_CODES:
        # Authorization needed.
        return StatusClass.REFRESH
    if status_code in RETRY_STATUS_CODES:
        # Gateway timeout can occur if the server takes too long to reply.
        return StatusClass.RETRY
    return StatusClass.FAILURE
