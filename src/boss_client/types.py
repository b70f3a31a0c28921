"""
Data model shared by the executor, the credentials providers and callers.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

HttpMethod = Literal["GET", "POST"]

# "bytes" returns the raw body, "json" the parsed document and "text" the decoded string.
ResponseType = Literal["bytes", "json", "text"]

BossToken = str

# Key used for retrieving the credentials provider from a CredentialsManager.
CREDENTIALS_KEY = "boss"


class HttpHeader(BaseModel):
    """A single extra request header."""

    name: str
    value: str

    model_config = ConfigDict(frozen=True)


class HttpCall(BaseModel):
    """
    Description of one logical HTTP operation.

    The same instance is reused unchanged for every attempt made while
    refreshing credentials. Headers are applied in order after the
    Authorization header; duplicates are passed through to the transport.
    """

    method: HttpMethod
    path: str
    response_type: ResponseType
    payload: str | bytes | None = None
    headers: tuple[HttpHeader, ...] = Field(default_factory=tuple)

    model_config = ConfigDict(frozen=True)


class CredentialsWithGeneration(BaseModel):
    """
    Credentials tagged with the generation that produced them.

    Passing a failed instance back to the provider lets it tell whether a
    newer generation already exists, so it can skip a redundant refresh.
    """

    credentials: BossToken
    generation: int

    model_config = ConfigDict(frozen=True)
