"""
HTTP helpers: mirror selection, client construction and response decoding.
"""

import struct
from collections.abc import Sequence
from typing import Any

import httpx

from boss_client.settings import ExecutorSettings
from boss_client.types import ResponseType


def simple_string_hash(value: str) -> int:
    """
    Signed 32-bit hash over the UTF-16 code units of ``value``.

    Independent of PYTHONHASHSEED, and equal to the hash browser clients of the
    same mirrors compute, so a path maps to the same mirror for every client.
    """
    h = 0
    for (unit,) in struct.iter_unpack("<H", value.encode("utf-16-le", "surrogatepass")):
        h = (h * 31 + unit) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def pick_shard(base_urls: str | Sequence[str], path: str) -> str:
    """
    Pick the mirror that serves ``path``.

    The same path always maps to the same mirror, which keeps server side
    caches warm while spreading distinct paths over all mirrors.
    """
    if isinstance(base_urls, str):
        return base_urls
    if not base_urls:
        raise ValueError("At least one base URL is required")
    return base_urls[abs(simple_string_hash(path)) % len(base_urls)]


def sharded_url(base_urls: str | Sequence[str], path: str) -> str:
    return f"{pick_shard(base_urls, path)}{path}"


def create_boss_http_client(
    settings: ExecutorSettings | None = None,
    headers: dict[str, str] | None = None,
) -> httpx.AsyncClient:
    """
    Create an httpx.AsyncClient configured from executor settings.

    Args:
        settings: Timeout and redirect behaviour; defaults apply when omitted.
        headers: Headers sent with every request.

    Returns:
        An httpx.AsyncClient. Use it as an async context manager to close it.
    """
    settings = settings or ExecutorSettings()
    kwargs: dict[str, Any] = {
        "follow_redirects": settings.follow_redirects,
        "timeout": httpx.Timeout(settings.timeout),
    }
    if headers is not None:
        kwargs["headers"] = headers
    return httpx.AsyncClient(**kwargs)


def decode_response(response: httpx.Response, response_type: ResponseType) -> Any:
    match response_type:
        case "json":
            return response.json()
        case "text":
            return response.text
        case "bytes":
            return response.content
