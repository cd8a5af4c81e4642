from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


@dataclass
class FetchedPage:
    url: str
    status: int
    content_type: str
    html: str
    bytes_captured: int


async def fetch_markup(
    url: str,
    max_bytes: int,
    client: Optional[httpx.AsyncClient] = None,
    user_agent: str = "CompanyAnalysisBot/1.0",
    timeout: float = 15.0,
) -> FetchedPage:
    """
    GET a page and keep at most max_bytes of its body. Non-2xx responses are
    returned as-is; transport errors propagate as httpx exceptions.
    """
    headers = {**DEFAULT_HEADERS, "User-Agent": user_agent}

    if client is None:
        async with httpx.AsyncClient(follow_redirects=True, timeout=timeout) as owned:
            return await _read_capped(owned, url, max_bytes, headers)
    return await _read_capped(client, url, max_bytes, headers)


async def _read_capped(
    client: httpx.AsyncClient,
    url: str,
    max_bytes: int,
    headers: dict,
) -> FetchedPage:
    buffer = bytearray()
    async with client.stream("GET", url, headers=headers) as response:
        async for chunk in response.aiter_bytes():
            buffer.extend(chunk)
            if len(buffer) >= max_bytes:
                break
        body = bytes(buffer[:max_bytes])
        try:
            html = body.decode(response.encoding or "utf-8", errors="replace")
        except LookupError:
            html = body.decode("utf-8", errors="replace")
        return FetchedPage(
            url=str(response.url),
            status=response.status_code,
            content_type=response.headers.get("content-type", "unknown"),
            html=html,
            bytes_captured=len(body),
        )
