"""Streaming HTTP retrieval of release archives."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

import httpx

from zigbuild.errors import AcquisitionError

ClientFactory = Callable[[], httpx.AsyncClient]


def default_client() -> httpx.AsyncClient:
    # no read timeout for release archives
    return httpx.AsyncClient(follow_redirects=True, timeout=None)


@asynccontextmanager
async def open_stream(
    url: str,
    *,
    client: httpx.AsyncClient,
    log: Callable[[str], None],
) -> AsyncIterator[httpx.Response]:
    """Open a GET response for streaming, failing on any non-2xx status."""
    log(f"fetching '{url}'")
    try:
        async with client.stream("GET", url) as response:
            if not response.is_success:
                raise AcquisitionError(
                    f"Download failed with HTTP {response.status_code}.",
                    hint="Check network access to the release server and retry the build.",
                    context={"url": url, "status": str(response.status_code)},
                )
            yield response
    except httpx.HTTPError as exc:
        raise AcquisitionError(
            "Download failed.",
            hint=str(exc) or type(exc).__name__,
            context={"url": url},
        ) from exc
