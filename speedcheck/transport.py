"""
HTTP transport for probes and transfers.

All network work goes through one ``aiohttp.ClientSession`` per run,
managed by ``open_transport`` (``async with open_transport(config) as t``).
Network errors are re-raised as ``TransientTransferFailure`` so that the
prober and the worker pools can contain them.
"""
from __future__ import annotations

import asyncio
import itertools
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, Optional

import aiohttp

from .config import EngineConfig
from .constants import (
    CACHE_BUST_PARAM,
    COMMON_HEADERS,
    DOWNLOAD_SIZE_PARAM,
    NO_CACHE_HEADERS,
    READ_CHUNK_SIZE,
)
from .errors import TransientTransferFailure

_NETWORK_ERRORS = (aiohttp.ClientError, OSError, asyncio.TimeoutError)

_sequence = itertools.count()


def cache_buster() -> str:
    """A query value that is unique for every request of the process."""
    return f"{time.time_ns()}-{next(_sequence)}"


class HttpTransport:
    """Probe, download and upload primitives on top of an aiohttp session."""

    def __init__(self, session: aiohttp.ClientSession) -> None:
        self._session = session

    # -- Latency ------------------------------------------------------------

    async def probe(self, url: str) -> float:
        """One cache-bypassing GET.  Returns the round trip in milliseconds."""
        params = {CACHE_BUST_PARAM: cache_buster()}
        try:
            start = time.perf_counter()
            async with self._session.get(url, params=params, headers=NO_CACHE_HEADERS) as resp:
                elapsed_ms = (time.perf_counter() - start) * 1000
                resp.raise_for_status()
                await resp.read()
        except _NETWORK_ERRORS as exc:
            raise TransientTransferFailure(f"probe failed: {exc!r}") from exc
        return elapsed_ms

    # -- Transfers ----------------------------------------------------------

    async def download(
        self,
        url: str,
        size: int,
        on_bytes: Callable[[int], None],
    ) -> int:
        """Fetch *size* bytes and discard them, reporting every chunk."""
        params: Dict[str, str] = {
            DOWNLOAD_SIZE_PARAM: str(size),
            CACHE_BUST_PARAM: cache_buster(),
        }
        received = 0
        try:
            async with self._session.get(url, params=params, headers=NO_CACHE_HEADERS) as resp:
                resp.raise_for_status()
                async for chunk in resp.content.iter_chunked(READ_CHUNK_SIZE):
                    n = len(chunk)
                    received += n
                    on_bytes(n)
        except _NETWORK_ERRORS as exc:
            raise TransientTransferFailure(f"download failed: {exc!r}") from exc
        return received

    async def upload(self, url: str, payload: bytes) -> None:
        """POST *payload* and discard the response."""
        headers = {"Content-Type": "application/octet-stream"}
        try:
            async with self._session.post(url, data=payload, headers=headers) as resp:
                resp.raise_for_status()
                await resp.read()
        except _NETWORK_ERRORS as exc:
            raise TransientTransferFailure(f"upload failed: {exc!r}") from exc


@asynccontextmanager
async def open_transport(
    config: EngineConfig,
    session: Optional[aiohttp.ClientSession] = None,
) -> AsyncIterator[HttpTransport]:
    """Yield an ``HttpTransport`` backed by a session sized for the worker pools."""
    if session is not None:
        yield HttpTransport(session)
        return

    limit = max(config.download_workers, config.upload_workers) + 1
    connector = aiohttp.TCPConnector(
        limit=limit,
        limit_per_host=limit,
        force_close=False,
    )
    # No per-request timeout; the run's cancellation token bounds every call.
    timeout = aiohttp.ClientTimeout(total=None)

    async with aiohttp.ClientSession(
        headers=COMMON_HEADERS,
        connector=connector,
        timeout=timeout,
    ) as session:
        yield HttpTransport(session)
