"""
Handles the low-level streaming of a resolved URL to disk, with progress
tracking and cooperative cancellation.
"""

import asyncio
import logging
import os
from contextlib import suppress
from typing import Optional

import aiofiles
import aiohttp

from debrid_dl.exceptions import (
    DownloadError,
    DownloadStatusError,
    DownloadTimeoutError,
    DownloadTransportError,
    DownloadWriteError,
)
from debrid_dl.models.job import DownloadState, Job

log = logging.getLogger(__name__)


class Downloader:
    """Streams one job's resolved URL to its destination path."""

    def __init__(self, request_timeout: float = 30.0, chunk_size: int = 131072):
        self.request_timeout = request_timeout
        self.chunk_size = chunk_size
        self._session: Optional[aiohttp.ClientSession] = None

    async def _initialize_session(self) -> None:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                ttl_dns_cache=600,
                enable_cleanup_closed=True,
            )
            timeout = aiohttp.ClientTimeout(
                total=None,
                sock_connect=self.request_timeout,
                sock_read=self.request_timeout,
            )
            self._session = aiohttp.ClientSession(connector=connector, timeout=timeout)

    async def close(self) -> None:
        """Closes the download connection pool."""
        if self._session and not self._session.closed:
            await self._session.close()
            log.debug("Downloader connection pool closed.")

    async def download(self, job: Job) -> DownloadState:
        """
        Streams ``job.resolved_url`` into ``job.file_path``.

        Returns ``FINISHED`` once the file is fully written and closed, or
        ``ABORTED`` if the job was cancelled. Any failure removes the partial
        file and raises a ``DownloadError``.
        """
        if job.cancel_requested:
            job.download_state = DownloadState.ABORTED
            return job.download_state

        url, destination_path = job.resolved_url, job.file_path
        await self._initialize_session()

        try:
            async with self._session.get(url, allow_redirects=True) as response:
                job.attach(response)
                if response.status != 200:
                    raise DownloadStatusError(
                        url,
                        response.status,
                        f"Status code for file at {url} was {response.status} "
                        "(expecting status code 200)",
                    )

                job.download_state = DownloadState.STREAMING
                job.total_size = response.content_length
                await self._stream_to_file(job, response, destination_path)
        except DownloadError:
            job.download_state = DownloadState.FAILED
            await self._remove_partial(destination_path)
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            # Closing the response on cancel surfaces here as a connection error.
            if job.cancel_requested:
                return await self._finish_aborted(job)
            job.download_state = DownloadState.FAILED
            await self._remove_partial(destination_path)
            raise self._classify(url, destination_path, e) from e
        except asyncio.CancelledError:
            # Task cancelled on shutdown: clean up synchronously.
            job.download_state = DownloadState.ABORTED
            with suppress(FileNotFoundError):
                os.remove(destination_path)
            raise
        finally:
            job.detach()

        # An aborted response can still end the stream cleanly.
        if job.cancel_requested:
            return await self._finish_aborted(job)

        job.download_state = DownloadState.FINISHED
        log.debug(f"Finished writing {job.bytes_written} bytes to {destination_path}")
        return job.download_state

    async def _stream_to_file(
        self, job: Job, response: aiohttp.ClientResponse, destination_path: str
    ) -> None:
        try:
            async with aiofiles.open(destination_path, "wb") as f:
                async for chunk in response.content.iter_chunked(self.chunk_size):
                    if job.cancel_requested:
                        break
                    await f.write(chunk)
                    job.bytes_written += len(chunk)
        except (aiohttp.ClientError, asyncio.TimeoutError):
            raise
        except OSError as e:
            raise DownloadWriteError(
                job.resolved_url, f"Failed writing to {destination_path}: {e}"
            ) from e

        if (
            not job.cancel_requested
            and job.total_size is not None
            and job.bytes_written < job.total_size
        ):
            raise DownloadTransportError(
                job.resolved_url,
                f"Stream for {job.resolved_url} ended after {job.bytes_written} "
                f"of {job.total_size} bytes",
            )

    async def _finish_aborted(self, job: Job) -> DownloadState:
        job.download_state = DownloadState.ABORTED
        await self._remove_partial(job.file_path)
        log.debug(f"Download of {job.file_path} aborted")
        return job.download_state

    @staticmethod
    def _classify(url: str, destination_path: str, error: Exception) -> DownloadError:
        if isinstance(error, asyncio.TimeoutError):
            return DownloadTimeoutError(url, f"Timeout requesting file at {url}")
        if isinstance(error, aiohttp.ClientError):
            return DownloadTransportError(url, f"Connection error for {url}: {error}")
        return DownloadWriteError(url, f"Failed writing to {destination_path}: {error}")

    @staticmethod
    async def _remove_partial(path: Optional[str]) -> None:
        if not path:
            return
        with suppress(FileNotFoundError):
            await asyncio.to_thread(os.remove, path)
