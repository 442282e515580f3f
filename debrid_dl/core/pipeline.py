"""
The orchestrator that drives each submitted link through unrestrict and
download, updating the registry and requesting a broadcast at every phase
transition.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

import aiohttp
from rich.markup import escape

from debrid_dl.api.client import DebridAPIClient
from debrid_dl.exceptions import DebridError
from debrid_dl.models.job import Batch, DownloadState, Job
from debrid_dl.transfer.downloader import Downloader
from debrid_dl.transfer.postprocess import PostProcessor
from debrid_dl.utils.formatting import format_progress, format_size
from debrid_dl.utils.path import (
    check_writable_dir,
    choose_filename,
    filename_from_url,
    unique_destination,
)

from .registry import JobRegistry

log = logging.getLogger(__name__)

Notifier = Callable[[], Awaitable[None]]


class Pipeline:
    """Runs one independent task per link; links in a batch are not ordered."""

    def __init__(
        self,
        registry: JobRegistry,
        api_client: DebridAPIClient,
        downloader: Downloader,
        notify: Optional[Notifier] = None,
        post_processor: Optional[PostProcessor] = None,
    ):
        self.registry = registry
        self.api_client = api_client
        self.downloader = downloader
        self.notify = notify
        self.post_processor = post_processor
        self.tasks: set[asyncio.Task] = set()

    async def submit(self, batch: Batch) -> List[Job]:
        """
        Validates the save directory and starts a pipeline for each link.

        Raises:
            DirectoryNotWritableError: Before any job is created, if the save
            directory cannot be written.
        """
        await asyncio.to_thread(check_writable_dir, batch.save_directory)

        jobs = [self.registry.add(url, batch.links_password) for url in batch.links]
        for job in jobs:
            task = asyncio.create_task(
                self._run(job, batch.save_directory), name=f"job-{job.id}"
            )
            self.tasks.add(task)
            task.add_done_callback(self.tasks.discard)

        if jobs:
            log.info(
                f"Accepted {len(jobs)} link(s) for [dim]{escape(batch.save_directory)}[/dim]"
            )
            await self._notify()
        return jobs

    async def wait(self) -> None:
        """Waits until every running pipeline has finished."""
        while self.tasks:
            await asyncio.gather(*list(self.tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancels every running pipeline and waits for them to unwind."""
        for task in list(self.tasks):
            task.cancel()
        await self.wait()

    async def _notify(self) -> None:
        if self.notify is not None:
            await self.notify()

    async def _run(self, job: Job, save_directory: str) -> None:
        try:
            link = await self.api_client.unrestrict_link(job.url, job.password or None)

            # No await between choosing the path and claiming it.
            filename = choose_filename(
                link.filename,
                filename_from_url(link.download),
                filename_from_url(job.url),
            )
            file_path = unique_destination(
                save_directory, filename, self.registry.claimed_paths()
            )
            if self.registry.start_download(job.id, link.download, file_path) is None:
                log.info(f"Discarding unrestricted link for cancelled job {escape(job.url)}")
                return

            log.info(f"Downloading {escape(job.url)} -> [dim]{escape(file_path)}[/dim]")
            await self._notify()

            state = await self.downloader.download(job)
            if state is DownloadState.ABORTED:
                log.info(
                    f"[yellow]○ Cancelled:[/] {escape(file_path)} at "
                    f"{format_progress(job.bytes_written, job.total_size)}"
                )
                return

            if not self.registry.complete(job.id):
                log.debug(f"Job for {file_path} left the registry before completing")
                return

            log.info(
                f"[green]✓ Saved:[/] {escape(file_path)} ({format_size(job.bytes_written)})"
            )
            await self._notify()
            await self._post_process(job)

        except (DebridError, aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            await self._record_failure(job, str(e) or type(e).__name__)
        except Exception as e:
            log.error(f"Unexpected error processing {job.url}", exc_info=True)
            await self._record_failure(job, f"Unexpected error: {e}")

    async def _record_failure(self, job: Job, message: str) -> None:
        if not self.registry.fail(job.id, message):
            log.debug(f"Ignoring failure for cancelled job {job.url}: {message}")
            return
        log.error(f"[red]✗ Failed:[/] {escape(job.item)} ({escape(message)})")
        await self._notify()

    async def _post_process(self, job: Job) -> None:
        """Runs the optional post-processing step; failures never unwind completion."""
        if self.post_processor is None:
            return
        try:
            await self.post_processor(job.file_path, job.password)
            log.info(f"Post-processed [dim]{escape(job.file_path)}[/dim]")
        except Exception as e:
            log.error(
                f"[red]✗ Post-processing failed for {escape(job.file_path)}:[/] {e}",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
