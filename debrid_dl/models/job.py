"""
Job records tracked by the registry, plus the batch submitted by a client.

A ``Job`` holds live resources (the in-flight HTTP response) and must never be
serialized directly; ``Job.to_status`` builds the plain view sent to clients.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import aiohttp
from pydantic import BaseModel, Field, field_validator


class JobPhase(Enum):
    """Where a job currently lives in the registry."""

    UNRESTRICTING = "unrestricting"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    ERRORED = "errored"


class DownloadState(Enum):
    """Per-download state machine: pending -> streaming -> finished|aborted|failed."""

    PENDING = "pending"
    STREAMING = "streaming"
    FINISHED = "finished"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass
class JobError:
    """A failure recorded against a job when it moves to the errored ring."""

    item: str
    message: str
    date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_status(self, job_id: str) -> dict[str, Any]:
        return {
            "id": job_id,
            "item": self.item,
            "error": self.message,
            "date": self.date.isoformat(),
        }


@dataclass
class Job:
    """One link's journey through unrestrict and download."""

    url: str
    password: str = field(default="", repr=False)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    resolved_url: str | None = None
    file_path: str | None = None
    bytes_written: int = 0
    total_size: int | None = None
    phase: JobPhase = JobPhase.UNRESTRICTING
    download_state: DownloadState = DownloadState.PENDING
    cancel_requested: bool = False
    error: JobError | None = None
    _response: aiohttp.ClientResponse | None = field(default=None, repr=False)

    @property
    def item(self) -> str:
        """The human-readable key for the job's current phase."""
        return self.file_path or self.url

    def matches(self, identifier: str) -> bool:
        """True if the identifier names this job by id, link or path."""
        return identifier in (self.id, self.url, self.resolved_url, self.file_path)

    def attach(self, response: aiohttp.ClientResponse) -> None:
        """Registers the in-flight response so cancellation can close it."""
        self._response = response

    def detach(self) -> None:
        self._response = None

    def abort(self) -> None:
        """
        Flags the job as cancelled and closes any in-flight response.

        Closing the response wakes a reader blocked on the stream; the
        downloader sees ``cancel_requested`` and cleans up the partial file.
        """
        self.cancel_requested = True
        if self._response is not None:
            self._response.close()
            self._response = None

    def to_status(self) -> Any:
        """Builds the serializable view for the job's current phase."""
        if self.phase is JobPhase.UNRESTRICTING:
            return self.url
        if self.phase is JobPhase.DOWNLOADING:
            return {
                "id": self.id,
                "url": self.url,
                "filePath": self.file_path,
                "bytesWritten": self.bytes_written,
                "totalSize": self.total_size,
            }
        if self.phase is JobPhase.ERRORED and self.error:
            return self.error.to_status(self.id)
        return self.file_path


class Batch(BaseModel):
    """A batch of links submitted by a client in one message."""

    links: list[str]
    links_password: str = Field("", alias="linksPw")
    save_directory: str = Field(..., alias="saveLoc", min_length=1)

    class Config:
        """Pydantic model configuration."""

        populate_by_name = True
        str_strip_whitespace = True

    @field_validator("links")
    @classmethod
    def dedupe_links(cls, v: list[str]) -> list[str]:
        """Drops blank lines and duplicate links, preserving order."""
        cleaned = [link.strip() for link in v if link and link.strip()]
        return list(dict.fromkeys(cleaned))

    @field_validator("links_password", mode="before")
    @classmethod
    def none_password(cls, v: Any) -> Any:
        return "" if v is None else v
