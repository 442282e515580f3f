"""
Data Models Layer.

This package contains the configuration model and the job records that flow
through the registry.
"""

from .config import ServerConfig
from .job import Batch, DownloadState, Job, JobError, JobPhase

__all__ = ["Batch", "DownloadState", "Job", "JobError", "JobPhase", "ServerConfig"]
