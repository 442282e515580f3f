"""
Core application engine for the job lifecycle.

The `JobRegistry` is the shared table of all jobs by phase; the `Pipeline`
drives each submitted link through unrestrict and download against it.
"""

from .pipeline import Pipeline
from .registry import JobRegistry

__all__ = ["JobRegistry", "Pipeline"]
