"""
Transfer Layer.

This package is responsible for all file operations: streaming resolved
links to disk and running the optional post-processing step.
"""

from .downloader import Downloader
from .postprocess import CommandPostProcessor, PostProcessor, build_post_processor

__all__ = ["CommandPostProcessor", "Downloader", "PostProcessor", "build_post_processor"]
