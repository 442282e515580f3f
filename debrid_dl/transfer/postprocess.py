"""
Optional post-processing of completed downloads (extraction, renaming, ...).

A post-processor is any async callable taking the final file path and the
link password. The configured variant runs an external command.
"""

import asyncio
import logging
import os
import shlex
from typing import Awaitable, Callable, Optional

from debrid_dl.exceptions import PostProcessError

log = logging.getLogger(__name__)

PostProcessor = Callable[[str, str], Awaitable[None]]


class CommandPostProcessor:
    """
    Runs an external command for each completed file.

    The template is tokenized first and placeholders are substituted per
    argument, so paths with spaces stay a single argument. Supported
    placeholders: ``{file}``, ``{dir}``, ``{name}`` and ``{password}``.

    Example:
        ``unrar x -o+ -p{password} {file} {dir}``
    """

    def __init__(self, template: str):
        self.argv_template = shlex.split(template)
        if not self.argv_template:
            raise ValueError("Post-process command cannot be empty.")

    def build_argv(self, file_path: str, password: str) -> list[str]:
        values = {
            "file": file_path,
            "dir": os.path.dirname(file_path),
            "name": os.path.basename(file_path),
            "password": password or "",
        }
        try:
            return [arg.format(**values) for arg in self.argv_template]
        except (KeyError, IndexError) as e:
            raise PostProcessError(f"Unknown placeholder in post-process command: {e}") from e

    async def __call__(self, file_path: str, password: str) -> None:
        argv = self.build_argv(file_path, password)
        log.debug(f"Running post-process command for {file_path}: {argv[0]}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise PostProcessError(f"Could not start '{argv[0]}': {e}") from e

        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip().splitlines()
            raise PostProcessError(
                f"'{argv[0]}' exited with status {proc.returncode}"
                + (f": {detail[-1]}" if detail else "")
            )


def build_post_processor(command: str) -> Optional[PostProcessor]:
    """Returns the configured post-processor, or None when disabled."""
    if not command or not command.strip():
        return None
    return CommandPostProcessor(command)
