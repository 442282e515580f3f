"""
Async client for the debrid service's unrestrict endpoint.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from debrid_dl import __version__
from debrid_dl.exceptions import (
    MalformedResponseError,
    UnrestrictStatusError,
    UnrestrictTimeoutError,
    UnrestrictTransportError,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnrestrictedLink:
    """The direct download URL returned for a restricted link."""

    download: str
    filename: Optional[str] = None


class DebridAPIClient:
    """
    Async client for the debrid REST API.

    Only the ``unrestrict/link`` endpoint is used: one authenticated POST per
    link, answered with a JSON body whose ``download`` field holds the direct
    URL.
    """

    UNRESTRICT_ENDPOINT = "unrestrict/link"

    def __init__(self, base_url: str, api_token: str, request_timeout: float = 30.0):
        """
        Initializes the API client.

        Args:
            base_url: Root of the REST API, ending with a slash.
            api_token: Private API token sent as a bearer credential.
            request_timeout: Total seconds allowed for one unrestrict call.
        """
        self.base_url = base_url
        self.api_token = api_token
        self.request_timeout = request_timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "User-Agent": f"debrid-dl/{__version__}",
                    "Authorization": f"Bearer {self.api_token}",
                },
                timeout=aiohttp.ClientTimeout(total=self.request_timeout),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def unrestrict_link(
        self, url: str, password: Optional[str] = None
    ) -> UnrestrictedLink:
        """
        Exchanges a restricted link for a direct download URL.

        Raises:
            ValueError: If ``url`` is empty.
            UnrestrictTimeoutError: The request timed out.
            UnrestrictTransportError: The service could not be reached.
            UnrestrictStatusError: The service answered with a non-2xx status.
            MalformedResponseError: The body carried no usable ``download`` URL.
        """
        if not url:
            raise ValueError("Cannot unrestrict an empty link.")

        await self._initialize_session()

        form = {"link": url}
        if password:
            form["password"] = password

        start_time = time.monotonic()
        try:
            async with self._session.post(
                self.base_url + self.UNRESTRICT_ENDPOINT, data=form
            ) as r:
                body = await r.read()
                duration_ms = (time.monotonic() - start_time) * 1000
                log.debug(f"Unrestrict for {url} answered {r.status} in {duration_ms:.0f} ms")
                if not 200 <= r.status < 300:
                    raise UnrestrictStatusError(
                        url,
                        r.status,
                        f"Unrestrict service returned status {r.status} for {url}",
                    )
        except asyncio.TimeoutError as e:
            raise UnrestrictTimeoutError(
                url, f"Timeout getting unrestricted link for {url}"
            ) from e
        except aiohttp.ClientError as e:
            raise UnrestrictTransportError(
                url, f"Could not reach unrestrict service for {url}: {e}"
            ) from e

        return self._parse_unrestrict_body(url, body)

    @staticmethod
    def _parse_unrestrict_body(url: str, body: bytes) -> UnrestrictedLink:
        try:
            data: Dict[str, Any] = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise MalformedResponseError(
                url, f"Unrestrict response for {url} is not valid JSON"
            ) from e

        if not isinstance(data, dict):
            raise MalformedResponseError(
                url, f"Unrestrict response for {url} is not a JSON object"
            )

        download = data.get("download")
        if not isinstance(download, str) or not download:
            raise MalformedResponseError(
                url, f"Unrestrict response for {url} has no download URL"
            )

        filename = data.get("filename")
        return UnrestrictedLink(
            download=download,
            filename=filename if isinstance(filename, str) and filename else None,
        )
