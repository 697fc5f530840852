"""
HTTP client for the sync server.

Thin wrapper over ``urllib.request`` that turns every transport
problem into ``NetworkError`` and enforces an overall per-request
deadline on top of the socket timeout. Bodies are streamed to disk
in chunks while being hashed, so large archives never sit in memory.
"""

from __future__ import annotations

import hashlib
import http.client
import json
import logging
import socket
import time
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from aaa_launcher import __version__
from aaa_launcher.core.errors import NetworkError

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


@dataclass(frozen=True)
class DownloadResult:
    """What was written by ``HttpClient.download``."""

    sha256: str
    size: int


class HttpClient:
    """Blocking client bound to one server base URL.

    Args:
        base_url: Server root, e.g. ``https://host``.
        request_timeout: Overall deadline for small JSON requests.
        connect_timeout: Socket-level timeout (connect and each read).
        download_timeout: Overall deadline for streamed bodies.
    """

    def __init__(
        self,
        base_url: str,
        *,
        request_timeout: float = 30.0,
        connect_timeout: float = 30.0,
        download_timeout: float = 600.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self.connect_timeout = connect_timeout
        self.download_timeout = download_timeout
        self.user_agent = f"aaa-launcher/{__version__}"

    @classmethod
    def from_config(cls, config) -> HttpClient:
        return cls(
            config.server_url,
            request_timeout=config.request_timeout,
            connect_timeout=config.connect_timeout,
            download_timeout=config.download_timeout,
        )

    def url(self, path: str) -> str:
        """Absolute URLs pass through; anything else is joined to the base."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{urllib.parse.quote(path.lstrip('/'), safe='/')}"

    # ── Requests ────────────────────────────────────────────────

    def get_json(self, path: str) -> Any:
        """GET ``path`` and decode a JSON body."""
        url = self.url(path)
        deadline = time.monotonic() + self.request_timeout
        body = bytearray()
        with self._open(url, min(self.connect_timeout, self.request_timeout)) as resp:
            for chunk in self._iter_body(resp, url, deadline):
                body.extend(chunk)
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise NetworkError(f"Invalid JSON from {url}: {e}", url=url) from e

    def download(
        self,
        path: str,
        dest: Path,
        *,
        on_chunk: Callable[[int], None] | None = None,
    ) -> DownloadResult:
        """Stream ``path`` into ``dest`` (overwritten), hashing as it goes.

        The caller owns ``dest`` and decides what to do with it after
        checking the returned digest.

        Raises:
            NetworkError: Transport failure, deadline exceeded, or fewer
                bytes than the announced ``Content-Length``.
        """
        url = self.url(path)
        deadline = time.monotonic() + self.download_timeout
        h = hashlib.sha256()
        size = 0
        with self._open(url, self.connect_timeout) as resp:
            length = _content_length(resp)
            with open(dest, "wb") as out:
                for chunk in self._iter_body(resp, url, deadline):
                    out.write(chunk)
                    h.update(chunk)
                    size += len(chunk)
                    if on_chunk is not None:
                        on_chunk(len(chunk))
        if length is not None and size != length:
            raise NetworkError(f"Truncated download from {url}: {size} of {length} bytes", url=url)
        logger.debug("Downloaded %s → %s (%d bytes)", url, dest, size)
        return DownloadResult(sha256=h.hexdigest(), size=size)

    # ── Internals ───────────────────────────────────────────────

    def _open(self, url: str, timeout: float):
        req = urllib.request.Request(url, headers={"User-Agent": self.user_agent})
        logger.debug("GET %s", url)
        try:
            return urllib.request.urlopen(req, timeout=timeout)
        except urllib.error.HTTPError as e:
            e.close()
            raise NetworkError(f"Server returned HTTP {e.code} for {url}", url=url, status=e.code) from e
        except urllib.error.URLError as e:
            raise NetworkError(f"Failed to connect to {url}: {e.reason}", url=url) from e
        except (socket.timeout, TimeoutError) as e:
            raise NetworkError(f"Timed out connecting to {url}", url=url) from e
        except OSError as e:
            raise NetworkError(f"Request to {url} failed: {e}", url=url) from e

    def _iter_body(self, resp, url: str, deadline: float):
        """Yield body chunks until EOF; never outlive ``deadline``.

        ``read1`` returns whatever has arrived instead of waiting for a
        full chunk, and the socket timeout is capped at the time left,
        so a trickling or stalled server cannot stretch the deadline.
        """
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise NetworkError(f"Request to {url} exceeded its deadline", url=url)
            _set_read_timeout(resp, min(self.connect_timeout, remaining))
            try:
                chunk = resp.read1(_CHUNK)
            except (socket.timeout, TimeoutError) as e:
                if time.monotonic() >= deadline:
                    raise NetworkError(f"Request to {url} exceeded its deadline", url=url) from e
                raise NetworkError(f"Timed out reading {url}", url=url) from e
            except (OSError, http.client.HTTPException) as e:
                raise NetworkError(f"Connection lost reading {url}: {e}", url=url) from e
            if not chunk:
                return
            yield chunk


def _set_read_timeout(resp, seconds: float) -> None:
    """Adjust the socket timeout of an open ``urlopen`` response."""
    raw = getattr(getattr(resp, "fp", None), "raw", None)
    sock = getattr(raw, "_sock", None)
    if sock is not None:
        sock.settimeout(max(seconds, 0.01))


def _content_length(resp) -> int | None:
    raw = resp.headers.get("Content-Length")
    try:
        return int(raw) if raw is not None else None
    except ValueError:
        return None
