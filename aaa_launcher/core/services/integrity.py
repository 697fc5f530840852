"""
Content-addressed verification helpers (SHA-256).

Downloads are accepted only when the digest of the received bytes
matches a checksum supplied out-of-band.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from aaa_launcher.core.errors import IntegrityError

CHUNK_SIZE = 64 * 1024


def sha256_file(path: Path) -> str:
    """Hex SHA-256 of a file, read in chunks."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


def checksums_match(expected: str, actual: str) -> bool:
    return expected.strip().lower() == actual.strip().lower()


def verify_digest(name: str, expected: str, actual: str, *, path: Path | None = None) -> None:
    """Raise IntegrityError unless ``actual`` matches ``expected``."""
    if not checksums_match(expected, actual):
        raise IntegrityError(name, expected.strip().lower(), actual, path=path)
