"""Hash-keyed on-disk cache of last fetched feed payloads."""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

from .models import FeedContent
from .parsing import parse_feed

logger = logging.getLogger(__name__)


def stable_hash(identifier: str) -> int:
    """Return a non-negative hash of ``identifier`` that is stable across runs."""
    digest = hashlib.md5(identifier.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big") & 0x7FFFFFFF


def write_chunks(path: Path, chunks: Union[bytes, Iterable[bytes]]) -> int:
    """Replace ``path`` with the given bytes and return the number written."""
    if isinstance(chunks, bytes):
        chunks = [chunks]

    path.unlink(missing_ok=True)
    written = 0
    with path.open("xb") as handle:
        for chunk in chunks:
            if chunk:
                handle.write(chunk)
                written += len(chunk)
    return written


class FeedCache:
    """Stores the last good payload of each source under ``cache_dir``.

    The modification time of each cache file doubles as the timestamp sent in
    conditional requests. Without a ``cache_dir`` the cache is disabled and
    reports every entry as missing.
    """

    def __init__(self, cache_dir: Optional[Union[str, Path]] = None):
        self.cache_dir = Path(cache_dir) if cache_dir else None
        if self.cache_dir is not None:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            logger.debug("Using feed cache directory %s", self.cache_dir)

    @property
    def enabled(self) -> bool:
        return self.cache_dir is not None

    def resolve_path(self, identifier: str) -> Path:
        if self.cache_dir is None:
            raise RuntimeError("Feed cache is disabled.")
        return self.cache_dir / str(stable_hash(identifier))

    def exists(self, identifier: str) -> bool:
        if not self.enabled:
            return False
        return self.resolve_path(identifier).is_file()

    def last_modified(self, identifier: str) -> datetime:
        mtime = self.resolve_path(identifier).stat().st_mtime
        return datetime.fromtimestamp(mtime, tz=timezone.utc)

    def write(self, identifier: str, data: Union[bytes, Iterable[bytes]]) -> Path:
        path = self.resolve_path(identifier)
        written = write_chunks(path, data)
        logger.debug("Cached %d bytes for '%s' in %s", written, identifier, path)
        return path

    def read(self, identifier: str) -> FeedContent:
        return parse_feed(self.resolve_path(identifier))
