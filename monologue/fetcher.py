"""Conditional, cache-backed feed retrieval."""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from dataclasses import dataclass
from email.utils import format_datetime
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urljoin

import requests

from .cache import FeedCache, write_chunks
from .models import FetchOutcome, FetchResult
from .parsing import parse_feed

logger = logging.getLogger(__name__)

REDIRECT_CODES = frozenset({301, 302, 303, 307, 308})
NOT_MODIFIED = 304


@dataclass
class FetchConfig:
    """Network settings for feed retrieval."""

    timeout: float = 30.0
    max_redirects: int = 10
    chunk_size: int = 16384
    user_agent: str = "Monologue/0.1 (feed aggregator)"


class FeedFetcher:
    """Turns a source URL into feed content plus a ``FetchOutcome``."""

    def __init__(
        self,
        cache: FeedCache,
        config: Optional[FetchConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.cache = cache
        self.config = config or FetchConfig()
        self.session = session or self._create_session()
        self.session.max_redirects = self.config.max_redirects

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({"User-Agent": self.config.user_agent})
        return session

    def fetch(self, identifier: str, url: str) -> FetchResult:
        """Fetch ``url`` for the source ``identifier``, following redirects."""
        if not identifier:
            raise ValueError("A source identifier is required.")

        redirects = 0
        while redirects <= self.config.max_redirects:
            result, location = self._fetch_once(identifier, url)
            if location is None:
                return result
            logger.debug("Redirecting '%s' to %s", identifier, location)
            url = location
            redirects += 1

        logger.warning("Too many redirects while fetching '%s'", identifier)
        return FetchResult(None, FetchOutcome.ERROR)

    def _fallback(self, identifier: str, cached: bool) -> FetchResult:
        if cached:
            logger.info("Using the cached copy of '%s'", identifier)
            return FetchResult(
                self.cache.read(identifier), FetchOutcome.CACHED_BUT_ERROR
            )
        return FetchResult(None, FetchOutcome.ERROR)

    def _fetch_once(
        self, identifier: str, url: str
    ) -> Tuple[Optional[FetchResult], Optional[str]]:
        """Perform one request; return a result or a redirect target."""
        logger.debug("Getting %s", url)
        cached = self.cache.exists(identifier)
        headers = {"Accept-Encoding": "gzip"}
        if cached:
            since = format_datetime(self.cache.last_modified(identifier), usegmt=True)
            headers["If-Modified-Since"] = since

        try:
            # Redirects are followed by hand for conditional requests so a
            # redirect is never confused with a 304.
            response = self.session.get(
                url,
                headers=headers,
                timeout=self.config.timeout,
                stream=True,
                allow_redirects=not cached,
            )
        except requests.RequestException as exc:
            logger.info("Failed to fetch '%s' (%s): %s", identifier, url, exc)
            return self._fallback(identifier, cached), None

        with contextlib.closing(response):
            status = response.status_code
            if status in REDIRECT_CODES and response.headers.get("Location"):
                return None, urljoin(url, response.headers["Location"])

            if status == NOT_MODIFIED and cached:
                logger.debug(
                    "'%s' not modified since %s", identifier, headers["If-Modified-Since"]
                )
                return FetchResult(self.cache.read(identifier), FetchOutcome.CACHED), None

            if status != 200:
                logger.info("HTTP %s getting '%s' (%s)", status, identifier, url)
                return self._fallback(identifier, cached), None

            return self._download(identifier, url, response), None

    def _download(
        self, identifier: str, url: str, response: requests.Response
    ) -> FetchResult:
        encoding = response.headers.get("Content-Encoding", "").strip().lower()
        if encoding == "gzip":
            logger.debug("Response for '%s' is gzip-encoded", identifier)

        if self.cache.enabled:
            destination = self.cache.resolve_path(identifier)
        else:
            handle, name = tempfile.mkstemp(prefix="monologue-", suffix=".xml")
            os.close(handle)
            destination = Path(name)

        try:
            # iter_content undoes the gzip transfer encoding.
            write_chunks(destination, response.iter_content(self.config.chunk_size))
            content = parse_feed(destination)
        except (requests.RequestException, OSError) as exc:
            logger.error("Error reading '%s' (%s): %s", identifier, url, exc)
            destination.unlink(missing_ok=True)
            return FetchResult(None, FetchOutcome.ERROR)
        finally:
            if not self.cache.enabled:
                destination.unlink(missing_ok=True)

        logger.debug("Downloaded '%s' (%d items)", identifier, len(content.items))
        return FetchResult(content, FetchOutcome.DOWNLOADED)
