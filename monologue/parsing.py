"""Feed parsing and serialization helpers."""

from __future__ import annotations

import calendar
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

import feedparser

from .models import FeedContent, FeedItem
from .templating import get_environment

logger = logging.getLogger(__name__)


def to_datetime(value: Optional[time.struct_time]) -> Optional[datetime]:
    """Convert feedparser UTC timestamps to timezone-aware datetimes."""
    if value is None:
        return None
    return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)


def _entry_description(entry) -> str:
    description = entry.get("description") or entry.get("summary")
    if description:
        return description
    content = entry.get("content")
    if content:
        try:
            return content[0].get("value") or ""
        except (TypeError, KeyError, IndexError, AttributeError):
            return ""
    return ""


def parse_feed(source: Union[bytes, str, Path]) -> FeedContent:
    """Parse raw feed bytes, or the file at a path, into ``FeedContent``."""
    payload = source if isinstance(source, bytes) else Path(source).read_bytes()
    parsed = feedparser.parse(payload)
    if parsed.bozo and not parsed.entries:
        logger.debug("Feed parser reported: %s", parsed.get("bozo_exception"))

    channel = parsed.feed
    items = []
    for entry in parsed.entries:
        published = None
        for attr in ("published_parsed", "updated_parsed", "created_parsed"):
            published = entry.get(attr)
            if published:
                break

        items.append(
            FeedItem(
                title=entry.get("title", ""),
                link=entry.get("link"),
                description=_entry_description(entry),
                published=to_datetime(published),
                author=entry.get("author"),
                guid=entry.get("id"),
            )
        )

    return FeedContent(
        title=channel.get("title", ""),
        link=channel.get("link"),
        description=channel.get("subtitle", "") or channel.get("description", ""),
        generator=channel.get("generator"),
        items=items,
    )


def render_feed(content: FeedContent) -> str:
    """Render ``content`` as an RSS 2.0 document."""
    template = get_environment().get_template("rss.xml.j2")
    return template.render(feed=content)


def serialize_feed(content: FeedContent, path: Union[str, Path]) -> None:
    """Write ``content`` as an RSS 2.0 document to ``path``."""
    location = Path(path)
    if location.parent and not location.parent.exists():
        location.parent.mkdir(parents=True, exist_ok=True)

    location.write_text(render_feed(content), encoding="utf-8")
    logger.info("Wrote feed with %d items to %s", len(content.items), location)
