"""High-level orchestration: fetch every source, merge and render."""

from __future__ import annotations

import dataclasses
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .cache import FeedCache
from .config import ChannelConfig, SourceList
from .fetcher import FeedFetcher, FetchConfig
from .models import (
    DEFAULT_AUTHOR_DOMAIN,
    DayGroup,
    FeedContent,
    FeedItem,
    FetchOutcome,
    Source,
)
from .parsing import serialize_feed
from .renderers import build_html, write_html

logger = logging.getLogger(__name__)

UNCHANGED_OUTCOMES = frozenset({FetchOutcome.CACHED, FetchOutcome.CACHED_BUT_ERROR})


@dataclass
class RunConfig:
    """Runtime options for a single aggregation run."""

    sources_file: str
    html_output: str
    feed_output: str
    cache_dir: Optional[str] = None
    timeout: float = 30.0
    window_days: int = 14
    author_domain: str = DEFAULT_AUTHOR_DOMAIN
    template_path: Optional[str] = None
    channel: ChannelConfig = field(default_factory=ChannelConfig)


@dataclass
class SourceFeed:
    """A source together with the content fetched for it in this run."""

    source: Source
    content: Optional[FeedContent]
    outcome: FetchOutcome
    default_link: str = ChannelConfig.link

    @property
    def home_page(self) -> str:
        if self.content is not None and self.content.link:
            return self.content.link
        return self.default_link


@dataclass
class RunReport:
    """Outcome counters and merged output of one run."""

    counters: Dict[FetchOutcome, int]
    changed: bool
    items: List[FeedItem] = field(default_factory=list)
    days: List[DayGroup] = field(default_factory=list)


def format_counters(report: RunReport) -> str:
    return "\n".join(
        f"{outcome.value}: {report.counters.get(outcome, 0)}" for outcome in FetchOutcome
    )


def apply_author(content: FeedContent, author: str) -> None:
    for item in content.items:
        item.author = author


def collect_recent_items(
    feeds: Iterable[SourceFeed],
    now: Optional[datetime] = None,
    window_days: int = 14,
) -> List[FeedItem]:
    """Return retitled items newer than the window, newest first."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=window_days)

    stories: List[FeedItem] = []
    for feed in feeds:
        if feed.content is None:
            continue
        for item in feed.content.items:
            if item.published is None or item.published < cutoff:
                continue
            stories.append(
                dataclasses.replace(item, title=f"{feed.source.name}: {item.title}")
            )

    return sorted(stories, key=lambda item: item.published, reverse=True)


def group_by_day(items: Iterable[FeedItem]) -> List[DayGroup]:
    """Group items by local publication date, newest day first."""
    ordered = sorted(items, key=lambda item: item.published, reverse=True)
    return [
        DayGroup(day=day, items=list(group))
        for day, group in itertools.groupby(
            ordered, key=lambda item: item.published.astimezone().date()
        )
    ]


class Aggregator:
    """Fetches every configured source and rebuilds the outputs on change."""

    def __init__(
        self,
        config: RunConfig,
        fetcher: Optional[FeedFetcher] = None,
        source_list: Optional[SourceList] = None,
    ):
        self.config = config
        self.fetcher = fetcher or FeedFetcher(
            FeedCache(config.cache_dir), FetchConfig(timeout=config.timeout)
        )
        self.source_list = source_list or SourceList(config.sources_file)

    def _fetch_source(self, source: Source) -> SourceFeed:
        try:
            content, outcome = self.fetcher.fetch(source.identifier, source.url)
        except Exception:
            logger.exception("Failed to fetch source '%s'", source.name)
            content, outcome = None, FetchOutcome.ERROR

        if content is not None:
            apply_author(content, source.author(self.config.author_domain))
        logger.debug("%s: %s", source.name, outcome.value)
        return SourceFeed(
            source=source,
            content=content,
            outcome=outcome,
            default_link=self.config.channel.link,
        )

    def run_once(self, now: Optional[datetime] = None) -> RunReport:
        sources = self.source_list.refresh()
        counters = {outcome: 0 for outcome in FetchOutcome}
        feeds: List[SourceFeed] = []

        for source in sources:
            feed = self._fetch_source(source)
            counters[feed.outcome] += 1
            feeds.append(feed)

        changed = any(feed.outcome not in UNCHANGED_OUTCOMES for feed in feeds)
        if not changed:
            logger.info("No source changed; keeping existing outputs.")
            return RunReport(counters=counters, changed=False)

        items = collect_recent_items(feeds, now=now, window_days=self.config.window_days)
        channel = self.config.channel
        serialize_feed(
            FeedContent(
                title=channel.title,
                link=channel.link,
                description=channel.description,
                generator=channel.generator,
                items=items,
            ),
            self.config.feed_output,
        )

        days = group_by_day(items)
        html = build_html(
            feeds,
            days,
            title=channel.title,
            feed_url=Path(self.config.feed_output).name,
            template_path=self.config.template_path,
        )
        write_html(self.config.html_output, html)

        logger.info("Merged %d items from %d sources", len(items), len(feeds))
        return RunReport(counters=counters, changed=True, items=items, days=days)
