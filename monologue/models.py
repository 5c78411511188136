"""Shared data models for monologue."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, NamedTuple, Optional

DEFAULT_AUTHOR_DOMAIN = "monologue.go-mono.com"


class FetchOutcome(str, Enum):
    """How a single fetch attempt was satisfied."""

    DOWNLOADED = "Downloaded"
    # Reserved: nothing produces it yet.
    UPDATED = "Updated"
    CACHED = "Cached"
    CACHED_BUT_ERROR = "CachedButError"
    ERROR = "Error"


@dataclass(frozen=True)
class Source:
    """A configured feed to poll."""

    name: str
    url: str

    @property
    def identifier(self) -> str:
        return self.name

    def author(self, domain: str = DEFAULT_AUTHOR_DOMAIN) -> str:
        """Return an email-like author derived from the first name token."""
        parts = self.name.split()
        first = parts[0] if parts else self.name
        return f"{first}@{domain}"


@dataclass
class FeedItem:
    """Single entry of a feed."""

    title: str
    link: Optional[str] = None
    description: str = ""
    published: Optional[datetime] = None
    author: Optional[str] = None
    guid: Optional[str] = None


@dataclass
class FeedContent:
    """Channel metadata plus its ordered items."""

    title: str = ""
    link: Optional[str] = None
    description: str = ""
    generator: Optional[str] = None
    items: List[FeedItem] = field(default_factory=list)


class FetchResult(NamedTuple):
    content: Optional[FeedContent]
    outcome: FetchOutcome


@dataclass
class DayGroup:
    """Items published on one local calendar day, newest first."""

    day: date
    items: List[FeedItem] = field(default_factory=list)
