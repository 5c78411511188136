"""HTML rendering for the aggregated view."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence

from .models import DayGroup
from .templating import get_environment, load_template_file

if TYPE_CHECKING:
    from .aggregator import SourceFeed

logger = logging.getLogger(__name__)


def build_html(
    sources: Sequence["SourceFeed"],
    days: Sequence[DayGroup],
    title: str = "Monologue",
    feed_url: str = "",
    template_path: Optional[str] = None,
) -> str:
    """Render the source list and day-grouped entries as an HTML page."""
    if template_path:
        template = load_template_file(template_path)
    else:
        template = get_environment().get_template("index.html.j2")
    return template.render(sources=sources, days=days, title=title, feed_url=feed_url)


def write_html(path: str, html: str) -> None:
    location = Path(path)
    if location.parent and not location.parent.exists():
        location.parent.mkdir(parents=True, exist_ok=True)
    location.write_text(html, encoding="utf-8")
    logger.info("Wrote HTML output to %s", location)
