"""Configuration loading for sources and the application."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from xml.etree import ElementTree as ET

from .models import DEFAULT_AUTHOR_DOMAIN, Source

logger = logging.getLogger(__name__)

DEFAULT_LOOP_INTERVAL_MS = 600000


@dataclass
class ChannelConfig:
    """Metadata of the combined output feed."""

    title: str = "Monologue"
    link: str = "http://www.go-mono.com/monologue/"
    description: str = "The voices of Mono"
    generator: str = "Monologue worker: b-diddy powered"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class AppConfig:
    cache_dir: Optional[str] = None
    loop_interval_ms: int = DEFAULT_LOOP_INTERVAL_MS
    timeout: float = 30.0
    window_days: int = 14
    author_domain: str = DEFAULT_AUTHOR_DOMAIN
    template: Optional[str] = None
    channel: ChannelConfig = field(default_factory=ChannelConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _walk_opml(outline: ET.Element, sources: List[Source]) -> None:
    title = outline.attrib.get("title") or outline.attrib.get("text")
    feed_url = outline.attrib.get("xmlUrl")
    if outline.attrib.get("type") == "rss" and feed_url:
        sources.append(Source(name=title or feed_url, url=feed_url))
        return
    for child in outline.findall("outline"):
        _walk_opml(child, sources)


def parse_sources_config(path: str) -> List[Source]:
    """Parse a blogger list or OPML file into sources sorted by name then URL."""
    logger.info("Loading sources from %s", path)
    try:
        root = ET.parse(path).getroot()
    except (ET.ParseError, OSError) as exc:
        raise RuntimeError(f"Cannot read source list {path}: {exc}") from exc

    sources: List[Source] = []
    if root.tag == "opml":
        body = root.find("body")
        if body is None:
            raise RuntimeError(f"{path} is missing the <body> section.")
        for outline in body.findall("outline"):
            _walk_opml(outline, sources)
    elif root.tag == "BloggerCollection":
        for element in root.iter("Blogger"):
            name = (element.attrib.get("Name") or "").strip()
            url = (element.attrib.get("RssUrl") or "").strip()
            if not name or not url:
                raise RuntimeError(
                    f"Blogger entries in {path} need both Name and RssUrl."
                )
            sources.append(Source(name=name, url=url))
    else:
        raise RuntimeError(
            f"{path} is neither a BloggerCollection nor an OPML document (root <{root.tag}>)."
        )

    seen = set()
    for source in sources:
        if source.identifier in seen:
            raise RuntimeError(f"Duplicate source name in {path}: {source.name}")
        seen.add(source.identifier)

    sources.sort(key=lambda source: (source.name, source.url))
    logger.info("Loaded %d sources", len(sources))
    return sources


class SourceList:
    """Source list that reloads when its file's modification time advances."""

    def __init__(self, path: str):
        self.path = path
        self.sources: List[Source] = []
        self._loaded_mtime: Optional[float] = None

    def refresh(self) -> List[Source]:
        try:
            mtime = Path(self.path).stat().st_mtime
        except OSError as exc:
            raise RuntimeError(f"Cannot read source list {self.path}: {exc}") from exc

        if self._loaded_mtime is None or mtime > self._loaded_mtime:
            self.sources = parse_sources_config(self.path)
            self._loaded_mtime = mtime
        return self.sources


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the base config file if it's not absolute."""
    target = Path(target_path)
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def parse_app_config(path: str) -> AppConfig:
    """Parse the optional application configuration XML."""
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    logger.info("Loading application configuration from %s", config_path)
    try:
        root = ET.parse(config_path).getroot()
    except ET.ParseError as exc:
        raise ValueError(f"Invalid configuration file {path}: {exc}") from exc

    config = AppConfig()

    cache_dir = root.findtext("cache-dir")
    if cache_dir and cache_dir.strip():
        config.cache_dir = _resolve_path(config_path, cache_dir.strip())

    template = root.findtext("template")
    if template and template.strip():
        config.template = _resolve_path(config_path, template.strip())

    try:
        config.loop_interval_ms = int(
            root.findtext("loop-interval-ms", str(DEFAULT_LOOP_INTERVAL_MS))
        )
        config.timeout = float(root.findtext("timeout", "30"))
        config.window_days = int(root.findtext("window-days", "14"))
    except ValueError as exc:
        raise ValueError(f"Invalid numeric setting in {path}: {exc}") from exc

    if config.window_days <= 0:
        raise ValueError("window-days must be positive.")

    config.author_domain = root.findtext("author-domain", DEFAULT_AUTHOR_DOMAIN).strip()

    channel_node = root.find("channel")
    if channel_node is not None:
        defaults = ChannelConfig()
        config.channel = ChannelConfig(
            title=channel_node.findtext("title", defaults.title),
            link=channel_node.findtext("link", defaults.link),
            description=channel_node.findtext("description", defaults.description),
            generator=channel_node.findtext("generator", defaults.generator),
        )

    log_node = root.find("logging")
    if log_node is not None:
        config.logging.level = log_node.findtext("level", "INFO")
        log_file = log_node.findtext("file")
        if log_file:
            config.logging.file = _resolve_path(config_path, log_file)

    return config
