"""Jinja2 environment for monologue templates."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import format_datetime
from importlib import resources
from pathlib import Path

from jinja2 import BaseLoader, Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

_ENV: Environment | None = None


def _rfc822(value: datetime | None) -> str:
    """Format a datetime for RSS ``pubDate`` elements."""
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def _raw_html(value: str | None) -> Markup:
    """Insert feed-provided HTML as is."""
    return Markup(value or "")


def _day_label(value) -> str:
    """Render a date as e.g. ``October 19``."""
    return f"{value:%B} {value.day}"


def _time_label(value: datetime | None) -> str:
    """Render the local time of day as e.g. ``9:05 AM``."""
    if value is None:
        return ""
    local = value.astimezone()
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d} {suffix}"


def build_environment(loader: BaseLoader) -> Environment:
    env = Environment(
        loader=loader,
        autoescape=select_autoescape(["html", "xml", "html.j2", "xml.j2"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["rfc822"] = _rfc822
    env.filters["day_label"] = _day_label
    env.filters["time_label"] = _time_label
    env.filters["raw_html"] = _raw_html
    return env


def get_environment() -> Environment:
    """Return a cached Jinja environment configured for package templates."""
    global _ENV
    if _ENV is None:
        template_dir = resources.files(__package__) / "templates"
        _ENV = build_environment(FileSystemLoader(str(template_dir)))
    return _ENV


def load_template_file(path: str | Path):
    """Load a user-supplied template file with the package filters registered."""
    location = Path(path)
    env = build_environment(FileSystemLoader(str(location.parent)))
    return env.get_template(location.name)
