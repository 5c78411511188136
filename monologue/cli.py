"""Command-line interface for the monologue aggregator."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import pprint
import time
from pathlib import Path
from typing import List, Optional

from .aggregator import Aggregator, RunConfig, format_counters
from .config import DEFAULT_LOOP_INTERVAL_MS, AppConfig, parse_app_config

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Merge recent entries of the listed feeds into one feed and HTML page."
    )
    parser.add_argument("sources_file", help="Blogger list or OPML file.")
    parser.add_argument("html_output", help="Where to write the HTML page.")
    parser.add_argument("feed_output", help="Where to write the combined RSS feed.")
    parser.add_argument(
        "--loop",
        nargs="?",
        type=int,
        const=-1,
        default=None,
        metavar="MS",
        help="Keep running, sleeping MS milliseconds between runs.",
    )
    parser.add_argument(
        "--cachedir",
        default=None,
        help="Directory for cached feeds. Without it nothing is cached.",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging."
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional application configuration XML file.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g. DEBUG, INFO, WARNING). Overrides config.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to a log file. Overrides config.",
    )
    return parser


def configure_logging(level_name: str, log_file: Optional[str] = None) -> None:
    """Initialise logging according to options."""
    log_level = getattr(logging, level_name.upper(), None)
    if not isinstance(log_level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(log_level)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if log_file:
        log_path = Path(log_file)
        if log_path.parent and not log_path.parent.exists():
            log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        logger.debug(
            "Logger initialised with level %s and file output to %s",
            level_name.upper(),
            log_path,
        )
    else:
        logger.debug(
            "Logger initialised with console output at level %s", level_name.upper()
        )


def _loop_interval(args: argparse.Namespace, app_config: AppConfig) -> Optional[int]:
    if args.loop is None:
        return None
    if args.loop < 0:
        return app_config.loop_interval_ms or DEFAULT_LOOP_INTERVAL_MS
    return args.loop


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = parse_app_config(args.config) if args.config else AppConfig()

        if args.verbose:
            log_level = "DEBUG"
        else:
            log_level = args.log_level or app_config.logging.level
        configure_logging(log_level, args.log_file or app_config.logging.file)

        cache_dir = args.cachedir or app_config.cache_dir
        config = RunConfig(
            sources_file=args.sources_file,
            html_output=args.html_output,
            feed_output=args.feed_output,
            cache_dir=str(Path.cwd() / cache_dir) if cache_dir else None,
            timeout=app_config.timeout,
            window_days=app_config.window_days,
            author_domain=app_config.author_domain,
            template_path=app_config.template,
            channel=app_config.channel,
        )
        interval_ms = _loop_interval(args, app_config)
        logger.info("Active Configuration:\n%s", pprint.pformat(dataclasses.asdict(config)))

        aggregator = Aggregator(config)
        while True:
            try:
                report = aggregator.run_once()
            except OSError:
                # Output write failures only cost this run when looping.
                if interval_ms is None:
                    raise
                logger.exception("Failed to write outputs; retrying on the next run.")
            else:
                print(format_counters(report), flush=True)
            if interval_ms is None:
                break
            logger.debug("Sleeping %d ms before the next run", interval_ms)
            time.sleep(interval_ms / 1000.0)
    except ValueError as exc:
        parser.error(str(exc))
    except (RuntimeError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted; exiting.")
        return 0
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1

    return 0
