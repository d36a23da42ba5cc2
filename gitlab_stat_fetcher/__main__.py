#!/usr/bin/env python3
"""
CLI entry point for the GitLab Stat Fetcher.

Usage:
    python -m gitlab_stat_fetcher https://gitlab.example.com/mygroup
    python -m gitlab_stat_fetcher --skip-discussions https://gitlab.example.com/group/project

Settings come from environment variables (or a .env file).
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from . import __version__
from .config import FetcherConfig
from .errors import ConfigurationError, ResolutionError
from .logging_config import setup_logging
from .orchestrator import run_fetch


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="gitlab-stat-fetcher",
        description="Export GitLab commits, merge requests and MR notes to CSV",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Every project of a group and its direct subgroups
  python -m gitlab_stat_fetcher https://gitlab.example.com/mygroup

  # A single project, without MR discussions
  python -m gitlab_stat_fetcher --skip-discussions https://gitlab.example.com/mygroup/myproject

Environment Variables (can be set in .env):
  GITLAB_URL        GitLab instance URL (required)
  GITLAB_TOKEN      Personal Access Token (required, read_api scope)
  DATA_FOLDER       Output directory for CSV files and the checkpoint (required)
  GITLAB_WORKERS    Worker threads per fetch phase (default: 1)
  SINCE_DATE        Only fetch commits/MRs since YYYY-MM-DD (default: 2 years ago)
  LOG_LEVEL         Logging level (default: INFO)
  LOG_FORMAT        "text" or "json" (default: text)
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "urls",
        metavar="URL",
        nargs="+",
        help="Project or group URL on the configured GitLab instance",
    )
    parser.add_argument(
        "--skip-discussions",
        action="store_true",
        help="Skip fetching merge request discussions",
    )

    # Logging
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all output except errors",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit logs as JSON lines",
    )
    parser.add_argument(
        "--log-file",
        metavar="PATH",
        help="Also write logs to this file",
    )

    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # Logging is needed before config so SINCE_DATE warnings are visible
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)
    logger = logging.getLogger("gitlab_stat_fetcher")

    try:
        config = FetcherConfig.from_env(
            skip_discussions=args.skip_discussions,
        )
    except (ConfigurationError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Please provide required settings via environment variables or .env file")
        return 1

    if args.quiet:
        log_level = logging.ERROR
    elif args.verbose:
        log_level = logging.DEBUG
    else:
        log_level = logging.getLevelName(config.log_level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO
    setup_logging(
        level=log_level,
        json_format=args.log_json or config.log_format == "json",
        log_file=args.log_file,
    )

    logger.debug(
        f"Configuration: base_url={config.gitlab_base_url}, output_dir={config.output_dir}, "
        f"workers={config.workers}, skip_discussions={config.skip_discussions}"
    )

    try:
        summary = run_fetch(config, args.urls)
        logger.info(
            f"Run complete: {summary.projects_found} projects found, "
            f"{summary.projects_skipped} skipped, {len(summary.results)} fetched"
        )
        return 0

    except ResolutionError as e:
        logger.error(f"Resolution failed: {e}")
        return 1

    except KeyboardInterrupt:
        logger.warning("Fetch interrupted by user")
        return 130

    except Exception as e:
        logger.exception(f"Fetch failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
