"""
News Ingestion - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line entry point for ingestion runs and cache operations.

- argparse-based CLI
- Configuration from environment (.env honored)
- Exit code 0 on success, 1 on usage or terminal failure

============================================================
USAGE
============================================================
python -m news_ingestion.cli fetch
python -m news_ingestion.cli fetch technology --sequential
python -m news_ingestion.cli search "climate"
python -m news_ingestion.cli cache warmup
python -m news_ingestion.cli cache stats
python -m news_ingestion.cli cache clear --yes
python -m news_ingestion.cli cache invalidate --tags articles stats
python -m news_ingestion.cli cache invalidate --table sources

============================================================
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from sqlalchemy.orm import sessionmaker

from caching import (
    TABLE_TAGS,
    CacheManager,
    build_default_warmup_plan,
    create_store,
    register_cache_invalidation,
)
from news_ingestion.config import (
    load_cache_config,
    load_job_config,
    load_pipeline_config,
)
from news_ingestion.exceptions import JobFailedError
from news_ingestion.jobs import FetchArticlesJob
from news_ingestion.pipeline import AggregationPipeline
from storage.database import get_session_factory, initialize_database, reset_engine


logger = logging.getLogger("news_ingestion.cli")


# ============================================================
# LOGGING
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "json") -> logging.Logger:
    """
    Set up structured logging on stdout.

    Args:
        level: Log level
        log_format: Output format (json or text)

    Returns:
        The CLI logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))

    return logger


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="news-ingestion",
        description="Multi-provider news ingestion and cache management",
    )

    logging_group = parser.add_argument_group("Logging Options")
    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default="json",
        help="Logging format (default: json)",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    # --------------------------------------------------------
    # fetch
    # --------------------------------------------------------
    fetch = commands.add_parser("fetch", help="Fetch and store articles from all providers")
    fetch.add_argument("category", nargs="?", default=None, help="Category to fetch (default: general)")
    fetch.add_argument(
        "--sequential",
        action="store_true",
        help="Fetch providers one after another instead of concurrently",
    )

    # --------------------------------------------------------
    # search
    # --------------------------------------------------------
    search = commands.add_parser("search", help="Search all providers without storing")
    search.add_argument("query", help="Search terms")
    search.add_argument("--page", type=int, default=1, help="Page number (default: 1)")

    # --------------------------------------------------------
    # cache
    # --------------------------------------------------------
    cache = commands.add_parser("cache", help="Cache management")
    cache_commands = cache.add_subparsers(dest="cache_action", metavar="ACTION")
    cache_commands.add_parser("warmup", help="Pre-populate hot cache keys")
    cache_commands.add_parser("stats", help="Show cache statistics")
    clear = cache_commands.add_parser("clear", help="Flush every cache entry")
    clear.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")
    invalidate = cache_commands.add_parser("invalidate", help="Invalidate tags or a table")
    invalidate.add_argument("--tags", nargs="+", metavar="TAG", help="Cache tags to flush")
    invalidate.add_argument("--table", metavar="TABLE", help="Table whose cache to flush")

    return parser


def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments.

    Returns:
        List of validation errors
    """
    errors = []
    if args.command is None:
        errors.append("a command is required (fetch, search, cache)")
    elif args.command == "cache":
        if args.cache_action is None:
            errors.append("a cache action is required (warmup, stats, clear, invalidate)")
        elif args.cache_action == "invalidate":
            if not args.tags and not args.table:
                errors.append("invalidate requires --tags or --table")
            if args.table and args.table not in TABLE_TAGS:
                errors.append(f"unknown table '{args.table}' (known: {', '.join(sorted(TABLE_TAGS))})")
    elif args.command == "search":
        if not args.query.strip():
            errors.append("search query must not be empty")
        if args.page < 1:
            errors.append("--page must be at least 1")
    return errors


# ============================================================
# WIRING
# ============================================================

def build_cache_manager(session_factory: sessionmaker) -> CacheManager:
    cache_config = load_cache_config()
    store = create_store(cache_config.redis_url, prefix=cache_config.key_prefix)
    return CacheManager(
        store,
        cache_config,
        warmup_tasks=build_default_warmup_plan(session_factory, cache_config),
    )


# ============================================================
# COMMANDS
# ============================================================

async def run_fetch(args: argparse.Namespace, session_factory: sessionmaker) -> int:
    cache_manager = build_cache_manager(session_factory)
    register_cache_invalidation(session_factory, cache_manager)

    config = load_pipeline_config()
    if args.sequential:
        config = replace(config, parallel_fetch=False)

    async with AggregationPipeline(config, session_factory, cache_manager=cache_manager) as pipeline:
        job = FetchArticlesJob(pipeline, category_hint=args.category, config=load_job_config())
        try:
            total = await job.handle()
        except JobFailedError:
            return 1

    print(json.dumps({"category": args.category or "general", "stored": total}))
    return 0


async def run_search(args: argparse.Namespace, session_factory: sessionmaker) -> int:
    cache_manager = build_cache_manager(session_factory)
    async with AggregationPipeline(
        load_pipeline_config(), session_factory, cache_manager=cache_manager
    ) as pipeline:
        results = await pipeline.search(args.query, args.page)

    output = {}
    for provider, result in results.items():
        if result.is_ok:
            output[provider] = [draft.to_dict() for draft in result.drafts]
        else:
            output[provider] = {"error": result.error.to_dict()}
    print(json.dumps(output, indent=2, default=str))
    return 0


def run_cache(args: argparse.Namespace, session_factory: sessionmaker) -> int:
    cache_manager = build_cache_manager(session_factory)

    if args.cache_action == "warmup":
        report = cache_manager.warm_up()
        print(json.dumps(report.to_dict(), indent=2))
        return 0 if not report.failed else 1

    if args.cache_action == "stats":
        print(json.dumps(cache_manager.get_stats(), indent=2, default=str))
        return 0

    if args.cache_action == "clear":
        if not args.yes:
            answer = input("Clear ALL cache entries? [y/N] ").strip().lower()
            if answer not in ("y", "yes"):
                print("Aborted")
                return 1
        return 0 if cache_manager.clear_all() else 1

    removed = 0
    if args.tags:
        removed += cache_manager.invalidate_tags(args.tags)
    if args.table:
        removed += cache_manager.invalidate_table_cache(args.table)
    print(json.dumps({"invalidated_keys": removed}))
    return 0


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    setup_logging(args.log_level, args.log_format)

    try:
        initialize_database()
        session_factory = get_session_factory()

        if args.command == "fetch":
            return asyncio.run(run_fetch(args, session_factory))
        if args.command == "search":
            return asyncio.run(run_search(args, session_factory))
        return run_cache(args, session_factory)

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        reset_engine()


if __name__ == "__main__":
    sys.exit(main())
