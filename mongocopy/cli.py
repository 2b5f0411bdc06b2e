#!/usr/bin/env python3
"""
mongocopy command line
Copy MongoDB collections or entire databases between clusters, or to and from JSON backups
"""
import argparse
import asyncio
import logging
import os
import sys
import traceback
from typing import List, Optional

from . import __version__
from .config.manager import ConfigManager, LoggingSettings
from .core.errors import ConfigurationError
from .monitoring.progress import TqdmProgressReporter
from .transfer.engine import create_transfer_engine

logger = logging.getLogger("mongocopy")

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mongocopy",
        description="Copy MongoDB collections or entire databases between clusters"
    )
    parser.add_argument('-a', '--all', action='store_true',
                        help='Copy all collections from source DB')
    parser.add_argument('-c', '--collections',
                        help='Comma-separated list of collections to copy')
    parser.add_argument('--dry-run', action='store_true',
                        help='Preview the operations without writing to target')
    parser.add_argument('--batch-size', type=int,
                        help='Documents per insert batch (default from env or 1000)')
    parser.add_argument('--yes', action='store_true',
                        help='Skip confirmation prompts (CI-friendly)')
    parser.add_argument('--export-json', action='store_true',
                        help='Export collections to JSON files (into --output-dir)')
    parser.add_argument('--import-json', action='store_true',
                        help='Import collections from JSON files (from --output-dir)')
    parser.add_argument('--output-dir',
                        help='Directory for JSON export/import (default: ./backup)')
    parser.add_argument('--log-path',
                        help='Write logs to this file as well')
    parser.add_argument('--config',
                        help='JSON, YAML or .env configuration file')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser

def normalize_collections(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [name.strip() for name in raw.split(",") if name.strip()]

def configure_logging(settings: LoggingSettings, log_path: Optional[str] = None):
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_path or settings.to_file:
        handlers.append(logging.FileHandler(log_path or settings.path))

    logging.basicConfig(
        level=getattr(logging, settings.level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )

def confirm(message: str, default: bool = False) -> bool:
    suffix = " [Y/n] " if default else " [y/N] "
    try:
        answer = input(message + suffix).strip().lower()
    except EOFError:
        return default
    if not answer:
        return default
    return answer in ("y", "yes")

def run_async(coro):
    """Run on uvloop when installed, without touching the global loop policy"""
    try:
        import uvloop
    except ImportError:
        return asyncio.run(coro)  # uvloop not available, using default event loop
    return uvloop.run(coro)

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    collections = normalize_collections(args.collections)

    if not args.all and not collections and not args.export_json and not args.import_json:
        print("Please provide --all or --collections <list> or --export-json/--import-json")
        parser.print_help()
        return 0

    if args.export_json and args.import_json:
        print("Cannot use --export-json and --import-json together", file=sys.stderr)
        return 1

    # --all wins over an explicit list
    if args.all:
        collections = []

    try:
        config_manager = ConfigManager("MONGOCOPY")
        settings = config_manager.load_settings(args.config)
        configure_logging(settings.logging, args.log_path)

        job = config_manager.build_job(
            collections=collections,
            batch_size=args.batch_size,
            dry_run=args.dry_run,
            export_json=args.export_json,
            import_json=args.import_json,
            output_dir=args.output_dir
        )
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    display = "ALL collections" if not job.collections else f"collections: {', '.join(job.collections)}"
    dry_text = " (dry-run)" if job.dry_run else ""
    if not args.yes:
        if not confirm(f"About to {job.mode.value} {display}{dry_text}. Continue?"):
            logger.warning("Operation cancelled by user.")
            return 0
    else:
        logger.info("Confirmation skipped (--yes).")

    engine = create_transfer_engine(job, reporter=TqdmProgressReporter())

    try:
        summary = run_async(engine.run())
    except Exception as e:
        logger.error(f"Operation failed: {e}")
        if os.getenv("DEBUG", "").lower() == "true":
            traceback.print_exc()
        return 1

    logger.info(f"🎉 Operation finished: {summary.total_processed:,} documents across {len(summary.plan)} collection(s)")
    return 0

if __name__ == "__main__":
    sys.exit(main())
