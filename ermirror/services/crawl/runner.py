from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

from ermirror.config import Settings
from ermirror.services.export_service import export_csv
from .base import PersistenceError
from .fetcher import AreaFetcher
from .locator import Templates
from .orchestrator import Crawler, CrawlReport, root_task
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


async def run_crawl(settings: Settings) -> CrawlReport:
    policy = RetryPolicy(
        max_retries=settings.max_retries,
        base_delay=settings.backoff_base,
        max_delay=settings.backoff_max,
    )
    async with AreaFetcher(
        timeout=settings.timeout,
        headers={"User-Agent": settings.user_agent},
        policy=policy,
    ) as fetcher:
        crawler = Crawler(
            fetcher,
            concurrency=settings.concurrency,
            overseas=settings.overseas,
            max_depth=settings.max_depth,
            templates=Templates(base_url=settings.base_url),
        )
        report = await crawler.crawl(root_task(settings.data_dir, settings.root_code))
        logger.debug("%d HTTP requests made", fetcher.requests_made)
        return report


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Mirror the election results hierarchy to disk")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING...)")
    parser.add_argument("--env-file", default=".env", help="KEY=value file read before the environment (default: ./.env)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    crawl = sub.add_parser("crawl", help="Download (or resume downloading) the hierarchy")
    crawl.add_argument("--out-dir", help="Mirror root directory (ERMIRROR_DATA_DIR)")
    crawl.add_argument("--concurrency", type=int, help="Max in-flight requests (ERMIRROR_CONCURRENCY)")
    crawl.add_argument("--root-code", help="Code of the top-level listing (ERMIRROR_ROOT_CODE)")
    crawl.add_argument("--overseas", action="store_true", default=None, help="Use the overseas area listings")
    crawl.add_argument("--max-retries", type=int, help="Retries per request (ERMIRROR_MAX_RETRIES)")

    csv_cmd = sub.add_parser("csv", help="Flatten downloaded election returns to CSV")
    csv_cmd.add_argument("--data-dir", help="Mirror root directory (ERMIRROR_DATA_DIR)")
    csv_cmd.add_argument("--contest", type=int, default=0, help="Index of the national contest to export")
    csv_cmd.add_argument("--out", help="Output CSV path (default: stdout)")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = Settings.from_env(args.env_file)

    if args.cmd == "crawl":
        settings = settings.override(
            data_dir=args.out_dir,
            concurrency=args.concurrency,
            root_code=args.root_code,
            overseas=args.overseas,
            max_retries=args.max_retries,
        )
        try:
            report = asyncio.run(run_crawl(settings))
        except PersistenceError as exc:
            logger.error("crawl aborted: %s", exc)
            return 1
        print(report.summary())
        return 0

    if args.cmd == "csv":
        data_dir = args.data_dir or settings.data_dir
        if args.out:
            with open(args.out, "w", encoding="utf-8", newline="") as f:
                rows = export_csv(data_dir, f, contest_index=args.contest)
            print(f"{rows} rows -> {args.out}")
        else:
            rows = export_csv(data_dir, sys.stdout, contest_index=args.contest)
            logger.info("%d rows written", rows)
        return 0

    parser.error("unknown command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
