# chbot/cli.py
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from chbot.config import BotConfig, DEFAULT_OUTPUT_LIMIT, DEFAULT_TIMEOUT_S, DEFAULT_URL, env, load_env
from chbot.handler import QueryHandler
from chbot.query_executor import QueryExecutor, build_url
from chbot.sql_policy import InvalidPolicyValue


LOG_FORMAT = "%(asctime)s %(levelname)s %(filename)s:%(lineno)d %(message)s"


def setup_logging(verbose: int, quiet: bool) -> None:
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chbot",
        description="Run SQL against ClickHouse with an enforced row limit and CSVWithNames output.",
    )
    parser.add_argument(
        "--url",
        default=env("URL", DEFAULT_URL),
        help="ClickHouse HTTP endpoint. Defaults to env CHBOT_URL.",
    )
    parser.add_argument("-u", "--user", default=env("USER"), help="ClickHouse user (CHBOT_USER).")
    parser.add_argument("-p", "--password", default=env("PASSWORD"), help="ClickHouse password (CHBOT_PASSWORD).")
    parser.add_argument(
        "--output-limit",
        default=env("OUTPUT_LIMIT", DEFAULT_OUTPUT_LIMIT),
        help="Max output lines (CHBOT_OUTPUT_LIMIT).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_S,
        help="HTTP request timeout in seconds.",
    )
    parser.add_argument(
        "--query",
        help="Run a single query and exit. Without it, one query per stdin line.",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Debug logging.")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors.")
    return parser


async def _run(handler: QueryHandler, executor: QueryExecutor, query: Optional[str]) -> None:
    try:
        if query is not None:
            print(await handler.handle_query(query))
            return

        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            print(await handler.handle_query(line.strip()), flush=True)
    finally:
        await executor.close()


def main(argv: Optional[List[str]] = None) -> int:
    load_env()
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.quiet)

    if not args.user or not args.password:
        print("ERROR: Provide --user/--password or set CHBOT_USER/CHBOT_PASSWORD.", file=sys.stderr)
        return 2

    cfg = BotConfig(
        user=args.user,
        password=args.password,
        url=args.url,
        output_limit=args.output_limit,
        timeout_s=args.timeout,
    )

    try:
        policy = cfg.policy()
    except InvalidPolicyValue as e:
        print(f"ERROR: --output-limit: {e}", file=sys.stderr)
        return 2

    executor = QueryExecutor(build_url(cfg.url, cfg.user, cfg.password), timeout_s=cfg.timeout_s)
    handler = QueryHandler(policy, executor)

    asyncio.run(_run(handler, executor, args.query))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
