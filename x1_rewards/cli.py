#!/usr/bin/env python3
"""Command-line entry point for the X1 validator reward ledger.

Walks the vote account's inflation rewards from the last completed epoch back
to epoch 0 (or ``--epochs`` epochs), prices each payout, and writes the main
per-epoch CSV with cumulative columns plus an analytics CSV. ``--json`` adds
a full JSON export and an analytics JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from x1_rewards.config import CONFIG_FILENAME, apply_overrides, load_config, validate_config
from x1_rewards.errors import ConfigurationError, RPCError, SetupError
from x1_rewards.fetcher import EpochRewardFetcher
from x1_rewards.pipeline import RewardReport, collect_rewards
from x1_rewards.pricing import FallbackPriceSource
from x1_rewards.progress import TqdmProgress
from x1_rewards.report import (
    render_console_summary,
    write_analytics_csv,
    write_json_export,
    write_rewards_csv,
)
from x1_rewards.rpc import X1RPCClient

LOGGER_NAME = "x1_rewards"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="x1-rewards",
        description="Collect a validator's historical X1 inflation rewards into a priced, cumulative ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  x1-rewards --vote-pubkey YOUR_PUBKEY
  x1-rewards --epochs 20 --vote-pubkey YOUR_PUBKEY
  x1-rewards --json --verbose --vote-pubkey YOUR_PUBKEY
        """,
    )
    parser.add_argument("--config", type=Path, default=Path(CONFIG_FILENAME), help="Path to config.json")
    parser.add_argument("--rpc-url", dest="rpc_url", help="X1 RPC endpoint")
    parser.add_argument("--vote-pubkey", dest="vote_pubkey", help="Vote account public key")
    parser.add_argument("--liquidity-pool-address", dest="liquidity_pool_address", help="Liquidity pool used for pricing")
    parser.add_argument("--fallback-price-usd", dest="fallback_price_usd", type=float, help="Fallback price ($/XNT)")
    parser.add_argument("--output", "-o", dest="output_file", help="Main CSV file path")
    parser.add_argument("--analytics-output", dest="analytics_output_file", help="Analytics CSV file path")
    parser.add_argument(
        "--epochs",
        "-n",
        type=int,
        help="Number of epochs to process (from current-1 backwards); default is the full history",
    )
    parser.add_argument("--concurrency", type=int, help="Epoch queries in flight at once (default 1)")
    parser.add_argument("--verbose", "-v", action="store_true", default=None, help="Enable detailed logging")
    parser.add_argument(
        "--json",
        action="store_true",
        default=None,
        help="Also export xnt_rewards.json and xnt_rewards_analytics.json",
    )
    return parser


def resolve_config(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    args = build_parser().parse_args(argv)
    overrides = {key: value for key, value in vars(args).items() if key != "config"}
    return validate_config(apply_overrides(load_config(args.config), overrides))


def configure_logging(config: Dict[str, Any]) -> logging.Logger:
    level = logging.DEBUG if config.get("verbose") else getattr(logging, config.get("log_level", "INFO"), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger(LOGGER_NAME)


async def run(config: Dict[str, Any], logger: logging.Logger) -> RewardReport:
    logger.info("Starting reward scan for vote account %s", config["vote_pubkey"])
    async with X1RPCClient(
        config["rpc_endpoints"],
        timeout=config["request_timeout"],
        max_retries=config["max_rpc_retries"],
    ) as client:
        fetcher = EpochRewardFetcher(
            client,
            FallbackPriceSource(config["fallback_price_usd"]),
            pool_address=config.get("liquidity_pool_address"),
        )
        with TqdmProgress(disable=config["verbose"]) as progress:
            report = await collect_rewards(
                client,
                config["vote_pubkey"],
                fetcher,
                config["epochs"],
                concurrency=config["concurrency"],
                progress=progress,
                progress_interval=config["progress_interval"],
            )

    render_console_summary(report, logger)
    if report.has_rewards:
        write_rewards_csv(Path(config["output_file"]), report.records, logger)
        write_analytics_csv(Path(config["analytics_output_file"]), report, logger)
    if config["json"]:
        write_json_export(
            Path(config["json_output_file"]),
            Path(config["analytics_json_output_file"]),
            report,
            logger,
        )
    return report


def main(argv: Optional[List[str]] = None) -> None:
    logger = logging.getLogger(LOGGER_NAME)
    try:
        config = resolve_config(argv)
        logger = configure_logging(config)
        asyncio.run(run(config, logger))
    except (ConfigurationError, RPCError, SetupError) as exc:
        if not logging.getLogger().handlers:
            logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s - %(message)s")
        logger.error("Fatal error: %s", exc)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        logger.warning("Execution interrupted by user")
        raise SystemExit(130) from None


if __name__ == "__main__":
    main()
