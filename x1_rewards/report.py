"""Console, CSV and JSON output for a finished reward run."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple

import pandas as pd

from x1_rewards.classifier import ROLLBACK_EPOCH_THRESHOLD
from x1_rewards.models import FailureTally, RewardRecord, SummaryStats
from x1_rewards.pipeline import RewardReport

REWARD_COLUMNS = [
    "Epoch",
    "Reward Date (UTC, approx)",
    "XNT Amount",
    "Cumulative XNT",
    "XNT Price (USD)",
    "Value (USD)",
    "Cumulative USD",
]
CSV_ENCODING = "utf-8-sig"  # BOM so LibreOffice/Excel detect UTF-8


def analytics_rows(summary: SummaryStats, tally: FailureTally) -> List[Tuple[str, Any]]:
    return [
        ("Final Date Range (approx)", summary.date_range),
        ("Days Covered", summary.days_covered if summary.days_covered is not None else summary.days_covered_text),
        ("Total XNT Earned", str(summary.total_xnt)),
        ("Average $XNT Earned Per Day", summary.average_per_day),
        ("Total Epochs Processed", tally.total_processed),
        ("Total Epochs with Rewards", summary.epochs_with_rewards),
        ("Percentage of Epochs with Rewards", summary.percentage_with_rewards),
        (
            "Percentage of Expected Epochs with Rewards (accounts for early chain rollback)",
            summary.percentage_expected_with_rewards,
        ),
        ("Average $XNT Per Epoch", summary.average_per_epoch),
        ("Unexpected Failed Epoch Queries", tally.unexpected_failures),
        ("Failed Epoch Queries", tally.failed_total),
        ("Early Epoch Failures (expected from rollback)", tally.early_failures),
    ]


def reward_rows(records: List[RewardRecord]) -> List[List[Any]]:
    rows = []
    for record in records:
        data = record.to_dict()
        rows.append(
            [
                data["epoch"],
                data["rewardDate"],
                data["xntAmount"],
                data["cumulativeXNT"],
                data["priceUSD"],
                data["valueUSD"],
                data["cumulativeUSD"],
            ]
        )
    return rows


def render_console_summary(report: RewardReport, logger: logging.Logger) -> None:
    if not report.has_rewards:
        logger.warning("No rewards found for %s.", report.vote_pubkey)
        logger.info("Tip: Check validator dashboard for credit history.")
        return

    summary_df = pd.DataFrame(analytics_rows(report.summary, report.tally), columns=["Metric", "Value"])
    logger.info("Summary:\n%s", summary_df.to_string(index=False, justify="left"))
    if report.tally.early_failures:
        logger.info(
            "Note: %d failures in early epochs (<=%d) are expected due to the X1 Mainnet reboot/rollback; "
            "pre-reboot ledger data is not queryable on the current chain.",
            report.tally.early_failures,
            ROLLBACK_EPOCH_THRESHOLD,
        )


def write_rewards_csv(output_path: Path, records: List[RewardRecord], logger: logging.Logger) -> None:
    frame = pd.DataFrame(reward_rows(records), columns=REWARD_COLUMNS)
    frame.to_csv(output_path, index=False, encoding=CSV_ENCODING)
    logger.info("Main CSV written to: %s (%d reward entries)", output_path, len(records))


def write_analytics_csv(output_path: Path, report: RewardReport, logger: logging.Logger) -> None:
    frame = pd.DataFrame(analytics_rows(report.summary, report.tally), columns=["Metric", "Value"])
    frame.to_csv(output_path, index=False, encoding=CSV_ENCODING)
    logger.info("Analytics summary CSV written to: %s", output_path)


def build_json_document(report: RewardReport) -> Dict[str, Any]:
    summary, tally = report.summary, report.tally
    return {
        "metadata": {
            "generatedAt": report.generated_at.isoformat(),
            "votePubkey": report.vote_pubkey,
            "currentEpoch": report.current_epoch,
            "activationEpochApprox": report.activation_epoch,
            "totalEpochsProcessed": tally.total_processed,
            "failedEpochs": tally.failed_total,
            "lowEpochFailures": tally.early_failures,
            "unexpectedFailures": tally.unexpected_failures,
            "expectedEpochs": tally.expected_epochs,
            "emptyEpochs": tally.empty,
            "epochsWithRewards": summary.epochs_with_rewards,
            "percentageWithRewards": summary.percentage_with_rewards,
            "percentageExpectedWithRewards": summary.percentage_expected_with_rewards,
        },
        "summary": {
            "dateRangeApprox": summary.date_range,
            "daysCovered": summary.days_covered if summary.days_covered is not None else summary.days_covered_text,
            "totalXNTEarned": str(summary.total_xnt),
            "totalUSDValue": str(summary.total_usd),
            "averageDailyXNT": summary.average_per_day,
            "averagePerEpochXNT": summary.average_per_epoch,
            "failedEpochs": sorted(tally.failed_epochs),
        },
        "rewards": [record.to_dict() for record in report.records],
    }


def write_json_export(
    output_path: Path,
    analytics_path: Path,
    report: RewardReport,
    logger: logging.Logger,
) -> None:
    document = build_json_document(report)
    output_path.write_text(json.dumps(document, indent=2, default=str) + "\n", encoding="utf-8")
    logger.info("Full JSON export written to: %s", output_path)

    analytics = [{"Metric": metric, "Value": value} for metric, value in analytics_rows(report.summary, report.tally)]
    analytics_path.write_text(json.dumps(analytics, indent=2, default=str) + "\n", encoding="utf-8")
    logger.info("Analytics JSON export written to: %s", analytics_path)
