"""
Tests for CSV/JSON export and the console summary.
"""

import json
import logging
from datetime import datetime, timezone

import pandas as pd
import pytest

from tests.fakes import VOTE_PUBKEY
from tests.test_aggregator import make_record, make_tally
from x1_rewards.aggregator import summarize
from x1_rewards.models import FailureTally
from x1_rewards.pipeline import RewardReport
from x1_rewards.report import (
    REWARD_COLUMNS,
    analytics_rows,
    build_json_document,
    render_console_summary,
    write_analytics_csv,
    write_json_export,
    write_rewards_csv,
)
from x1_rewards.walker import assign_cumulative_totals

logger = logging.getLogger("test_report")


@pytest.fixture
def report():
    records = assign_cumulative_totals([
        make_record(96, datetime(2024, 5, 1, 6, tzinfo=timezone.utc), "10"),
        make_record(97, datetime(2024, 5, 2, 6, tzinfo=timezone.utc), "10"),
        make_record(98, datetime(2024, 5, 3, 6, tzinfo=timezone.utc), "10"),
        make_record(99, datetime(2024, 5, 4, 6, tzinfo=timezone.utc), "10"),
    ])
    tally = make_tally(processed=4, rewarded=4)
    return RewardReport(
        vote_pubkey=VOTE_PUBKEY,
        current_epoch=100,
        activation_epoch=42,
        records=records,
        tally=tally,
        summary=summarize(records, tally),
    )


@pytest.fixture
def empty_report():
    tally = make_tally(processed=3)
    return RewardReport(
        vote_pubkey=VOTE_PUBKEY,
        current_epoch=3,
        activation_epoch=0,
        records=[],
        tally=tally,
        summary=summarize([], tally),
    )


def test_rewards_csv_has_bom_and_cumulative_columns(tmp_path, report):
    path = tmp_path / "rewards.csv"
    write_rewards_csv(path, report.records, logger)

    assert path.read_bytes().startswith(b"\xef\xbb\xbf")
    frame = pd.read_csv(path, encoding="utf-8-sig", dtype=str)
    assert list(frame.columns) == REWARD_COLUMNS
    assert list(frame["Cumulative XNT"]) == ["10.000000", "20.000000", "30.000000", "40.000000"]
    assert list(frame["Cumulative USD"]) == ["10.0000", "20.0000", "30.0000", "40.0000"]
    assert list(frame["Reward Date (UTC, approx)"])[0] == "2024-05-01 06:00:00"


def test_analytics_csv_rows(tmp_path, report):
    path = tmp_path / "analytics.csv"
    write_analytics_csv(path, report, logger)

    frame = pd.read_csv(path, encoding="utf-8-sig", dtype=str)
    metrics = dict(zip(frame["Metric"], frame["Value"]))
    assert metrics["Days Covered"] == "4"
    assert metrics["Total XNT Earned"] == "40.000000"
    assert metrics["Average $XNT Earned Per Day"] == "10.000000"
    assert metrics["Percentage of Epochs with Rewards"] == "100.00"
    assert metrics["Unexpected Failed Epoch Queries"] == "0"


def test_analytics_rows_for_empty_run(empty_report):
    metrics = dict(analytics_rows(empty_report.summary, empty_report.tally))
    assert metrics["Days Covered"] == "N/A"
    assert metrics["Average $XNT Per Epoch"] == "N/A"
    assert metrics["Percentage of Expected Epochs with Rewards (accounts for early chain rollback)"] == "0.00"


def test_json_export(tmp_path, report):
    full_path = tmp_path / "xnt_rewards.json"
    analytics_path = tmp_path / "xnt_rewards_analytics.json"
    write_json_export(full_path, analytics_path, report, logger)

    document = json.loads(full_path.read_text(encoding="utf-8"))
    assert document["metadata"]["currentEpoch"] == 100
    assert document["metadata"]["activationEpochApprox"] == 42
    assert document["metadata"]["totalEpochsProcessed"] == 4
    assert document["summary"]["daysCovered"] == 4
    assert len(document["rewards"]) == 4
    assert document["rewards"][-1]["cumulativeXNT"] == "40.000000"

    analytics = json.loads(analytics_path.read_text(encoding="utf-8"))
    assert len(analytics) >= 10
    assert any("Percentage of Expected Epochs with Rewards" in item["Metric"] for item in analytics)


def test_json_document_for_empty_run(empty_report):
    document = build_json_document(empty_report)
    assert document["rewards"] == []
    assert document["summary"]["daysCovered"] == "N/A"
    assert document["summary"]["dateRangeApprox"] == "N/A to N/A"


def test_console_summary(caplog, report):
    with caplog.at_level(logging.INFO, logger="test_report"):
        render_console_summary(report, logger)
    assert "Total XNT Earned" in caplog.text
    assert "40.000000" in caplog.text


def test_console_summary_for_empty_run(caplog):
    tally = FailureTally()
    empty = RewardReport(VOTE_PUBKEY, 0, 0, [], tally, summarize([], tally))
    with caplog.at_level(logging.INFO, logger="test_report"):
        render_console_summary(empty, logger)
    assert "No rewards found" in caplog.text
