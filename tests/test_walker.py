"""
Tests for the epoch walker: attempt bounds, tally invariants, chronological
ordering and cumulative totals.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from tests.fakes import DAY, LAMPORTS_10_XNT, NOW, VOTE_PUBKEY, FakeChainClient, make_fetcher, reward
from x1_rewards.errors import RPCError
from x1_rewards.fetcher import EpochRewardFetcher
from x1_rewards.models import RewardRecord
from x1_rewards.walker import assign_cumulative_totals, candidate_epochs, walk_epochs


def assert_tally_consistent(tally):
    assert tally.failed_total == tally.early_failures + tally.unexpected_failures
    assert tally.total_processed == tally.rewarded + tally.empty + tally.failed_total
    assert tally.expected_epochs == tally.total_processed - tally.early_failures


class TestCandidateEpochs:

    def test_full_range_descends_to_zero(self):
        assert candidate_epochs(5) == [4, 3, 2, 1, 0]

    def test_limit_counts_attempts(self):
        assert candidate_epochs(100, 3) == [99, 98, 97]

    def test_limit_larger_than_history(self):
        assert candidate_epochs(3, 50) == [2, 1, 0]

    def test_zero_limit_and_epoch_zero(self):
        assert candidate_epochs(100, 0) == []
        assert candidate_epochs(0) == []


class TestWalkScenarios:

    @pytest.mark.asyncio
    async def test_four_consecutive_rewards(self):
        """Four epochs of 10 XNT at $1 give cumulative 10, 20, 30, 40."""
        client = FakeChainClient(
            current_epoch=100,
            rewards={epoch: reward(LAMPORTS_10_XNT, slot=epoch * 1000) for epoch in range(96, 100)},
            block_times={epoch * 1000: NOW - (100 - epoch) * DAY for epoch in range(96, 100)},
        )
        result = await walk_epochs(make_fetcher(client), VOTE_PUBKEY, 100, 4)

        assert client.reward_calls == [99, 98, 97, 96]
        assert [r.epoch for r in result.records] == [96, 97, 98, 99]
        assert [r.cumulative_xnt for r in result.records] == [Decimal(10), Decimal(20), Decimal(30), Decimal(40)]
        assert [str(r.cumulative_usd) for r in result.records] == ["10.0000", "20.0000", "30.0000", "40.0000"]
        assert result.tally.total_processed == 4
        assert result.tally.unexpected_failures == 0
        assert_tally_consistent(result.tally)

    @pytest.mark.asyncio
    async def test_rollback_epochs_fail_as_early(self):
        """Walking 20..0 where 0-15 all fail yields 16 early failures."""
        rewards = {epoch: RPCError(f"Block not available for epoch {epoch}") for epoch in range(0, 16)}
        rewards.update({epoch: reward(LAMPORTS_10_XNT) for epoch in range(16, 21)})
        client = FakeChainClient(current_epoch=21, rewards=rewards)

        result = await walk_epochs(make_fetcher(client), VOTE_PUBKEY, 21)

        tally = result.tally
        assert tally.total_processed == 21
        assert tally.early_failures == 16
        assert tally.unexpected_failures == 0
        assert tally.expected_epochs == tally.total_processed - 16
        assert len(result.records) == 5
        assert_tally_consistent(tally)

    @pytest.mark.asyncio
    async def test_failures_above_threshold_are_unexpected(self, rpc_down):
        client = FakeChainClient(current_epoch=30, rewards={29: rpc_down, 16: rpc_down, 15: rpc_down})
        result = await walk_epochs(make_fetcher(client), VOTE_PUBKEY, 30)

        assert result.tally.unexpected_failures == 2
        assert result.tally.early_failures == 1
        assert sorted(result.tally.failed_epochs) == [15, 16, 29]
        assert_tally_consistent(result.tally)

    @pytest.mark.asyncio
    async def test_empty_epochs_are_not_failures(self):
        client = FakeChainClient(current_epoch=10, rewards={9: reward(LAMPORTS_10_XNT), 8: reward(0)})
        result = await walk_epochs(make_fetcher(client), VOTE_PUBKEY, 10)

        assert result.tally.total_processed == 10
        assert result.tally.failed_total == 0
        assert result.tally.empty == 9
        assert result.tally.rewarded == 1
        assert_tally_consistent(result.tally)

    @pytest.mark.asyncio
    async def test_limit_bounds_attempts_not_successes(self, rpc_down):
        client = FakeChainClient(current_epoch=100, rewards={99: rpc_down, 98: None, 97: reward(LAMPORTS_10_XNT)})
        result = await walk_epochs(make_fetcher(client), VOTE_PUBKEY, 100, 3)

        assert client.reward_calls == [99, 98, 97]
        assert result.tally.total_processed == 3
        assert len(result.records) == 1

    @pytest.mark.asyncio
    async def test_no_rewards_is_valid_empty_result(self):
        client = FakeChainClient(current_epoch=5)
        result = await walk_epochs(make_fetcher(client), VOTE_PUBKEY, 5)

        assert result.records == []
        assert result.tally.total_processed == 5
        assert_tally_consistent(result.tally)


class FlakyPriceSource:
    """Has no price for epoch 28 and errors on epoch 26 (one day per epoch back from NOW)."""

    async def resolve_price(self, timestamp, pool_address):
        epochs_back = (NOW - timestamp) // DAY
        if epochs_back == 2:
            return None
        if epochs_back == 4:
            raise RuntimeError("price feed unavailable")
        return Decimal("1")


class TestPriceSourceFailures:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrency", [1, 3])
    async def test_bad_prices_fail_only_their_epochs(self, concurrency):
        client = FakeChainClient(current_epoch=30, rewards={epoch: reward(LAMPORTS_10_XNT) for epoch in range(25, 30)})
        fetcher = EpochRewardFetcher(client, FlakyPriceSource(), clock=lambda: NOW)

        result = await walk_epochs(fetcher, VOTE_PUBKEY, 30, 5, concurrency=concurrency)

        assert result.tally.total_processed == 5
        assert sorted(result.tally.failed_epochs) == [26, 28]
        assert result.tally.unexpected_failures == 2
        assert [r.epoch for r in result.records] == [25, 27, 29]
        assert result.records[-1].cumulative_xnt == Decimal(30)
        assert_tally_consistent(result.tally)


class TestOrdering:

    @pytest.mark.asyncio
    async def test_records_sorted_by_time_not_epoch(self):
        # Block times deliberately out of epoch order.
        client = FakeChainClient(
            current_epoch=50,
            rewards={49: reward(LAMPORTS_10_XNT, slot=1), 48: reward(2 * LAMPORTS_10_XNT, slot=2)},
            block_times={1: NOW - 5 * DAY, 2: NOW - DAY},
        )
        result = await walk_epochs(make_fetcher(client), VOTE_PUBKEY, 50, 2)

        assert [r.epoch for r in result.records] == [49, 48]
        assert [str(r.cumulative_xnt) for r in result.records] == ["10.000000", "30.000000"]

    @pytest.mark.asyncio
    async def test_equal_timestamps_break_ties_by_epoch(self):
        client = FakeChainClient(
            current_epoch=50,
            rewards={49: reward(LAMPORTS_10_XNT, slot=1), 48: reward(LAMPORTS_10_XNT, slot=2)},
            block_times={1: NOW, 2: NOW},
        )
        result = await walk_epochs(make_fetcher(client), VOTE_PUBKEY, 50, 2)
        assert [r.epoch for r in result.records] == [48, 49]

    @pytest.mark.asyncio
    async def test_cumulative_is_prefix_sum(self):
        amounts = {epoch: 1_000_000_000 + epoch * 123_457 for epoch in range(20, 40)}
        client = FakeChainClient(current_epoch=40, rewards={e: reward(a) for e, a in amounts.items()})
        result = await walk_epochs(make_fetcher(client, price="1.75"), VOTE_PUBKEY, 40, 20)

        running_xnt = Decimal(0)
        running_usd = Decimal(0)
        previous = Decimal(0)
        for record in result.records:
            running_xnt += record.xnt_amount
            running_usd += record.value_usd
            assert record.cumulative_xnt == running_xnt
            assert record.cumulative_usd == running_usd
            assert record.cumulative_xnt >= previous
            previous = record.cumulative_xnt

    def test_cumulative_totals_assigned_once(self):
        with pytest.raises(ValueError):
            assign_cumulative_totals([_record_with_cumulative()])


def _record_with_cumulative():
    return RewardRecord(
        epoch=1,
        reward_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        xnt_amount=Decimal("1.000000"),
        price_usd=Decimal("1.000000"),
        value_usd=Decimal("1.0000"),
        cumulative_xnt=Decimal("1.000000"),
        cumulative_usd=Decimal("1.0000"),
    )


class TestConcurrencyAndProgress:

    @pytest.mark.asyncio
    async def test_concurrent_walk_matches_sequential(self, rpc_down):
        rewards = {epoch: reward(LAMPORTS_10_XNT + epoch, slot=epoch) for epoch in range(0, 60, 3)}
        rewards.update({epoch: rpc_down for epoch in (1, 2, 40, 41)})
        block_times = {epoch: NOW - (60 - epoch) * DAY for epoch in range(0, 60, 3)}

        sequential = await walk_epochs(
            make_fetcher(FakeChainClient(current_epoch=60, rewards=rewards, block_times=block_times)),
            VOTE_PUBKEY,
            60,
            45,
        )
        concurrent_client = FakeChainClient(
            current_epoch=60, rewards=rewards, block_times=block_times, yield_between_calls=True
        )
        concurrent = await walk_epochs(make_fetcher(concurrent_client), VOTE_PUBKEY, 60, 45, concurrency=8)

        assert concurrent.records == sequential.records
        assert concurrent.tally.total_processed == sequential.tally.total_processed == 45
        assert concurrent.tally.early_failures == sequential.tally.early_failures == 0
        assert concurrent.tally.unexpected_failures == sequential.tally.unexpected_failures == 2
        assert sorted(concurrent_client.reward_calls) == list(range(15, 60))

    @pytest.mark.asyncio
    async def test_progress_reported_at_interval_and_end(self):
        calls = []
        client = FakeChainClient(current_epoch=13)
        await walk_epochs(
            make_fetcher(client),
            VOTE_PUBKEY,
            13,
            progress=lambda attempted, total: calls.append((attempted, total)),
            progress_interval=5,
        )
        assert calls == [(5, 13), (10, 13), (13, 13)]
