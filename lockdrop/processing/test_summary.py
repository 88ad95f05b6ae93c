#!/usr/bin/env python3
"""
Tests for the participation summary, pipeline and report views
"""

import asyncio
import json
from dataclasses import FrozenInstanceError
from decimal import Decimal

import pandas as pd
import pytest

from lockdrop.calculator import JUNE_1ST_UTC
from lockdrop.data_collector import LOCKED, SIGNALED, EventCache
from lockdrop.errors import EmptyDatasetError, NetworkUnavailable
from lockdrop.models import LockTerm
from lockdrop.processing.aggregator import aggregate_locks, aggregate_signals
from lockdrop.processing.report import estimate_allocation, summary_frames, summary_to_dict
from lockdrop.processing.summary import build_summary, get_participation_summary
from lockdrop.processing.timeseries import bucketize

ETH = 10 ** 18
OTHER_CAMPAIGN_START = 1555000000


def build(locks, signals, chain):
    lock_result = aggregate_locks(locks, chain.lock_start)
    signal_result = asyncio.run(aggregate_signals(signals, chain))
    return build_summary(lock_result, signal_result, bucketize(list(locks) + list(signals)))


class TestBuildSummary:
    """Test class for build_summary"""

    def test_lock_scenario(self, fake_chain, make_lock):
        """Three neutral three month locks of 10, 20 and 30 ETH"""
        chain = fake_chain(lock_start=OTHER_CAMPAIGN_START)
        locks = [make_lock(10 * ETH, key='0x01'), make_lock(20 * ETH, key='0x02'), make_lock(30 * ETH, key='0x03')]

        summary = build(locks, [], chain)

        assert summary.total_eth_locked == Decimal(60)
        assert summary.total_effective_eth_locked == Decimal(60)
        assert summary.num_locks == 3
        assert summary.avg_lock == Decimal(20)
        assert summary.avg_signal is None
        assert summary.num_signals == 0

    def test_combined_totals(self, fake_chain, make_lock, make_signal):
        chain = fake_chain(lock_start=OTHER_CAMPAIGN_START, balances={'0xA': 50 * ETH, '0xB': 30 * ETH})
        locks = [make_lock(10 * ETH, term=LockTerm.SIX_MONTH, validator=True)]
        signals = [make_signal('0xA', key='0x01'), make_signal('0xA', key='0x01'), make_signal('0xB', key='0x02')]

        summary = build(locks, signals, chain)

        assert summary.total_eth_signaled == Decimal(80)
        assert summary.total_effective_eth_signaled == Decimal(16)
        assert summary.total_eth == Decimal(90)
        assert summary.total_effective_eth == Decimal(13) + Decimal(16)
        # averaged over every signal event, duplicates included
        assert summary.num_signals == 3
        assert summary.avg_signal == Decimal(80 * ETH // 3) / Decimal(ETH)
        assert summary.validating_locks['0x01'].raw_eth == Decimal(10)
        assert summary.signals['0x01'].effective_eth == Decimal(10)
        assert summary.locked_by_term[LockTerm.SIX_MONTH] == Decimal(10)
        assert summary.locked_by_term[LockTerm.TWELVE_MONTH] == 0

    def test_amounts_are_decimal_ether(self, fake_chain, make_lock):
        chain = fake_chain(lock_start=OTHER_CAMPAIGN_START)
        summary = build([make_lock(1)], [], chain)
        assert summary.total_eth_locked == Decimal('1E-18')
        assert isinstance(summary.locks['0x01'].raw_eth, Decimal)

    def test_summary_is_immutable(self, fake_chain, make_lock):
        summary = build([make_lock(ETH)], [], fake_chain())
        with pytest.raises(FrozenInstanceError):
            summary.num_locks = 5
        with pytest.raises(TypeError):
            summary.locks['0xff'] = None

    def test_series_are_carried_over(self, fake_chain, make_lock, make_signal):
        chain = fake_chain(balances={'0xA': ETH})
        summary = build([make_lock(ETH, block=10)], [make_signal('0xA', block=700)], chain)
        assert summary.participants_by_block == ((0, 0), (600, 1), (1200, 2))
        assert summary.eth_locked_by_block == ((0, 0), (600, Decimal(1)))


class TestGetParticipationSummary:
    """Test class for the summary pipeline"""

    def test_end_to_end(self, fake_chain, make_lock, make_signal):
        chain = fake_chain(
            locks=[make_lock(ETH, term=LockTerm.SIX_MONTH, timestamp=JUNE_1ST_UTC, block=8000000)],
            signals=[make_signal('0xA', block=8000100)],
            balances={'0xA': 5 * ETH},
        )

        summary = asyncio.run(get_participation_summary(chain, chain, signal_balance_block=8100000))

        assert summary.total_effective_eth_locked == Decimal('1.95')
        assert summary.total_effective_eth_signaled == Decimal(1)
        assert summary.total_effective_eth == Decimal('2.95')
        assert chain.balance_calls == [('0xA', 8100000)]

    def test_uses_cache(self, fake_chain, make_lock):
        chain = fake_chain(locks=[make_lock(ETH)])
        cache = EventCache()

        asyncio.run(get_participation_summary(chain, chain, cache=cache))
        asyncio.run(get_participation_summary(chain, chain, cache=cache))

        assert sorted(chain.get_events_calls) == [(LOCKED, None), (SIGNALED, None)]

    def test_empty_lockdrop(self, fake_chain):
        chain = fake_chain()
        with pytest.raises(EmptyDatasetError):
            asyncio.run(get_participation_summary(chain, chain))
        assert chain.balance_calls == []

    def test_failed_balance_fetch_fails_summary(self, fake_chain, make_signal):
        chain = fake_chain(signals=[make_signal('0xA')], failing={'0xA'})
        with pytest.raises(NetworkUnavailable):
            asyncio.run(get_participation_summary(chain, chain))

    def test_exclude_policy(self, fake_chain, make_signal):
        chain = fake_chain(signals=[make_signal('0xA'), make_signal('0xB')],
                           balances={'0xB': ETH}, failing={'0xA'})
        summary = asyncio.run(get_participation_summary(chain, chain, failure_policy='exclude'))
        assert summary.total_eth_signaled == Decimal(1)
        assert summary.num_signals == 2


class TestReport:
    """Test class for report views"""

    def test_estimate_allocation(self, fake_chain, make_lock, make_signal):
        chain = fake_chain(lock_start=OTHER_CAMPAIGN_START, balances={'0xA': 15 * ETH})
        summary = build([make_lock(3 * ETH)], [make_signal('0xA')], chain)

        allocation = estimate_allocation(summary)

        # 3 effective locked, 3 effective signaled
        assert allocation['lockers_edg'] == Decimal(2_250_000_000)
        assert allocation['signalers_edg'] == Decimal(2_250_000_000)
        assert allocation['lockers_pct'] == Decimal(45)
        assert allocation['other_pct'] == Decimal(10)

    def test_estimate_allocation_without_value(self, fake_chain, make_signal):
        chain = fake_chain(balances={})
        summary = build([], [make_signal('0xA')], chain)
        allocation = estimate_allocation(summary)
        assert allocation['lockers_edg'] is None
        assert allocation['other_edg'] == Decimal(500_000_000)

    def test_summary_frames(self, fake_chain, make_lock):
        chain = fake_chain()
        summary = build([make_lock(ETH, block=10, timestamp=JUNE_1ST_UTC)], [], chain)

        frames = summary_frames(summary)

        participants = frames['participants_by_block']
        assert list(participants.index) == [0, 600]
        assert list(participants['participants']) == [0, 1]
        assert participants['approx_time'].iloc[-1] == pd.Timestamp(JUNE_1ST_UTC, unit='s', tz='UTC')
        assert frames['eth_locked_by_block']['eth_locked'].iloc[-1] == 1.0

    def test_summary_to_dict_is_json_ready(self, fake_chain, make_lock):
        summary = build([make_lock(ETH, key='0xaa')], [], fake_chain())

        data = summary_to_dict(summary)
        text = json.dumps(data)

        assert data['total_eth_locked'] == '1'
        assert data['locks']['0xaa']['raw_eth'] == '1'
        assert data['locked_by_term']['THREE_MONTH'] == '1'
        assert 'allocation' in data
        assert json.loads(text)['num_locks'] == 1


if __name__ == "__main__":
    pytest.main([__file__])
