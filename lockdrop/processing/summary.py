#!/usr/bin/env python3
"""
Participation Summary
Combines lock, signal and time series results into one dashboard value
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from ..calculator import to_ether
from ..config import DEFAULT_BUCKET_SIZE, DEFAULT_MAX_CONCURRENCY, FAILURE_POLICY_STRICT
from ..data_collector import LOCKED, SIGNALED, BalanceOracle, EventCache, EventSource, fetch_events
from ..models import LockTerm, ParticipantTotals
from .aggregator import LockAggregate, ParticipantLedger, SignalAggregate, aggregate_locks, aggregate_signals
from .timeseries import BucketSeries, bucketize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParticipationSummary:
    """
    Lockdrop participation statistics, amounts in ether.

    A value: built fresh for each query and never updated in place.
    """
    total_eth_locked: Decimal
    total_effective_eth_locked: Decimal
    total_eth_signaled: Decimal
    total_effective_eth_signaled: Decimal
    total_eth: Decimal
    total_effective_eth: Decimal
    num_locks: int
    num_signals: int
    avg_lock: Optional[Decimal]
    avg_signal: Optional[Decimal]
    locks: Mapping[str, ParticipantTotals]
    validating_locks: Mapping[str, ParticipantTotals]
    signals: Mapping[str, ParticipantTotals]
    locked_by_term: Mapping[LockTerm, Decimal]
    participants_by_block: Tuple[Tuple[int, int], ...]
    eth_locked_by_block: Tuple[Tuple[int, Decimal], ...]
    block_to_approx_timestamp: Mapping[int, int]


def _average(total_wei: int, count: int) -> Optional[Decimal]:
    if count == 0:
        return None
    return to_ether(total_wei // count)


def _to_totals(ledger: ParticipantLedger) -> Mapping[str, ParticipantTotals]:
    return MappingProxyType({
        key: ParticipantTotals(
            raw_eth=to_ether(record.raw_amount),
            effective_eth=to_ether(record.effective_amount),
            addresses=record.addresses,
        )
        for key, record in ledger.items()
    })


def build_summary(lock_result: LockAggregate, signal_result: SignalAggregate,
                  bucket_result: BucketSeries) -> ParticipationSummary:
    """
    Combine aggregation results and convert wei to ether

    Args:
        lock_result: Output of aggregate_locks
        signal_result: Output of aggregate_signals
        bucket_result: Output of bucketize

    Returns:
        ParticipationSummary; averages are None when there is nothing to average
    """
    total_raw = lock_result.total_raw + signal_result.total_raw
    total_effective = lock_result.total_effective + signal_result.total_effective

    return ParticipationSummary(
        total_eth_locked=to_ether(lock_result.total_raw),
        total_effective_eth_locked=to_ether(lock_result.total_effective),
        total_eth_signaled=to_ether(signal_result.total_raw),
        total_effective_eth_signaled=to_ether(signal_result.total_effective),
        total_eth=to_ether(total_raw),
        total_effective_eth=to_ether(total_effective),
        num_locks=lock_result.count,
        num_signals=signal_result.count,
        avg_lock=_average(lock_result.total_raw, lock_result.count),
        avg_signal=_average(signal_result.total_raw, signal_result.count),
        locks=_to_totals(lock_result.locks),
        validating_locks=_to_totals(lock_result.validating_locks),
        signals=_to_totals(signal_result.signals),
        locked_by_term=MappingProxyType({
            term: to_ether(wei) for term, wei in lock_result.raw_by_term.items()
        }),
        participants_by_block=bucket_result.participants_by_block,
        eth_locked_by_block=bucket_result.eth_locked_by_block,
        block_to_approx_timestamp=MappingProxyType(dict(bucket_result.block_to_approx_timestamp)),
    )


async def get_participation_summary(source: EventSource, oracle: BalanceOracle,
                                    cache: Optional[EventCache] = None,
                                    bucket_size: int = DEFAULT_BUCKET_SIZE,
                                    signal_balance_block: Optional[int] = None,
                                    failure_policy: str = FAILURE_POLICY_STRICT,
                                    max_concurrency: int = DEFAULT_MAX_CONCURRENCY) -> ParticipationSummary:
    """
    Fetch every lockdrop event and build the participation summary

    Raises:
        NetworkUnavailable: if the event source or oracle cannot be reached
        EmptyDatasetError: if the lockdrop has no events yet
    """
    lock_events, signal_events, campaign_start = await asyncio.gather(
        fetch_events(source, LOCKED, cache),
        fetch_events(source, SIGNALED, cache),
        source.get_lock_start_time(),
    )
    logger.info(f"Building summary from {len(lock_events)} locks and {len(signal_events)} signals")

    # Fail fast on an empty lockdrop before any balance is fetched
    bucket_result = bucketize(lock_events + signal_events, bucket_size)
    lock_result = aggregate_locks(lock_events, campaign_start)
    signal_result = await aggregate_signals(
        signal_events,
        oracle,
        at_block=signal_balance_block,
        failure_policy=failure_policy,
        max_concurrency=max_concurrency,
    )
    return build_summary(lock_result, signal_result, bucket_result)
