"""Cumulative participation series quantized into block number buckets"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Tuple, Union

from ..calculator import to_ether
from ..config import DEFAULT_BUCKET_SIZE
from ..errors import EmptyDatasetError
from ..models import RawLockEvent, RawSignalEvent

logger = logging.getLogger(__name__)

RawEvent = Union[RawLockEvent, RawSignalEvent]


@dataclass(frozen=True)
class BucketSeries:
    """Cumulative series keyed by bucket boundary block"""
    participants_by_block: Tuple[Tuple[int, int], ...]
    eth_locked_by_block: Tuple[Tuple[int, Decimal], ...]
    block_to_approx_timestamp: Mapping[int, int]


def bucket_boundary(block_number: int, bucket_size: int = DEFAULT_BUCKET_SIZE) -> int:
    """Round a block number up to the nearest bucket boundary"""
    return -(-block_number // bucket_size) * bucket_size


def _cumulative_steps(events: List[RawEvent], bucket_size: int, weight) -> List[Tuple[int, int]]:
    """(boundary, running total) points, opened by a zero point one bucket below the first"""
    if not events:
        return []

    first_boundary = bucket_boundary(events[0].block_number, bucket_size)
    points = [(first_boundary - bucket_size, 0)]
    running = 0
    for event in events:
        running += weight(event)
        boundary = bucket_boundary(event.block_number, bucket_size)
        if points[-1][0] == boundary:
            points[-1] = (boundary, running)
        else:
            points.append((boundary, running))
    return points


def bucketize(events: Iterable[RawEvent], bucket_size: int = DEFAULT_BUCKET_SIZE) -> BucketSeries:
    """
    Build cumulative participant and locked ETH series

    Args:
        events: Lock and signal events, in any order
        bucket_size: Width of a bucket in blocks

    Raw block numbers and bucket boundaries share one key space in
    ``block_to_approx_timestamp``. A boundary takes the time of the latest
    event in its bucket, and an opening point that is already a key keeps
    whatever time was written there first, so every entry is approximate.

    Returns:
        BucketSeries with one point per bucket boundary that saw an event

    Raises:
        EmptyDatasetError: if there are no events at all
    """
    if bucket_size <= 0:
        raise ValueError("bucket_size must be positive")

    # sorted() is stable, so arrival order is kept within a block
    ordered = sorted(events, key=lambda e: e.block_number)
    if not ordered:
        raise EmptyDatasetError("No lock or signal events to bucketize")

    participants = _cumulative_steps(ordered, bucket_size, lambda e: 1)

    lock_events = [e for e in ordered if isinstance(e, RawLockEvent)]
    locked_wei = _cumulative_steps(lock_events, bucket_size, lambda e: e.amount)
    eth_locked = tuple((block, to_ether(wei)) for block, wei in locked_wei)

    approx_timestamps: Dict[int, int] = {}
    for event in ordered:
        approx_timestamps[event.block_number] = event.timestamp
        # Latest event in the bucket wins
        approx_timestamps[bucket_boundary(event.block_number, bucket_size)] = event.timestamp
    approx_timestamps.setdefault(participants[0][0], ordered[0].timestamp)
    if lock_events:
        approx_timestamps.setdefault(locked_wei[0][0], lock_events[0].timestamp)

    logger.info(f"Bucketized {len(ordered)} events into {len(participants) - 1} buckets of {bucket_size} blocks")
    return BucketSeries(
        participants_by_block=tuple(participants),
        eth_locked_by_block=eth_locked,
        block_to_approx_timestamp=approx_timestamps,
    )
