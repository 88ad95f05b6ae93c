"""
Lock and signal aggregation
Groups lockdrop events by participant key and accumulates raw and effective wei.
"""

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Type

from ..calculator import SIGNALING, effective_value, resolve_term
from ..config import DEFAULT_MAX_CONCURRENCY, FAILURE_POLICIES, FAILURE_POLICY_STRICT
from ..data_collector import BalanceOracle
from ..errors import InvalidTermError, NetworkUnavailable
from ..models import (
    LockTerm,
    ParticipantLockRecord,
    ParticipantSignalRecord,
    RawLockEvent,
    RawSignalEvent,
)

logger = logging.getLogger(__name__)


class ParticipantLedger(Mapping):
    """
    Insertion ordered map of participant key -> record.

    ``upsert`` is the only way records change: it creates the record on
    first sight of a key and merges into it afterwards.
    """

    def __init__(self, record_type: Type[ParticipantLockRecord] = ParticipantLockRecord):
        self.record_type = record_type
        self._records: "OrderedDict[str, ParticipantLockRecord]" = OrderedDict()

    def upsert(self, key: str, raw_amount: int, effective_amount: int, address: str) -> ParticipantLockRecord:
        """Add one contribution under ``key`` and return the merged record"""
        current = self._records.get(key)
        if current is None:
            merged = self.record_type(raw_amount=raw_amount, effective_amount=effective_amount,
                                      addresses=(address,))
        else:
            merged = current.merge(raw_amount, effective_amount, address)
        self._records[key] = merged
        return merged

    def __getitem__(self, key: str) -> ParticipantLockRecord:
        return self._records[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({dict(self._records)!r})"


@dataclass
class LockAggregate:
    """Result of aggregating Locked events"""
    locks: ParticipantLedger
    validating_locks: ParticipantLedger
    total_raw: int
    total_effective: int
    count: int
    raw_by_term: Dict[LockTerm, int] = field(default_factory=dict)


@dataclass
class SignalAggregate:
    """Result of aggregating Signaled events"""
    signals: ParticipantLedger
    total_raw: int
    total_effective: int
    # Number of events before source address de-duplication
    count: int
    excluded: Tuple[str, ...] = ()


def aggregate_locks(events: Iterable[RawLockEvent], campaign_start: Optional[int] = None) -> LockAggregate:
    """
    Accumulate raw and effective locked wei per participant key

    Args:
        events: Locked events in arrival order
        campaign_start: LOCK_START_TIME of the lockdrop, drives the bonus curve

    Returns:
        LockAggregate with every lock in ``locks`` and validator intents
        additionally in ``validating_locks``
    """
    locks = ParticipantLedger(ParticipantLockRecord)
    validating_locks = ParticipantLedger(ParticipantLockRecord)
    raw_by_term = {term: 0 for term in LockTerm}
    total_raw = 0
    total_effective = 0
    count = 0

    for event in events:
        count += 1
        value = effective_value(event.amount, event.term, event.lock_timestamp, campaign_start)
        total_raw += event.amount
        total_effective += value

        try:
            raw_by_term[resolve_term(event.term)] += event.amount
        except (InvalidTermError, KeyError):
            pass  # already logged by effective_value

        if event.is_validator_intent:
            validating_locks.upsert(event.participant_key, event.amount, value, event.lock_contract_address)
        locks.upsert(event.participant_key, event.amount, value, event.lock_contract_address)

    logger.info(f"Aggregated {count} locks across {len(locks)} participants")
    return LockAggregate(
        locks=locks,
        validating_locks=validating_locks,
        total_raw=total_raw,
        total_effective=total_effective,
        count=count,
        raw_by_term=raw_by_term,
    )


def dedupe_signals(events: Iterable[RawSignalEvent]) -> List[RawSignalEvent]:
    """Keep only the first signal seen from each source contract address"""
    seen = set()
    signalers = []
    for event in events:
        source = event.source_contract_address.lower()
        if source in seen:
            continue
        seen.add(source)
        signalers.append(event)
    return signalers


async def _fetch_balances(signalers: List[RawSignalEvent], oracle: BalanceOracle,
                          at_block: Optional[int], max_concurrency: int) -> List[object]:
    semaphore = asyncio.Semaphore(max_concurrency)

    async def fetch(event: RawSignalEvent) -> int:
        async with semaphore:
            return await oracle.get_balance(event.source_contract_address, at_block)

    # One result slot per signaler; exceptions are returned in place
    return await asyncio.gather(*(fetch(s) for s in signalers), return_exceptions=True)


async def aggregate_signals(events: Iterable[RawSignalEvent], oracle: BalanceOracle,
                            at_block: Optional[int] = None,
                            failure_policy: str = FAILURE_POLICY_STRICT,
                            max_concurrency: int = DEFAULT_MAX_CONCURRENCY) -> SignalAggregate:
    """
    Value signals at their source address balance and accumulate per participant key

    Args:
        events: Signaled events in arrival order
        oracle: Balance oracle used for every retained signaler
        at_block: Block to read balances at, latest when None
        failure_policy: "strict" fails on any failed balance fetch,
            "exclude" drops failed signalers with a warning
        max_concurrency: Upper bound on balance fetches in flight

    Returns:
        SignalAggregate; ``count`` is the event count before de-duplication
    """
    if failure_policy not in FAILURE_POLICIES:
        raise ValueError(f"Unsupported signal failure policy: {failure_policy}")

    events = list(events)
    signalers = dedupe_signals(events)
    logger.info(f"Fetching balances for {len(signalers)} signalers ({len(events)} signal events)")

    balances = await _fetch_balances(signalers, oracle, at_block, max_concurrency)

    signals = ParticipantLedger(ParticipantSignalRecord)
    excluded = []
    total_raw = 0
    total_effective = 0

    for event, balance in zip(signalers, balances):
        if isinstance(balance, BaseException):
            if failure_policy == FAILURE_POLICY_STRICT:
                raise NetworkUnavailable(
                    f"Balance fetch failed for signaler {event.source_contract_address}: {balance}"
                ) from balance
            logger.warning(f"Excluding signaler {event.source_contract_address}: {balance}")
            excluded.append(event.source_contract_address)
            continue

        value = effective_value(balance, SIGNALING)
        total_raw += balance
        total_effective += value
        signals.upsert(event.participant_key, balance, value, event.source_contract_address)

    if excluded:
        logger.warning(f"Excluded {len(excluded)} of {len(signalers)} signalers from signal totals")

    return SignalAggregate(
        signals=signals,
        total_raw=total_raw,
        total_effective=total_effective,
        count=len(events),
        excluded=tuple(excluded),
    )
