"""Per-address lock and signal lookup"""
import asyncio
import logging
import re
from typing import List, Optional

from ..calculator import SIGNALING, effective_value, to_ether
from ..data_collector import (
    LOCKED,
    SIGNALED,
    BalanceOracle,
    EventCache,
    EventSource,
    fetch_events,
    get_lock_storage,
)
from ..errors import MalformedAddressError
from ..models import AddressLookupResult, RawLockEvent, RawSignalEvent

logger = logging.getLogger(__name__)

HEX_RE = re.compile(r'^(0x)?[0-9A-Fa-f]+$')


def is_hex(value: str) -> bool:
    return bool(HEX_RE.match(value or ''))


def normalize_address(address: str) -> str:
    """
    Validate an Ethereum address typed in by a user

    Returns:
        The address with a 0x prefix

    Raises:
        MalformedAddressError: if it is not hex or has the wrong length
    """
    address = (address or '').strip()
    if not is_hex(address):
        raise MalformedAddressError("You must input a valid hex encoded Ethereum address")

    prefixed = address.startswith('0x')
    if (prefixed and len(address) != 42) or (not prefixed and len(address) != 40):
        raise MalformedAddressError("You must input a valid lengthed Ethereum address")

    return address if prefixed else f"0x{address}"


async def _lock_result(event: RawLockEvent, oracle: BalanceOracle,
                       campaign_start: int, now: int) -> AddressLookupResult:
    storage = await get_lock_storage(oracle, event.lock_contract_address)
    value = effective_value(event.amount, event.term, event.lock_timestamp, campaign_start)
    return AddressLookupResult(
        kind='lock',
        event=event,
        effective_eth=to_ether(value),
        minutes_until_unlock=(storage.unlock_time - now) // 60,
    )


async def _signal_result(event: RawSignalEvent, oracle: BalanceOracle,
                         at_block: Optional[int]) -> AddressLookupResult:
    balance = await oracle.get_balance(event.source_contract_address, at_block)
    return AddressLookupResult(
        kind='signal',
        event=event,
        effective_eth=to_ether(effective_value(balance, SIGNALING)),
    )


async def lookup_address(address: str, source: EventSource, oracle: BalanceOracle,
                         cache: Optional[EventCache] = None,
                         signal_balance_block: Optional[int] = None) -> List[AddressLookupResult]:
    """
    All locks owned by, and signals sent from, one address

    The address is validated before any network call is made.

    Returns:
        Lookup results, locks first, each group in arrival order
    """
    address = normalize_address(address)

    locks, signals, campaign_start, now = await asyncio.gather(
        fetch_events(source, LOCKED, cache, address_filter=address),
        fetch_events(source, SIGNALED, cache, address_filter=address),
        source.get_lock_start_time(),
        oracle.get_current_timestamp(),
    )
    logger.info(f"Found {len(locks)} locks and {len(signals)} signals for {address}")

    results = await asyncio.gather(
        *(_lock_result(e, oracle, campaign_start, now) for e in locks),
        *(_signal_result(e, oracle, signal_balance_block) for e in signals),
    )
    return list(results)
