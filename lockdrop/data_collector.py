"""
Lockdrop data collection
Reads lockdrop events, balances and lock storage from an Ethereum node.
"""

import asyncio
import json
import logging
import os
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, Union

from web3 import AsyncWeb3, Web3

from .errors import NetworkUnavailable
from .models import LockStorage, LockTerm, RawLockEvent, RawSignalEvent

logger = logging.getLogger(__name__)

LOCKDROP_ABI_PATH = os.path.join(os.path.dirname(__file__), 'abi', 'Lockdrop.json')

LOCKED = 'Locked'
SIGNALED = 'Signaled'

# Indexed argument used for single address lookups
ADDRESS_FILTER_ARGS = {
    LOCKED: 'owner',
    SIGNALED: 'contractAddr',
}

LOCK_OWNER_SLOT = 0
LOCK_UNLOCK_TIME_SLOT = 1

RawEvent = Union[RawLockEvent, RawSignalEvent]


class EventSource(Protocol):
    """Read-only source of historical lockdrop events"""
    network: str
    contract_address: str

    async def get_events(self, kind: str, address_filter: Optional[str] = None) -> List[RawEvent]:
        ...

    async def get_lock_start_time(self) -> int:
        ...


class BalanceOracle(Protocol):
    """Chain state reads needed to value signals and locks"""

    async def get_balance(self, address: str, at_block: Optional[int] = None) -> int:
        ...

    async def get_current_timestamp(self) -> int:
        ...

    async def get_storage_slot(self, address: str, slot: int) -> int:
        ...


def get_contract_abi(file_path: str) -> list:
    """Loads a contract ABI from its JSON artifact."""
    with open(file_path, 'r') as f:
        data = json.load(f)
    return data['abi']


class EventCache:
    """
    Fetched event lists, keyed by deployment and query.

    Entries are only written once a fetch has completed, so a cancelled
    fetch never leaves a partial list behind. Switching network or
    contract requires ``invalidate`` (or simply produces new keys).
    """

    def __init__(self):
        self._entries: Dict[Tuple, Tuple[RawEvent, ...]] = {}

    @staticmethod
    def key(network: str, contract_address: str, kind: str,
            address_filter: Optional[str] = None) -> Tuple:
        return (
            network,
            contract_address.lower(),
            kind,
            address_filter.lower() if address_filter else None,
        )

    def get(self, key: Tuple) -> Optional[Tuple[RawEvent, ...]]:
        return self._entries.get(key)

    def put(self, key: Tuple, events: Sequence[RawEvent]) -> Tuple[RawEvent, ...]:
        """Store events unless the key is already present; returns the cached list"""
        if key not in self._entries:
            self._entries[key] = tuple(events)
        return self._entries[key]

    def invalidate(self, network: str, contract_address: str) -> int:
        """Drop every entry for one deployment, returning how many were dropped"""
        stale = [k for k in self._entries
                 if k[0] == network and k[1] == contract_address.lower()]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.info(f"Invalidated {len(stale)} cached event lists for {network}:{contract_address}")
        return len(stale)

    def clear(self):
        self._entries.clear()

    def __contains__(self, key: Tuple) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


async def fetch_events(source: EventSource, kind: str, cache: Optional[EventCache] = None,
                       address_filter: Optional[str] = None) -> Tuple[RawEvent, ...]:
    """
    Fetch events of one kind, going through the cache when one is given

    Args:
        source: Event source for a single lockdrop deployment
        kind: LOCKED or SIGNALED
        cache: Optional EventCache shared across calls
        address_filter: Owner (locks) or contract address (signals) to filter on

    Returns:
        Tuple of decoded events in arrival order
    """
    if cache is None:
        return tuple(await source.get_events(kind, address_filter))

    key = EventCache.key(source.network, source.contract_address, kind, address_filter)
    cached = cache.get(key)
    if cached is not None:
        logger.debug(f"Using {len(cached)} cached {kind} events")
        return cached

    events = await source.get_events(kind, address_filter)
    return cache.put(key, events)


def _term_tag(value) -> Union[LockTerm, int]:
    try:
        return LockTerm(int(value))
    except ValueError:
        return int(value)


def decode_lock_event(log) -> RawLockEvent:
    """Turn a decoded web3 ``Locked`` log into a RawLockEvent"""
    args = log['args']
    return RawLockEvent(
        participant_key=Web3.to_hex(args['edgewareAddr']),
        owner_address=args['owner'],
        lock_contract_address=args['lockAddr'],
        amount=int(args['eth']),
        term=_term_tag(args['term']),
        lock_timestamp=int(args['time']),
        is_validator_intent=bool(args['isValidator']),
        block_number=int(log['blockNumber']),
    )


def decode_signal_event(log) -> RawSignalEvent:
    """Turn a decoded web3 ``Signaled`` log into a RawSignalEvent"""
    args = log['args']
    return RawSignalEvent(
        source_contract_address=args['contractAddr'],
        participant_key=Web3.to_hex(args['edgewareAddr']),
        signal_timestamp=int(args['time']),
        block_number=int(log['blockNumber']),
    )


DECODERS = {
    LOCKED: decode_lock_event,
    SIGNALED: decode_signal_event,
}


class Web3LockdropSource:
    """Event source and balance oracle backed by an async web3 provider"""

    def __init__(self, rpc_url: str, lockdrop_address: str, network: str = 'mainnet',
                 w3: Optional[AsyncWeb3] = None):
        self.rpc_url = rpc_url
        self.network = network
        self.w3 = w3 if w3 is not None else AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.contract_address = Web3.to_checksum_address(lockdrop_address)
        self.contract = self.w3.eth.contract(
            address=self.contract_address,
            abi=get_contract_abi(LOCKDROP_ABI_PATH)
        )

    async def is_connected(self) -> bool:
        try:
            return bool(await self.w3.is_connected())
        except Exception as e:
            logger.error(f"Connection check against {self.rpc_url} failed: {e}")
            return False

    async def get_events(self, kind: str, address_filter: Optional[str] = None) -> List[RawEvent]:
        """All historical events of one kind, optionally filtered by address"""
        if kind not in DECODERS:
            raise ValueError(f"Unsupported event kind: {kind}")

        argument_filters = None
        if address_filter:
            argument_filters = {ADDRESS_FILTER_ARGS[kind]: Web3.to_checksum_address(address_filter)}

        event = getattr(self.contract.events, kind)
        try:
            logs = await event.get_logs(
                argument_filters=argument_filters,
                from_block=0,
                to_block='latest',
            )
        except Exception as e:
            logger.error(f"Failed to fetch {kind} events from {self.rpc_url}: {e}")
            raise NetworkUnavailable(f"Could not fetch {kind} events: {e}") from e

        events = [DECODERS[kind](log) for log in logs]
        logger.info(f"Fetched {len(events)} {kind} events from {self.network}")
        return events

    async def get_lock_start_time(self) -> int:
        try:
            return int(await self.contract.functions.LOCK_START_TIME().call())
        except Exception as e:
            raise NetworkUnavailable(f"Could not read LOCK_START_TIME: {e}") from e

    async def get_balance(self, address: str, at_block: Optional[int] = None) -> int:
        block_identifier = at_block if at_block is not None else 'latest'
        try:
            return int(await self.w3.eth.get_balance(
                Web3.to_checksum_address(address),
                block_identifier=block_identifier
            ))
        except Exception as e:
            raise NetworkUnavailable(f"Could not fetch balance of {address}: {e}") from e

    async def get_current_timestamp(self) -> int:
        try:
            block = await self.w3.eth.get_block('latest')
        except Exception as e:
            raise NetworkUnavailable(f"Could not fetch latest block: {e}") from e
        return int(block['timestamp'])

    async def get_storage_slot(self, address: str, slot: int) -> int:
        try:
            value = await self.w3.eth.get_storage_at(Web3.to_checksum_address(address), slot)
        except Exception as e:
            raise NetworkUnavailable(f"Could not read storage slot {slot} of {address}: {e}") from e
        return int.from_bytes(bytes(value), 'big')


async def get_lock_storage(oracle: BalanceOracle, lock_address: str) -> LockStorage:
    """Read the owner and unlock time recorded by a lock contract"""
    owner, unlock_time = await asyncio.gather(
        oracle.get_storage_slot(lock_address, LOCK_OWNER_SLOT),
        oracle.get_storage_slot(lock_address, LOCK_UNLOCK_TIME_SLOT),
    )
    owner_address = Web3.to_checksum_address('0x' + format(owner % (1 << 160), '040x'))
    return LockStorage(owner=owner_address, unlock_time=unlock_time)
