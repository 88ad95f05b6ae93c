"""Shared fixtures: event factories and an in-memory chain"""

import pytest

from lockdrop.calculator import JUNE_1ST_UTC
from lockdrop.errors import NetworkUnavailable
from lockdrop.models import LockTerm, RawLockEvent, RawSignalEvent

ETH = 10 ** 18


class FakeChain:
    """In-memory event source and balance oracle"""
    network = 'testnet'
    contract_address = '0x' + 'ab' * 20

    def __init__(self, locks=(), signals=(), balances=None, lock_start=JUNE_1ST_UTC,
                 now=JUNE_1ST_UTC, storage=None, failing=()):
        self.locks = list(locks)
        self.signals = list(signals)
        self.balances = balances or {}
        self.lock_start = lock_start
        self.now = now
        self.storage = storage or {}
        self.failing = set(failing)
        self.get_events_calls = []
        self.balance_calls = []

    async def get_events(self, kind, address_filter=None):
        self.get_events_calls.append((kind, address_filter))
        if kind == 'Locked':
            events = self.locks
            if address_filter:
                events = [e for e in events if e.owner_address.lower() == address_filter.lower()]
        else:
            events = self.signals
            if address_filter:
                events = [e for e in events if e.source_contract_address.lower() == address_filter.lower()]
        return list(events)

    async def get_lock_start_time(self):
        return self.lock_start

    async def get_balance(self, address, at_block=None):
        self.balance_calls.append((address, at_block))
        if address in self.failing:
            raise NetworkUnavailable(f"balance of {address} unavailable")
        return self.balances.get(address, 0)

    async def get_current_timestamp(self):
        return self.now

    async def get_storage_slot(self, address, slot):
        return self.storage.get((address, slot), 0)


@pytest.fixture
def fake_chain():
    return FakeChain


@pytest.fixture
def make_lock():
    def _make_lock(amount, key='0x01', term=LockTerm.THREE_MONTH, timestamp=0, validator=False,
                   block=1, lock_address=None, owner='0x' + '11' * 20):
        return RawLockEvent(
            participant_key=key,
            owner_address=owner,
            lock_contract_address=lock_address or f"0xlock{block}",
            amount=amount,
            term=term,
            lock_timestamp=timestamp,
            is_validator_intent=validator,
            block_number=block,
        )
    return _make_lock


@pytest.fixture
def make_signal():
    def _make_signal(source, key='0x02', timestamp=0, block=1):
        return RawSignalEvent(
            source_contract_address=source,
            participant_key=key,
            signal_timestamp=timestamp,
            block_number=block,
        )
    return _make_signal
