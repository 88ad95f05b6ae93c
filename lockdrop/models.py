"""Domain models for lockdrop events and per-participant records"""
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import IntEnum
from typing import Optional, Tuple, Union


class LockTerm(IntEnum):
    """Lock terms, numbered as in the lockdrop contract's Term enum"""
    THREE_MONTH = 0
    SIX_MONTH = 1
    TWELVE_MONTH = 2


@dataclass(frozen=True)
class RawLockEvent:
    """A decoded ``Locked`` event"""
    participant_key: str
    owner_address: str
    lock_contract_address: str
    amount: int
    # Kept as emitted so that unknown tags reach the calculator
    term: Union[LockTerm, int, str]
    lock_timestamp: int
    is_validator_intent: bool
    block_number: int

    @property
    def timestamp(self) -> int:
        return self.lock_timestamp


@dataclass(frozen=True)
class RawSignalEvent:
    """A decoded ``Signaled`` event. Its value is the source address balance."""
    source_contract_address: str
    participant_key: str
    signal_timestamp: int
    block_number: int

    @property
    def timestamp(self) -> int:
        return self.signal_timestamp


@dataclass(frozen=True)
class ParticipantLockRecord:
    """Accumulated locks for one participant key, amounts in wei"""
    raw_amount: int
    effective_amount: int
    addresses: Tuple[str, ...] = ()

    def merge(self, raw_amount: int, effective_amount: int, address: str) -> "ParticipantLockRecord":
        """Return a new record with one more contribution, newest address first"""
        return replace(
            self,
            raw_amount=self.raw_amount + raw_amount,
            effective_amount=self.effective_amount + effective_amount,
            addresses=(address,) + self.addresses,
        )


@dataclass(frozen=True)
class ParticipantSignalRecord(ParticipantLockRecord):
    """Accumulated signals for one participant key, amounts in wei"""
    pass


@dataclass(frozen=True)
class ParticipantTotals:
    """Per-participant totals in ether, as handed to the presentation layer"""
    raw_eth: Decimal
    effective_eth: Decimal
    addresses: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class LockStorage:
    """Fields read straight from a lock contract's storage"""
    owner: str
    unlock_time: int


@dataclass(frozen=True)
class AddressLookupResult:
    """Per-address detail for one lock or signal"""
    kind: str  # "lock" or "signal"
    event: Union[RawLockEvent, RawSignalEvent]
    effective_eth: Decimal
    minutes_until_unlock: Optional[int] = None
