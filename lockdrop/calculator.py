#!/usr/bin/env python3
"""
Lockdrop Calculator
Early participation bonus curve and effective value calculations
"""

import logging
import math
from decimal import Decimal
from fractions import Fraction
from typing import Optional, Union

from web3 import Web3

from .errors import InvalidTermError
from .models import LockTerm

logger = logging.getLogger(__name__)

# Campaign calendar (UTC)
JUNE_1ST_UTC = 1559347200
JUNE_16TH_UTC = 1560643200
JULY_1ST_UTC = 1561939200
JULY_16TH_UTC = 1563235200
JULY_31ST_UTC = 1564531200
AUG_15TH_UTC = 1565827200
AUG_30TH_UTC = 1567123200

CAMPAIGN_START_UTC = JUNE_1ST_UTC

NEUTRAL_MULTIPLIER = Fraction(1)

# (inclusive cutoff, bonus) pairs, earliest window first
BONUS_SCHEDULE = (
    (JUNE_16TH_UTC, Fraction(150, 100)),
    (JULY_1ST_UTC, Fraction(140, 100)),
    (JULY_16TH_UTC, Fraction(130, 100)),
    (JULY_31ST_UTC, Fraction(120, 100)),
    (AUG_15TH_UTC, Fraction(110, 100)),
    (AUG_30TH_UTC, Fraction(100, 100)),
)

TERM_PREMIUMS = {
    LockTerm.THREE_MONTH: Fraction(100, 100),
    LockTerm.SIX_MONTH: Fraction(130, 100),
    LockTerm.TWELVE_MONTH: Fraction(220, 100),
}

SIGNALING = 'signaling'
SIGNALING_RATE = Fraction(20, 100)


def bonus_multiplier(lock_timestamp: int, campaign_start: int) -> Fraction:
    """
    Early participation multiplier for a lock

    Args:
        lock_timestamp: Unix time the lock was made
        campaign_start: Lock start time reported by the lockdrop contract

    Returns:
        Multiplier between 1 and 1.5. Any campaign other than the
        June 1st 2019 one gets the neutral multiplier.
    """
    if int(campaign_start) != CAMPAIGN_START_UTC:
        return NEUTRAL_MULTIPLIER

    lock_timestamp = int(lock_timestamp)
    for cutoff, bonus in BONUS_SCHEDULE:
        if lock_timestamp <= cutoff:
            return bonus
    return NEUTRAL_MULTIPLIER


def resolve_term(term: Union[LockTerm, int, str]) -> Union[LockTerm, str]:
    """
    Map an emitted term tag onto a LockTerm or the signaling tag

    Raises:
        InvalidTermError: if the tag is not a known term
    """
    if isinstance(term, LockTerm) or term == SIGNALING:
        return term
    try:
        return LockTerm(int(term))
    except (TypeError, ValueError) as e:
        raise InvalidTermError(f"Unknown lock term: {term!r}") from e


def effective_value(raw_amount: int, term: Union[LockTerm, int, str],
                    lock_timestamp: Optional[int] = None,
                    campaign_start: Optional[int] = None) -> int:
    """
    Calculate the effective (allocation weighted) value of a lock or signal

    Args:
        raw_amount: Amount in wei
        term: LockTerm, its contract ordinal, or SIGNALING
        lock_timestamp: Unix time of the lock, if the bonus curve applies
        campaign_start: Lock start time of the campaign, if the bonus curve applies

    Returns:
        Effective amount in wei, floored. Zero for an unknown term.
    """
    raw_amount = int(raw_amount)
    try:
        resolved = resolve_term(term)
    except InvalidTermError as e:
        logger.error(f"Found invalid term, counting zero effective value: {e}")
        return 0

    if resolved == SIGNALING:
        return math.floor(raw_amount * SIGNALING_RATE)

    bonus = NEUTRAL_MULTIPLIER
    if lock_timestamp is not None and campaign_start is not None:
        bonus = bonus_multiplier(lock_timestamp, campaign_start)

    return math.floor(raw_amount * TERM_PREMIUMS[resolved] * bonus)


def to_ether(wei: int) -> Decimal:
    """Convert wei to ether for display; only used at presentation boundaries"""
    return Decimal(Web3.from_wei(int(wei), 'ether'))
