"""Presentation-side views of a ParticipationSummary"""
from dataclasses import asdict
from decimal import Decimal
from typing import Any, Dict, Optional

import pandas as pd

from .summary import ParticipationSummary

LOCKDROP_EDG = Decimal(4_500_000_000)
OTHER_EDG = Decimal(500_000_000)
TOTAL_EDG = LOCKDROP_EDG + OTHER_EDG


def estimate_allocation(summary: ParticipationSummary) -> Dict[str, Optional[Decimal]]:
    """
    Split the lockdrop EDG pool between lockers and signalers by effective value

    Returns:
        EDG amounts and percentages of total supply. Locker and signaler
        entries are None while nothing has been locked or signaled.
    """
    allocation: Dict[str, Optional[Decimal]] = {
        'lockers_edg': None,
        'signalers_edg': None,
        'other_edg': OTHER_EDG,
        'lockers_pct': None,
        'signalers_pct': None,
        'other_pct': 100 * OTHER_EDG / TOTAL_EDG,
    }
    if summary.total_effective_eth == 0:
        return allocation

    lockers = LOCKDROP_EDG * summary.total_effective_eth_locked / summary.total_effective_eth
    signalers = LOCKDROP_EDG * summary.total_effective_eth_signaled / summary.total_effective_eth
    allocation.update({
        'lockers_edg': lockers,
        'signalers_edg': signalers,
        'lockers_pct': 100 * lockers / TOTAL_EDG,
        'signalers_pct': 100 * signalers / TOTAL_EDG,
    })
    return allocation


def _series_frame(points, value_column: str, timestamps) -> pd.DataFrame:
    frame = pd.DataFrame(list(points), columns=['block', value_column])
    frame['approx_time'] = pd.to_datetime(
        [timestamps.get(block) for block in frame['block']], unit='s', utc=True
    )
    return frame.set_index('block')


def summary_frames(summary: ParticipationSummary) -> Dict[str, pd.DataFrame]:
    """Time series of a summary as DataFrames indexed by bucket boundary"""
    timestamps = summary.block_to_approx_timestamp
    participants = _series_frame(summary.participants_by_block, 'participants', timestamps)
    eth_locked = _series_frame(summary.eth_locked_by_block, 'eth_locked', timestamps)
    eth_locked['eth_locked'] = eth_locked['eth_locked'].astype(float)
    return {
        'participants_by_block': participants,
        'eth_locked_by_block': eth_locked,
    }


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {str(getattr(k, 'name', k)): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def summary_to_dict(summary: ParticipationSummary) -> Dict[str, Any]:
    """JSON friendly dict of a summary; Decimals become strings"""
    data = {
        name: (dict(value) if hasattr(value, 'items') else value)
        for name, value in summary.__dict__.items()
    }
    for name in ('locks', 'validating_locks', 'signals'):
        data[name] = {key: asdict(totals) for key, totals in data[name].items()}
    data['allocation'] = estimate_allocation(summary)
    return _jsonable(data)
