"""
Lockdrop Processing
===================

Aggregation engine for lockdrop participation statistics:
- aggregator: lock and signal aggregation per participant key
- timeseries: cumulative series bucketed by block number
- summary: participation summary builder and pipeline
- lookup: per-address lock and signal details
- report: presentation-side views of a summary
- updater: scheduled summary refresh
"""

from .aggregator import aggregate_locks, aggregate_signals
from .summary import ParticipationSummary, build_summary, get_participation_summary
from .timeseries import bucketize

__all__ = [
    'aggregate_locks',
    'aggregate_signals',
    'bucketize',
    'build_summary',
    'get_participation_summary',
    'ParticipationSummary',
]
