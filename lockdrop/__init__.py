"""
Lockdrop Participation Statistics
=================================

Offchain engine that turns lockdrop ``Locked`` and ``Signaled`` events into
participation statistics for the dashboard.

Structure:
- calculator: bonus curve and effective value math
- data_collector: web3 event source, balance oracle and event cache
- processing/: aggregation, time series, summary, address lookup and updater
"""

__version__ = "1.0.0"
__author__ = "Lockdrop Dashboard Team"
