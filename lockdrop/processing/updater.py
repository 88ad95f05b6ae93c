#!/usr/bin/env python3
"""
Lockdrop Summary Updater with scheduling, logging, and statistics
"""

import asyncio
import json
import logging
import time
from datetime import datetime
from typing import Optional

import schedule

from ..config import LockdropConfig
from ..data_collector import EventCache, Web3LockdropSource
from ..errors import EmptyDatasetError, NetworkUnavailable
from .report import summary_frames, summary_to_dict
from .summary import ParticipationSummary, get_participation_summary

logger = logging.getLogger(__name__)


def configure_logging(log_file: str):
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


class SummaryUpdater:
    def __init__(self, config: LockdropConfig, source: Optional[Web3LockdropSource] = None,
                 cache: Optional[EventCache] = None):
        self.config = config
        self.cache = cache if cache is not None else EventCache()
        self.source = source if source is not None else self._create_source(config)

        # Latest result; None until the first successful refresh
        self.summary: Optional[ParticipationSummary] = None
        self.no_data = False

        # Statistics
        self.successful_refreshes = 0
        self.failed_refreshes = 0
        self.consecutive_failures = 0
        self.last_refresh_time: Optional[datetime] = None

    @staticmethod
    def _create_source(config: LockdropConfig) -> Web3LockdropSource:
        source = Web3LockdropSource(config.rpc_url, config.lockdrop_address, network=config.network)
        logger.info(f"Using lockdrop {source.contract_address} on {config.network} via {config.rpc_url}")
        return source

    def switch_network(self, network: str, rpc_url: Optional[str] = None):
        """Point the updater at another deployment, dropping cached events for the old one"""
        self.cache.invalidate(self.source.network, self.source.contract_address)
        self.config = LockdropConfig.for_network(
            network,
            rpc_url=rpc_url,
            bucket_size=self.config.bucket_size,
            signal_balance_block=self.config.signal_balance_block,
            signal_failure_policy=self.config.signal_failure_policy,
            max_concurrency=self.config.max_concurrency,
            refresh_minutes=self.config.refresh_minutes,
            summary_output=self.config.summary_output,
            log_file=self.config.log_file,
        )
        self.source = self._create_source(self.config)
        self.summary = None
        self.no_data = False

    async def compute_summary(self) -> ParticipationSummary:
        return await get_participation_summary(
            self.source,
            self.source,
            cache=self.cache,
            bucket_size=self.config.bucket_size,
            signal_balance_block=self.config.signal_balance_block,
            failure_policy=self.config.signal_failure_policy,
            max_concurrency=self.config.max_concurrency,
        )

    def refresh(self) -> Optional[ParticipationSummary]:
        """Recompute the summary; returns None when there is no data to show"""
        # Event queries run up to the latest block, so last refresh's lists are stale
        self.cache.invalidate(self.source.network, self.source.contract_address)
        try:
            logger.info(f"Fetching data for {self.config.network}")
            summary = asyncio.run(self.compute_summary())
        except EmptyDatasetError as e:
            logger.warning(f"No data: {e}")
            self.summary = None
            self.no_data = True
            return None
        except NetworkUnavailable as e:
            logger.error(f"Network unavailable, summary not updated: {e}")
            self.failed_refreshes += 1
            self.consecutive_failures += 1
            self.summary = None
            self.no_data = True
            return None

        logger.info(
            f"Locked: {summary.total_eth_locked} ETH ({summary.num_locks} locks), "
            f"Signaled: {summary.total_eth_signaled} ETH ({summary.num_signals} signals), "
            f"Effective: {summary.total_effective_eth} ETH"
        )
        participants = summary_frames(summary)['participants_by_block']
        logger.info(f"Participants by block (latest buckets):\n{participants.tail()}")

        if self.config.summary_output:
            self._write_snapshot(summary)

        self.summary = summary
        self.no_data = False
        self.successful_refreshes += 1
        self.consecutive_failures = 0
        self.last_refresh_time = datetime.now()
        return summary

    def _write_snapshot(self, summary: ParticipationSummary):
        with open(self.config.summary_output, 'w') as f:
            json.dump(summary_to_dict(summary), f, indent=2)
        logger.info(f"Summary snapshot written to {self.config.summary_output}")

    def _log_statistics(self):
        """Log current statistics"""
        logger.info(f"Statistics - Successful: {self.successful_refreshes}, Failed: {self.failed_refreshes}, Consecutive failures: {self.consecutive_failures}")

    def run_scheduled_refresh(self):
        """Run scheduled refresh with error handling"""
        try:
            logger.info("Running scheduled refresh...")
            self.refresh()
            self._log_statistics()
        except Exception as e:
            logger.error(f"Scheduled refresh failed: {e}")
            self.failed_refreshes += 1
            self.consecutive_failures += 1


def main():
    """Main function to run the summary updater"""
    config = LockdropConfig.from_env()
    configure_logging(config.log_file)
    try:
        updater = SummaryUpdater(config)

        schedule.every(config.refresh_minutes).minutes.do(updater.run_scheduled_refresh)

        # Run initial refresh
        updater.run_scheduled_refresh()

        while True:
            schedule.run_pending()
            time.sleep(60)

    except KeyboardInterrupt:
        logger.info("Summary updater stopped by user")
    except Exception as e:
        logger.error(f"Summary updater failed: {e}")
        raise


if __name__ == "__main__":
    main()
