"""Environment driven configuration for the lockdrop dashboard engine"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

MAINNET_LOCKDROP = '0x1b75b90e60070d37cfa9d87affd124bb345bf70a'
ROPSTEN_LOCKDROP = '0x111ee804560787E0bFC1898ed79DAe24F2457a04'

NETWORK_LOCKDROPS = {
    'mainnet': MAINNET_LOCKDROP,
    'ropsten': ROPSTEN_LOCKDROP,
}

DEFAULT_BUCKET_SIZE = 600
DEFAULT_MAX_CONCURRENCY = 100

FAILURE_POLICY_STRICT = 'strict'
FAILURE_POLICY_EXCLUDE = 'exclude'
FAILURE_POLICIES = (FAILURE_POLICY_STRICT, FAILURE_POLICY_EXCLUDE)


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == '':
        return None
    return int(value)


@dataclass(frozen=True)
class LockdropConfig:
    """Settings for one lockdrop deployment"""
    network: str = 'mainnet'
    rpc_url: str = 'https://mainnet.infura.io'
    lockdrop_address: str = MAINNET_LOCKDROP
    bucket_size: int = DEFAULT_BUCKET_SIZE
    signal_balance_block: Optional[int] = None
    signal_failure_policy: str = FAILURE_POLICY_STRICT
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    refresh_minutes: int = 10
    summary_output: Optional[str] = None
    log_file: str = 'lockdrop_updater.log'

    def __post_init__(self):
        if self.network not in NETWORK_LOCKDROPS:
            raise ValueError(f"Unsupported network: {self.network}")
        if self.signal_failure_policy not in FAILURE_POLICIES:
            raise ValueError(f"Unsupported signal failure policy: {self.signal_failure_policy}")
        if self.bucket_size <= 0:
            raise ValueError("BUCKET_SIZE must be positive")
        if self.max_concurrency <= 0:
            raise ValueError("MAX_CONCURRENCY must be positive")

    @classmethod
    def for_network(cls, network: str, rpc_url: Optional[str] = None, **overrides) -> "LockdropConfig":
        """Preset config for one of the known lockdrop deployments"""
        if network not in NETWORK_LOCKDROPS:
            raise ValueError(f"Unsupported network: {network}")
        return cls(
            network=network,
            rpc_url=rpc_url or f"https://{network}.infura.io",
            lockdrop_address=overrides.pop('lockdrop_address', None) or NETWORK_LOCKDROPS[network],
            **overrides
        )

    @classmethod
    def from_env(cls) -> "LockdropConfig":
        """Load settings from the environment and an optional .env file"""
        load_dotenv()

        network = os.getenv("LOCKDROP_NETWORK", "mainnet")
        return cls.for_network(
            network,
            rpc_url=os.getenv("RPC_URL"),
            lockdrop_address=os.getenv("LOCKDROP_ADDRESS"),
            bucket_size=int(os.getenv("BUCKET_SIZE", str(DEFAULT_BUCKET_SIZE))),
            signal_balance_block=_optional_int(os.getenv("SIGNAL_BALANCE_BLOCK")),
            signal_failure_policy=os.getenv("SIGNAL_FAILURE_POLICY", FAILURE_POLICY_STRICT),
            max_concurrency=int(os.getenv("MAX_CONCURRENCY", str(DEFAULT_MAX_CONCURRENCY))),
            refresh_minutes=int(os.getenv("REFRESH_MINUTES", "10")),
            summary_output=os.getenv("SUMMARY_OUTPUT") or None,
            log_file=os.getenv("LOG_FILE", "lockdrop_updater.log"),
        )
