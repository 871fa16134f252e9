"""
Configuration management for the Spanner database admin client.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class PollingSettings:
    """Backoff policy for polling long-running operations."""

    initial_delay: float = 5.0
    multiplier: float = 1.5
    max_delay: float = 45.0
    total_timeout: float = 48 * 3600.0
    initial_rpc_timeout: float = 30.0
    rpc_timeout_multiplier: float = 1.0
    max_rpc_timeout: float = 60.0

    def __post_init__(self):
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("poll delays must not be negative")
        if self.multiplier < 1.0 or self.rpc_timeout_multiplier < 1.0:
            raise ValueError("multipliers must be >= 1.0")
        if self.total_timeout <= 0:
            raise ValueError("total_timeout must be positive")

    def delay_for(self, attempt: int) -> float:
        """Delay before poll number ``attempt + 1``."""
        return min(self.max_delay, self.initial_delay * self.multiplier**attempt)

    def rpc_timeout_for(self, attempt: int) -> float:
        """Timeout for an individual get-operation call."""
        return min(
            self.max_rpc_timeout,
            self.initial_rpc_timeout * self.rpc_timeout_multiplier**attempt,
        )


@dataclass
class AdminConfig:
    """Configuration for command-line admin runs."""

    project_id: str
    instance_id: str
    endpoint: str = "https://spanner.googleapis.com/v1"
    timeout: int = 7200
    poll_interval: float = 5.0
    max_poll_interval: float = 45.0
    request_timeout: int = 60
    verbose: bool = False
    polling: Optional[PollingSettings] = field(default=None, repr=False)

    def __post_init__(self):
        if self.polling is None:
            self.polling = PollingSettings(
                initial_delay=self.poll_interval,
                max_delay=max(self.poll_interval, self.max_poll_interval),
                total_timeout=float(self.timeout),
                max_rpc_timeout=float(self.request_timeout),
                initial_rpc_timeout=float(self.request_timeout),
            )

    @classmethod
    def from_args(cls, args) -> "AdminConfig":
        """
        Create configuration from command-line arguments.

        Args:
            args: Parsed argparse arguments

        Returns:
            AdminConfig instance
        """
        return cls(
            project_id=args.project,
            instance_id=args.instance,
            endpoint=args.endpoint,
            timeout=args.timeout,
            poll_interval=args.poll_interval,
            max_poll_interval=args.max_poll_interval,
            request_timeout=args.request_timeout,
            verbose=args.verbose,
        )
