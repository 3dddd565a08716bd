"""
Delay policy for polling loops.

Gateway calls themselves are never retried automatically; this module only
describes how long a caller-driven loop waits between attempts.
"""


class RetryConfig:
    """Attempt count and the fixed wait between two attempts."""

    def __init__(self, max_attempts: int = 3, interval: float = 1.0):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if interval < 0:
            raise ValueError("interval must not be negative")
        self.max_attempts = max_attempts
        self.interval = interval

    def horizon(self) -> float:
        """Total wall-clock wait across all attempts."""
        return self.interval * (self.max_attempts - 1)

    def __repr__(self) -> str:
        return f"RetryConfig(max_attempts={self.max_attempts}, interval={self.interval})"
