"""
Retry policy for recoverable fetch failures.

State machine per key:
    PENDING -> FETCHING -> SUCCESS
                        -> EMPTY_FALLBACK
                        -> RETRY_SCHEDULED -> FETCHING ...
                        -> EXHAUSTED_FALLBACK

Only recoverable failures (network, timeout, throttling, cooldown) reach
this policy. Parsed-but-empty pages are terminal and never retried.
"""
import random
from dataclasses import dataclass

from armory.services.resolution import ResolutionState


@dataclass(frozen=True)
class RetryDecision:
    state: ResolutionState
    delay: float = 0.0

    @property
    def should_retry(self) -> bool:
        return self.state is ResolutionState.RETRY_SCHEDULED


@dataclass
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0           # Base delay in seconds
    exponential_base: float = 2.0     # Exponential backoff multiplier
    jitter_factor: float = 0.0        # Random jitter (0-1), off by default

    def backoff(self, attempt: int) -> float:
        """
        Delay before re-dispatching after failed attempt `attempt` (0-based).

        Formula: base * (exp_base ^ attempt), optionally +/- jitter.
        """
        delay = self.base_delay * (self.exponential_base ** attempt)
        if self.jitter_factor:
            delay += delay * self.jitter_factor * (2 * random.random() - 1)
        return max(0.0, delay)

    def decide(self, attempt: int) -> RetryDecision:
        if attempt < self.max_retries:
            return RetryDecision(ResolutionState.RETRY_SCHEDULED, self.backoff(attempt))
        return RetryDecision(ResolutionState.EXHAUSTED_FALLBACK)
