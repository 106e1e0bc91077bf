import random
from dataclasses import dataclass


@dataclass(frozen=True)
class Backoff:
    """Delay policy for consecutive poll failures.

    The first failure waits ``base_delay``; each further consecutive failure
    multiplies the delay by ``multiplier`` up to ``max_delay``. A multiplier
    of 1.0 gives a fixed delay. Jitter adds up to ``delay * jitter`` on top.
    """

    base_delay: float = 30.0
    multiplier: float = 1.0
    max_delay: float = 300.0
    jitter: float = 0.0

    def delay(self, failures: int) -> float:
        if failures < 1:
            return 0.0
        cap = max(self.max_delay, self.base_delay)
        delay = self.base_delay
        if self.multiplier > 1:
            # Stepwise so large failure counts cannot overflow.
            for _ in range(failures - 1):
                delay *= self.multiplier
                if delay >= cap:
                    break
        delay = min(delay, cap)
        if self.jitter:
            delay += random.uniform(0, delay * self.jitter)
        return delay
