from __future__ import annotations

from .exceptions import ConfigurationError


class Sampler:
    """Deterministic 1-in-N decimation.

    Every call advances a counter; the call is kept when the counter is a
    multiple of ``rate``. With ``rate=10`` the 10th, 20th, 30th... records pass.
    A rate of 1 keeps everything.
    """

    def __init__(self, rate: int = 1) -> None:
        if isinstance(rate, bool) or not isinstance(rate, int) or rate < 1:
            raise ConfigurationError(f"Sample rate must be a positive integer, got {rate!r}", field="sample_rate", value=rate)
        self.rate = rate
        self._counter = 0

    @property
    def seen(self) -> int:
        return self._counter

    def should_sample(self) -> bool:
        self._counter += 1
        return self._counter % self.rate == 0

    def reset(self) -> None:
        self._counter = 0
