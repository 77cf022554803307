"""
Sampler tests: counter-based, deterministic decimation.
"""

from __future__ import annotations

import pytest

from logwarden.exceptions import ConfigurationError
from logwarden.sampling import Sampler


class TestSampler:
    def test_rate_ten_keeps_every_tenth_record(self) -> None:
        sampler = Sampler(10)
        kept = [i for i in range(1, 51) if sampler.should_sample()]
        assert kept == [10, 20, 30, 40, 50]

    def test_rate_one_keeps_everything(self) -> None:
        sampler = Sampler()
        assert all(sampler.should_sample() for _ in range(20))
        assert sampler.seen == 20

    def test_same_sequence_after_reset(self) -> None:
        sampler = Sampler(3)
        first = [sampler.should_sample() for _ in range(9)]
        sampler.reset()
        assert [sampler.should_sample() for _ in range(9)] == first

    @pytest.mark.parametrize("rate", [0, -1, 2.5, True])
    def test_invalid_rate(self, rate) -> None:
        with pytest.raises(ConfigurationError):
            Sampler(rate)
