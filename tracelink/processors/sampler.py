"""Head sampling for transactions started in this process."""

import logging
import random
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SamplingResult:
    sampled: bool
    sample_rate: Optional[float] = None


class Sampler:
    """Samples new traces with a fixed probability taken from ``traces_sample_rate``."""

    def __init__(self, sample_rate: float = 1.0) -> None:
        if not 0.0 <= sample_rate <= 1.0:
            raise ValueError("sample_rate must be between 0.0 and 1.0")
        self.sample_rate = sample_rate

    def should_sample(self, name: Optional[str] = None) -> SamplingResult:
        # rate 0.0 never samples, rate 1.0 always does
        sampled = random.random() < self.sample_rate
        if not sampled:
            logger.debug("Transaction %r dropped by head sampling at rate %s", name, self.sample_rate)
        return SamplingResult(sampled=sampled, sample_rate=self.sample_rate)
